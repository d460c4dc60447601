# CORTX-RA: CORTX cluster resource agents.
# Copyright (c) 2020 Seagate Technology LLC and/or its Affiliates
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
# For any questions about this software or licensing,
# please email opensource@seagate.com or cortx-questions@seagate.com.

import os
import errno
import inspect
import logging
import logging.handlers
from functools import wraps

_library_logger = logging.getLogger("ra")
_library_logger.addHandler(logging.NullHandler())


class Log:
    CRITICAL = logging.CRITICAL
    ERROR = logging.ERROR
    WARN = logging.WARNING
    WARNING = logging.WARNING
    INFO = logging.INFO
    DEBUG = logging.DEBUG
    NOTSET = logging.NOTSET
    logger = _library_logger

    @staticmethod
    def init(service_name, log_path=None, level="INFO", syslog_server=None,
             syslog_port=None, syslog=False, console=False, backup_count=10,
             file_size_in_mb=10):
        """
        Initialize logging for one agent invocation.

        Records go to a rotating file under log_path, to a remote syslog
        server when server and port are given, to the local syslog socket when
        syslog is set, and to stderr when console is set. Any combination is
        allowed.
        """
        if log_path:
            try:
                os.makedirs(log_path, exist_ok=True)
            except OSError as err:
                if err.errno != errno.EEXIST: raise
        max_bytes = 0
        if file_size_in_mb:
            max_bytes = int(file_size_in_mb) * 1024 * 1024
        Log.logger = Log._get_logger(service_name, getattr(Log, level.upper()),
                                     log_path, syslog_server, syslog_port, syslog,
                                     console, backup_count, max_bytes)

    @staticmethod
    def _get_logger(service_name: str, log_level, log_path: str, syslog_server: str,
                    syslog_port: int, syslog: bool, console: bool, backup_count: int,
                    max_bytes: int):
        """
        This Function Creates the Logger for the agent.
        :param service_name: logger name, also used as the log file name. :type: Str
        :param log_level: Log Class level attribute
        :return: Logger Object
        """
        log_format = "%(asctime)s %(name)s %(levelname)s %(message)s"
        formatter = logging.Formatter(log_format, "%Y-%m-%d %H:%M:%S")
        logger = logging.getLogger(service_name)
        logger.setLevel(log_level)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

        handlers = []
        if syslog_server and syslog_port:
            handlers.append(logging.handlers.SysLogHandler(
                address=(syslog_server, int(syslog_port))))
        elif syslog and os.path.exists("/dev/log"):
            syslog_handler = logging.handlers.SysLogHandler(address="/dev/log")
            syslog_handler.setFormatter(logging.Formatter(
                f"{service_name}: %(levelname)s %(message)s"))
            logger.addHandler(syslog_handler)
        if log_path:
            log_file = os.path.join(log_path, f"{service_name}.log")
            handlers.append(logging.handlers.RotatingFileHandler(
                log_file, mode="a", maxBytes=max_bytes, backupCount=backup_count))
        if console:
            handlers.append(logging.StreamHandler())
        for handler in handlers:
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        return logger

    @staticmethod
    def _log(level, msg, *args, **kwargs):
        # Prefix with the function that called the public method.
        caller = inspect.stack()[2][3]
        Log.logger.log(level, f"[{caller}] {msg}", *args, **kwargs)

    @staticmethod
    def debug(msg, *args, **kwargs):
        Log._log(logging.DEBUG, msg, *args, **kwargs)

    @staticmethod
    def info(msg, *args, **kwargs):
        Log._log(logging.INFO, msg, *args, **kwargs)

    @staticmethod
    def warn(msg, *args, **kwargs):
        Log._log(logging.WARNING, msg, *args, **kwargs)

    @staticmethod
    def error(msg, *args, **kwargs):
        Log._log(logging.ERROR, msg, *args, **kwargs)

    @staticmethod
    def exception(e, *args, **kwargs):
        """Logs the exception with level ERROR and its traceback."""
        Log._log(logging.ERROR, f"[{e.__class__.__name__}] {e}", exc_info=True)

    @staticmethod
    def trace_method(level, exclude_args=[], truncate_at=80):
        """
        A wrapper method that logs each invocation and exit of the wrapped function.
        :param: level - Level of logging (e.g. Log.DEBUG)
        :param: exclude_args - Array of arguments to exclude from the logging
        :param: truncate_at - Allows to truncate the printed argument values. 80 by default.

        Example usage:
        @Log.trace_method(Log.DEBUG)
        def some_function(arg_1, arg_2):
            pass
        """
        def _fmt_value(obj):
            str_value = repr(obj)
            if len(str_value) < truncate_at:
                return str_value
            return str_value[:truncate_at] + "..."

        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                pos_args = [_fmt_value(arg) for arg in args]
                kw_args = [key + "=" + _fmt_value(kwargs[key]) for key in kwargs
                           if key not in exclude_args]
                Log.logger.log(level, "[{}] Invoked with ({})".format(
                    func.__qualname__, ",".join(pos_args + kw_args)))
                resp = func(*args, **kwargs)
                Log.logger.log(level, "[{}] Returned {}".format(
                    func.__qualname__, _fmt_value(resp)))
                return resp
            return wrapper

        return decorator
