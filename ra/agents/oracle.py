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
import re
import pwd
import shlex
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Optional, Tuple

import psutil

from ra.common.log import Log
from ra.common.conf import Conf
from ra.common.errors import (RaConfigurationMissing, RaGenericError, RaNotInstalled,
                              RaPermissionDenied)
from ra.common.fs_utils import FSUtils
from ra.core import const
from ra.core.gateway import CommandGateway, CommandResult, ExecContext
from ra.core.models import HealthLevel, OperationResult, ProbeResult
from ra.core.parameters import ActionSpec, Parameter
from ra.core.resource_agent import ResourceAgent
from ra.agents.parsers import (parse_backup_mode, parse_instance_status, parse_oratab,
                               sql_errors)
from ra.agents.oracle_ipc import (InstanceCleanup, IpcAttribution, IpcCleanup,
                                  ProcessEscalation)


@dataclass(frozen=True)
class OracleDescriptor:
    sid: str
    home: str
    user: str
    ipcrm: str = const.IPCRM_INSTANCE
    clear_backupmode: bool = False
    shutdown_method: str = const.SHUTDOWN_ABORT
    dump_dest: Optional[str] = None


class OracleEnvironment:
    """Resolves home and owner of an instance and its execution context."""

    @staticmethod
    def resolve_home(sid: str, home: Optional[str], oratab: str) -> str:
        if not home:
            try:
                with open(oratab, 'r') as f:
                    home = parse_oratab(f.read(), sid)
            except OSError as e:
                Log.debug(f"Unable to read {oratab}: {e}")
            if not home:
                raise RaNotInstalled(f"Oracle home of {sid} is not set and not found in {oratab}")
        if not os.path.isdir(home):
            raise RaNotInstalled(f"Oracle home {home} does not exist")
        return home

    @staticmethod
    def resolve_user(home: str, user: Optional[str]) -> str:
        if not user:
            uid = FSUtils.owner(os.path.join(home, "dbs"))
            if uid is None:
                raise RaConfigurationMissing(f"Cannot infer the owner of {home}/dbs")
            try:
                return pwd.getpwuid(uid).pw_name
            except KeyError:
                raise RaConfigurationMissing(f"Owner uid {uid} of {home}/dbs is unknown") from None
        try:
            pwd.getpwnam(user)
        except KeyError:
            raise RaConfigurationMissing(f"User {user} does not exist") from None
        return user

    @staticmethod
    def check_permission(user: str):
        if os.geteuid() == 0:
            return
        current = pwd.getpwuid(os.geteuid()).pw_name
        if current != user:
            raise RaPermissionDenied(f"Running as {current}, need root or {user}")

    @staticmethod
    def build_context(descriptor: OracleDescriptor, stack: ExitStack) -> ExecContext:
        """
        Immutable environment of the instance.

        When root manages an instance owned by another account the commands go
        through su, which resets the environment, so the values are written to
        a private file the owner sources. The file is removed when stack
        closes, whatever the outcome of the action.
        """
        path = os.environ.get("PATH", "/usr/bin:/bin")
        libs = os.environ.get("LD_LIBRARY_PATH")
        env = {
            "ORACLE_SID": descriptor.sid,
            "ORACLE_HOME": descriptor.home,
            "PATH": f"{descriptor.home}/bin:{path}",
            "LD_LIBRARY_PATH": f"{descriptor.home}/lib" + (f":{libs}" if libs else ""),
        }
        if os.geteuid() != 0 or pwd.getpwuid(0).pw_name == descriptor.user:
            return ExecContext(MappingProxyType(env))

        fd, env_file = tempfile.mkstemp(prefix=f"ora-ra-{descriptor.sid}.")
        stack.callback(OracleEnvironment._remove, env_file)
        owner = pwd.getpwnam(descriptor.user)
        with os.fdopen(fd, 'w') as f:
            os.fchmod(f.fileno(), 0o600)
            for key, value in env.items():
                f.write(f"export {key}={shlex.quote(value)}\n")
            os.fchown(f.fileno(), owner.pw_uid, owner.pw_gid)
        return ExecContext(MappingProxyType(env), descriptor.user, env_file)

    @staticmethod
    def _remove(path):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


class SqlSession:
    """Administrative sqlplus session, one process per script."""

    def __init__(self, gateway: CommandGateway):
        self._gateway = gateway

    def run(self, statements: str) -> CommandResult:
        script = f"{const.SQL_PREAMBLE}{statements}\nexit\n"
        return self._gateway.invoke(const.SQLPLUS, "-S", "/nolog", input=script)

    def status(self) -> Tuple[Optional[str], CommandResult]:
        result = self.run(const.SQL_GET_STATUS)
        return parse_instance_status(result.output), result


class OracleProcesses:
    """Process table view of one instance."""

    def __init__(self, sid: str, user: Optional[str] = None):
        self._sid = sid
        self._user = user
        self._pmon = f"ora_pmon_{sid}"
        # Background names carry no underscore: ora_pmon_TEST_ORCL is not ORCL.
        self._instance = re.compile(
            rf"^(ora_[a-z0-9]+_{re.escape(sid)}|oracle{re.escape(sid)})$")

    def _scan(self) -> List[Tuple[psutil.Process, str]]:
        procs = []
        for proc in psutil.process_iter(["name", "cmdline", "username"]):
            info = proc.info
            if self._user and info.get("username") not in (None, self._user):
                continue
            # cmdline is None when psutil was denied access to it.
            cmdline = info.get("cmdline") or [""]
            words = cmdline[0].split()
            argv0 = words[0] if words else (info.get("name") or "")
            procs.append((proc, argv0))
        return procs

    def pmon_running(self) -> bool:
        return any(argv0 == self._pmon for _, argv0 in self._scan())

    def instance_processes(self) -> List[psutil.Process]:
        return [proc for proc, argv0 in self._scan() if self._instance.match(argv0)]


class OracleProber:
    """Background process first, then the instance status through sqlplus."""

    def __init__(self, descriptor: OracleDescriptor, session: SqlSession,
                 processes: OracleProcesses):
        self._descriptor = descriptor
        self._session = session
        self._processes = processes

    def probe(self) -> ProbeResult:
        sid = self._descriptor.sid
        if not self._processes.pmon_running():
            return ProbeResult(HealthLevel.Absent, f"ora_pmon_{sid} is not running")
        status, result = self._session.status()
        if status == const.ORA_STATUS_OPEN:
            return ProbeResult(HealthLevel.Healthy, f"{sid} is OPEN", status)
        if status in (const.ORA_STATUS_MOUNTED, const.ORA_STATUS_STARTED):
            return ProbeResult(HealthLevel.Degraded, f"{sid} is {status}", status)
        return ProbeResult(HealthLevel.Broken,
                           f"{sid} status query failed (rc={result.rc}): {result.raw_output}")


class OracleAgent(ResourceAgent):
    NAME = "oracle"
    SHORTDESC = "Manages an Oracle Database instance"
    LONGDESC = ("Resource script for oracle. Manages an Oracle Database instance "
                "as an HA resource.")
    PARAMETERS = [
        Parameter("sid", required=True, unique=True,
                  shortdesc="sid",
                  longdesc="The Oracle SID (aka ORACLE_SID)."),
        Parameter("home",
                  shortdesc="home",
                  longdesc="The Oracle home directory (aka ORACLE_HOME). If not "
                           "specified, then the SID along with its home should be "
                           "listed in /etc/oratab."),
        Parameter("user",
                  shortdesc="user",
                  longdesc="The Oracle owner (aka ORACLE_OWNER). If not specified, "
                           "then it is set to the owner of $ORACLE_HOME/dbs."),
        Parameter("ipcrm", default=const.IPCRM_INSTANCE, choices=const.IPCRM_POLICIES,
                  shortdesc="ipcrm",
                  longdesc="Sometimes IPC objects (shared memory segments and "
                           "semaphores) belonging to an Oracle instance might be "
                           "left behind which prevents the instance from starting. "
                           "'instance' removes only the objects of this instance, "
                           "'orauser' removes every object of the Oracle owner and "
                           "'none' disables the cleanup."),
        Parameter("clear_backupmode", type="boolean", default=False,
                  shortdesc="clear_backupmode",
                  longdesc="The clear of the backup mode of ORACLE."),
        Parameter("shutdown_method", default=const.SHUTDOWN_ABORT,
                  choices=const.SHUTDOWN_METHODS,
                  shortdesc="shutdown_method",
                  longdesc="How to stop Oracle is a matter of taste it seems. The "
                           "default method ('checkpoint/abort') is: alter system "
                           "checkpoint; shutdown abort. 'immediate' runs shutdown "
                           "immediate."),
        Parameter("dump_dest",
                  shortdesc="dump_dest",
                  longdesc="Diagnostic dump directory where oradebug writes its "
                           "trace files. Defaults to user_dump_dest of the instance."),
    ]
    ACTIONS = [
        ActionSpec(const.ACTION_START, 120),
        ActionSpec(const.ACTION_STOP, 120),
        ActionSpec(const.ACTION_STATUS, 5),
        ActionSpec(const.ACTION_MONITOR, 30, interval=120, depth=0),
        ActionSpec(const.ACTION_VALIDATE, 5),
        ActionSpec(const.ACTION_META_DATA, 5),
    ]

    def __init__(self, environ=None, out=None, gateway: CommandGateway = None,
                 processes: OracleProcesses = None, sleep=None):
        super(OracleAgent, self).__init__(environ, out)
        self._gateway = gateway
        self._processes = processes
        self._sleep = sleep
        self.descriptor = None
        self.session = None
        self.prober = None

    def setup(self, stack: ExitStack):
        params = dict(self.params)
        oratab = Conf.get(const.RA_INDEX, "oracle.oratab", "/etc/oratab")
        params["home"] = OracleEnvironment.resolve_home(params["sid"], params.get("home"), oratab)
        params["user"] = OracleEnvironment.resolve_user(params["home"], params.get("user"))
        self.descriptor = OracleDescriptor(**params)
        OracleEnvironment.check_permission(self.descriptor.user)

        if self._gateway is None:
            sqlplus = os.path.join(self.descriptor.home, "bin", const.SQLPLUS)
            if not os.access(sqlplus, os.X_OK):
                raise RaNotInstalled(f"{sqlplus} is not executable")
            tools = CommandGateway.locate([const.IPCS, const.IPCRM])
            tools[const.SQLPLUS] = sqlplus
            context = OracleEnvironment.build_context(self.descriptor, stack)
            self._gateway = CommandGateway(tools, context)
        if self.descriptor.ipcrm != const.IPCRM_NONE:
            self._gateway.require(const.IPCS, const.IPCRM)
        if self._processes is None:
            self._processes = OracleProcesses(self.descriptor.sid, self.descriptor.user)
        self.session = SqlSession(self._gateway)
        self.prober = OracleProber(self.descriptor, self.session, self._processes)

    def probe(self) -> ProbeResult:
        return self.prober.probe()

    def _sql(self, statements: str, what: str) -> CommandResult:
        result = self.session.run(statements)
        errors = sql_errors(result.output)
        if result.rc != 0 or errors:
            Log.warn(f"{what} reported (rc={result.rc}): {result.raw_output}")
        return result

    def start(self) -> OperationResult:
        sid = self.descriptor.sid
        result = self.probe()
        if result.level is HealthLevel.Healthy:
            Log.info(f"{sid} is already OPEN")
            return OperationResult(const.OCF_SUCCESS, result.detail)

        if result.level is HealthLevel.Absent:
            self._sql(const.SQL_STARTUP_MOUNT, "startup mount")
        elif result.recoverable_hint == const.ORA_STATUS_STARTED:
            self._sql(const.SQL_MOUNT, "alter database mount")
        elif result.level is HealthLevel.Broken:
            Log.info(f"{sid} has unexpected status, restarting: {result.detail}")
            self._sql(const.SQL_FORCE_ABORT, "shutdown abort")
            self._sql(const.SQL_STARTUP_MOUNT, "startup mount")

        status, mounted = self.session.status()
        if status != const.ORA_STATUS_MOUNTED:
            return OperationResult(const.OCF_ERR_GENERIC,
                                   f"{sid} is not mounted (status {status}): "
                                   f"{mounted.raw_output}")

        if self.descriptor.clear_backupmode:
            backup = self.session.run(const.SQL_CHECK_BACKUP)
            active = parse_backup_mode(backup.output)
            if active is None:
                return OperationResult(const.OCF_ERR_GENERIC,
                                       f"Backup mode check failed: {backup.raw_output}")
            if active:
                Log.info(f"{sid} is in online backup mode, clearing it")
                cleared = self._sql(const.SQL_END_BACKUP, "alter database end backup")
                if sql_errors(cleared.output):
                    return OperationResult(const.OCF_ERR_GENERIC,
                                           f"Couldn't clear backup mode: {cleared.raw_output}")

        opened = self._sql(const.SQL_OPEN, "alter database open")
        result = self.probe()
        if result.level is HealthLevel.Healthy:
            return OperationResult(const.OCF_SUCCESS, result.detail)
        return OperationResult(const.OCF_ERR_GENERIC,
                               f"{sid} did not open: {opened.raw_output} {result.detail}")

    def stop(self) -> OperationResult:
        sid = self.descriptor.sid
        result = self.probe()
        if result.level is HealthLevel.Absent:
            Log.info(f"{sid} is already stopped")
            return OperationResult(const.OCF_SUCCESS, result.detail)

        attributed, attribution_error = None, None
        if self.descriptor.ipcrm == const.IPCRM_INSTANCE:
            try:
                attributed = IpcAttribution(self.session, self.descriptor.dump_dest).capture()
            except RaGenericError as e:
                attribution_error = e

        if self.descriptor.shutdown_method == const.SHUTDOWN_IMMEDIATE:
            self._sql(const.SQL_SHUTDOWN_IMMEDIATE, "shutdown immediate")
        else:
            self._sql(const.SQL_SHUTDOWN_ABORT, "shutdown abort")

        escalation = ProcessEscalation(
            self._processes,
            checks=int(Conf.get(const.RA_INDEX, "oracle.stop_checks", 5)),
            interval=float(Conf.get(const.RA_INDEX, "oracle.stop_check_interval", 2)),
            sleep=self._sleep)
        escalation.run()

        result = self.probe()
        if result.level is not HealthLevel.Absent:
            return OperationResult(const.OCF_ERR_GENERIC,
                                   f"{sid} still running after stop, cleanup skipped: "
                                   f"{result.detail}")

        cleanup = InstanceCleanup(self.descriptor, IpcCleanup(self._gateway, self.descriptor.user))
        try:
            removed = cleanup.run(attributed, attribution_error)
        except RaGenericError as e:
            return OperationResult(const.OCF_ERR_GENERIC, f"{sid} stopped, cleanup failed: {e}")
        return OperationResult(const.OCF_SUCCESS,
                               f"{sid} stopped, {removed} IPC object(s) removed")
