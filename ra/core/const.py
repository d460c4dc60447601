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

# Exit codes
OCF_SUCCESS = 0
OCF_ERR_GENERIC = 1
OCF_ERR_ARGS = 2
OCF_ERR_UNIMPLEMENTED = 3
OCF_ERR_PERM = 4
OCF_ERR_INSTALLED = 5
OCF_ERR_CONFIGURED = 6
OCF_NOT_RUNNING = 7

# Actions
ACTION_START = "start"
ACTION_STOP = "stop"
ACTION_MONITOR = "monitor"
ACTION_STATUS = "status"
ACTION_VALIDATE = "validate-all"
ACTION_META_DATA = "meta-data"
ACTION_USAGE = "usage"
ACTION_HELP = "help"

# Environment
OCF_RESKEY_PREFIX = "OCF_RESKEY_"
OCF_META_INTERVAL = "OCF_RESKEY_CRM_meta_interval"
OCF_CHECK_LEVEL = "OCF_CHECK_LEVEL"
OCF_RESOURCE_INSTANCE = "OCF_RESOURCE_INSTANCE"
RA_CONF_ENV = "RA_CONF"

# Config
RA_INDEX = "RA"
RA_CONF = "/etc/cortx/ra/ra.yaml"
RA_VERSION = "1.0"
RA_DEFAULTS = {
    "log": {
        "level": "INFO",
        "log_path": None,
        "syslog": True,
        "syslog_server": None,
        "syslog_port": None,
        "console": False,
        "total_files": 10,
        "file_size": 10,
    },
    "raid1": {
        "mdstat": "/proc/mdstat",
    },
    "oracle": {
        "oratab": "/etc/oratab",
        "stop_checks": 5,
        "stop_check_interval": 2,
    },
}

# Tools
MDADM = "mdadm"
RAIDSTART = "raidstart"
RAIDSTOP = "raidstop"
MODPROBE = "modprobe"
SQLPLUS = "sqlplus"
IPCS = "ipcs"
IPCRM = "ipcrm"
SU = "su"
SHELL = "/bin/sh"

# RAID
MD_MODULE = "md_mod"
RAID1_MODULE = "raid1"
RAID1_PERSONALITY = "raid1"
DETAIL_HEALTHY = 0
DETAIL_DEGRADED = 1
DETAIL_DEAD = 2
DETAIL_ERROR = 4

# Oracle
ORA_STATUS_OPEN = "OPEN"
ORA_STATUS_MOUNTED = "MOUNTED"
ORA_STATUS_STARTED = "STARTED"
ORA_STATUS_LIST = [ORA_STATUS_OPEN, ORA_STATUS_MOUNTED, ORA_STATUS_STARTED]
ORA_BACKUP_ACTIVE = "ACTIVE"
IPCRM_NONE = "none"
IPCRM_INSTANCE = "instance"
IPCRM_ORAUSER = "orauser"
IPCRM_POLICIES = [IPCRM_NONE, IPCRM_INSTANCE, IPCRM_ORAUSER]
SHUTDOWN_ABORT = "checkpoint/abort"
SHUTDOWN_IMMEDIATE = "immediate"
SHUTDOWN_METHODS = [SHUTDOWN_ABORT, SHUTDOWN_IMMEDIATE]
TRACE_SUFFIX = ".trc"
LOCK_FILE_PATTERNS = ["lk{sid}*", "sgadef{sid}*"]

# SQL*Plus scripts
SQL_PREAMBLE = ("connect / as sysdba\n"
                "set feedback off heading off pagesize 0 linesize 256 trimout on\n")
SQL_GET_STATUS = "select status from v$instance;"
SQL_STARTUP_MOUNT = "startup mount"
SQL_MOUNT = "alter database mount;"
SQL_OPEN = "alter database open;"
SQL_CHECK_BACKUP = "select distinct status from v$backup where status = 'ACTIVE';"
SQL_END_BACKUP = "alter database end backup;"
SQL_SHUTDOWN_ABORT = "alter system checkpoint;\nshutdown abort"
SQL_SHUTDOWN_IMMEDIATE = "shutdown immediate"
SQL_FORCE_ABORT = "shutdown abort"
SQL_DUMP_DEST = "select value from v$parameter where name = 'user_dump_dest';"
SQL_DUMP_IPC = "oradebug setmypid\noradebug ipc"
SQL_ERROR_PREFIXES = ("ORA-", "SP2-", "ERROR")
