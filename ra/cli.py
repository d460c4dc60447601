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
import sys
import argparse

from ra.common.log import Log
from ra.common.conf import Conf
from ra.common.payload import Yaml
from ra.core import const
from ra.agents.raid1 import Raid1Agent
from ra.agents.oracle import OracleAgent

AGENTS = {
    "raid1": Raid1Agent,
    "oracle": OracleAgent,
}


def load_config(environ=None):
    """Agent defaults, overridden by the YAML file when present."""
    environ = os.environ if environ is None else environ
    Conf.init(const.RA_INDEX, const.RA_DEFAULTS)
    conf_file = environ.get(const.RA_CONF_ENV, const.RA_CONF)
    if os.path.isfile(conf_file) and not Conf.loaded(const.RA_INDEX):
        Conf.load(const.RA_INDEX, Yaml(conf_file))


def init_log(agent_name, environ=None):
    environ = os.environ if environ is None else environ
    instance = environ.get(const.OCF_RESOURCE_INSTANCE)
    Log.init(f"ra-{agent_name}" + (f"-{instance}" if instance else ""),
             log_path=Conf.get(const.RA_INDEX, "log.log_path"),
             level=Conf.get(const.RA_INDEX, "log.level", "INFO"),
             syslog_server=Conf.get(const.RA_INDEX, "log.syslog_server"),
             syslog_port=Conf.get(const.RA_INDEX, "log.syslog_port"),
             syslog=Conf.get(const.RA_INDEX, "log.syslog", False),
             console=Conf.get(const.RA_INDEX, "log.console", False),
             backup_count=Conf.get(const.RA_INDEX, "log.total_files", 10),
             file_size_in_mb=Conf.get(const.RA_INDEX, "log.file_size", 10))


def run(agent_name, argv, environ=None) -> int:
    """
    Run one action of one agent.

    :param agent_name: key of AGENTS
    :param argv: command line arguments after the program name
    :returns: exit code
    """
    parser = argparse.ArgumentParser(prog=f"ra-{agent_name}",
                                     description=f"{agent_name} resource agent")
    parser.add_argument("action", nargs="?", default=const.ACTION_USAGE,
                        help="start|stop|monitor|status|validate-all|meta-data|usage")
    args = parser.parse_args(argv)

    try:
        load_config(environ)
        init_log(agent_name, environ)
    except Exception as e:
        sys.stderr.write(f"ra-{agent_name}: unable to initialize: {e}\n")
        return const.OCF_ERR_CONFIGURED

    agent = AGENTS[agent_name](environ=environ)
    try:
        result = agent.run(args.action)
    except Exception as e:
        Log.error(f"{agent_name} {args.action} failed")
        Log.exception(e)
        return const.OCF_ERR_GENERIC
    return result.exit_code


def raid1():
    sys.exit(run("raid1", sys.argv[1:]))


def oracle():
    sys.exit(run("oracle", sys.argv[1:]))


def main():
    parser = argparse.ArgumentParser(prog="ra", description="CORTX cluster resource agents")
    parser.add_argument("agent", choices=sorted(AGENTS))
    parser.add_argument("action", nargs="?", default=const.ACTION_USAGE)
    args = parser.parse_args()
    sys.exit(run(args.agent, [args.action]))
