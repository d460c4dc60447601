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

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
from ra.common.errors import RaNotInstalled  # noqa: E402
from ra.core.gateway import CommandResult, ExecContext  # noqa: E402


class FakeGateway:
    """
    Scripted stand-in for CommandGateway.

    Responses are matched on tool, leading arguments and, for scripts fed on
    stdin, a substring of the script. The most recently registered response
    wins. Every invocation is recorded in calls.
    """

    def __init__(self, tools=()):
        self.tools = set(tools)
        self.calls = []
        self.scripts = []
        self._responses = []
        self.context = ExecContext()

    def on(self, tool, *args, sql=None, rc=0, output="", err="", action=None):
        self._responses.insert(0, (tool, args, sql, rc, output, err, action))
        return self

    def has(self, tool):
        return tool in self.tools

    def require(self, *tools):
        missing = [tool for tool in tools if not self.has(tool)]
        if missing:
            raise RaNotInstalled(f"Required tool(s) not installed: {', '.join(missing)}")

    def invoke(self, tool, *args, input=None):
        self.require(tool)
        self.calls.append((tool,) + args)
        self.scripts.append(input)
        for r_tool, r_args, sql, rc, output, err, action in self._responses:
            if r_tool != tool or args[:len(r_args)] != r_args:
                continue
            if sql is not None and (input is None or sql not in input):
                continue
            if action is not None:
                action()
            if callable(output):
                output = output()
            return CommandResult(tool, tuple(args), output, err, rc)
        return CommandResult(tool, tuple(args), "", "", 0)

    def calls_of(self, tool):
        return [call for call in self.calls if call[0] == tool]

    def sql_issued(self, statement):
        return [script for script in self.scripts if script and statement in script]


class FakeProc:
    def __init__(self, world, pid):
        self._world = world
        self.pid = pid

    def terminate(self):
        self._world.signals.append(("TERM", self.pid))
        if not self._world.ignores_term:
            self._world.running = False

    def kill(self):
        self._world.signals.append(("KILL", self.pid))
        if not self._world.unkillable:
            self._world.running = False


class FakeProcesses:
    """Process table of one instance: running or not, with signal behaviour."""

    def __init__(self, running=False, ignores_term=False, unkillable=False):
        self.running = running
        self.ignores_term = ignores_term
        self.unkillable = unkillable
        self.signals = []

    def pmon_running(self):
        return self.running

    def instance_processes(self):
        if not self.running:
            return []
        return [FakeProc(self, 101), FakeProc(self, 102)]
