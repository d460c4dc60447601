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
import shlex
import shutil
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from ra.common.log import Log
from ra.common.errors import RaNotInstalled
from ra.common.process import SimpleProcess, RC_NOT_FOUND
from ra.core import const


@dataclass(frozen=True)
class ExecContext:
    """
    Environment every external invocation runs with.

    Built once per invocation from the resource descriptor and never mutated;
    the agent process environment is left untouched.
    """

    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    user: Optional[str] = None
    env_file: Optional[str] = None

    def process_env(self) -> Dict[str, str]:
        merged = dict(os.environ)
        merged.update(self.env)
        return merged


@dataclass(frozen=True)
class CommandResult:
    tool: str
    args: Tuple[str, ...]
    output: str
    err: str
    rc: int

    @property
    def ok(self) -> bool:
        return self.rc == 0

    @property
    def raw_output(self) -> str:
        return "\n".join(part for part in (self.output.strip(), self.err.strip()) if part)


class CommandGateway:
    """
    Invokes management tools and normalizes their output.

    Tools are located once at construction. A non-zero return code is not an
    error here: callers classify it. A tool that is absent, either at
    location time or when executed, raises RaNotInstalled.
    """

    def __init__(self, tools: Mapping[str, Optional[str]], context: ExecContext = None):
        self._tools = dict(tools)
        self._context = context or ExecContext()

    @staticmethod
    def locate(names: Iterable[str], path: str = None) -> Dict[str, Optional[str]]:
        """Resolve tool names to absolute paths, None for the missing ones."""
        located = {}
        for name in names:
            located[name] = shutil.which(name, path=path)
            Log.debug(f"Tool {name}: {located[name]}")
        return located

    @property
    def context(self) -> ExecContext:
        return self._context

    def has(self, tool: str) -> bool:
        return self._tools.get(tool) is not None

    def require(self, *tools: str):
        missing = [tool for tool in tools if not self.has(tool)]
        if missing:
            raise RaNotInstalled(f"Required tool(s) not installed: {', '.join(missing)}")

    def invoke(self, tool: str, *args: str, input: str = None) -> CommandResult:
        """
        Run a management tool.

        :param tool: tool name as registered at construction
        :param args: arguments
        :param input: text fed to the tool on stdin
        :returns: CommandResult with raw output and return code
        """
        self.require(tool)
        cmd = [self._tools[tool], *args]
        env = None
        if self._context.user:
            script = shlex.join(cmd)
            if self._context.env_file:
                script = f". {shlex.quote(self._context.env_file)}; exec {script}"
            cmd = [const.SU, "-s", const.SHELL, self._context.user, "-c", script]
        else:
            env = self._context.process_env()
        Log.debug(f"executing command :- {' '.join(cmd)}")
        output, err, rc = SimpleProcess(cmd).run(universal_newlines=True, env=env,
                                                 input=input)
        if rc == RC_NOT_FOUND:
            raise RaNotInstalled(f"{tool} could not be executed: {err.strip()}")
        result = CommandResult(tool, tuple(args), output or "", err or "", rc)
        Log.debug(f"{tool} returned {rc}: {result.raw_output}")
        return result
