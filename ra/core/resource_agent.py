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
from abc import ABC, abstractmethod
from contextlib import ExitStack
from typing import List

from ra.common.log import Log
from ra.common.errors import RaError
from ra.core import const
from ra.core.metadata import MetaData
from ra.core.models import HealthLevel, OperationResult, ProbeResult, RecoveryOutcome
from ra.core.parameters import ActionSpec, Parameter, Parameters


class ResourceAgent(ABC):
    """
    Lifecycle controller shared by the agents.

    One instance serves one invocation: run() loads and validates the
    configuration, prepares the environment, dispatches the action to its
    handler and turns the outcome into an OperationResult. Every handler
    starts from a fresh probe, nothing is remembered between invocations.
    """

    NAME = None
    VERSION = const.RA_VERSION
    SHORTDESC = ""
    LONGDESC = ""
    PARAMETERS: List[Parameter] = []
    ACTIONS: List[ActionSpec] = []

    def __init__(self, environ=None, out=None):
        self._environ = os.environ if environ is None else environ
        self._out = out or sys.stdout
        self.params = {}
        self.context = None
        self._handlers = {
            const.ACTION_START: self.start,
            const.ACTION_STOP: self.stop,
            const.ACTION_MONITOR: self.monitor,
            const.ACTION_STATUS: self.status,
            const.ACTION_VALIDATE: self.validate_all,
        }
        self._static_handlers = {
            const.ACTION_META_DATA: self.meta_data,
            const.ACTION_USAGE: self.usage,
            const.ACTION_HELP: self.usage,
        }

    def run(self, action: str) -> OperationResult:
        """Perform one action to completion."""
        if action in self._static_handlers:
            return self._static_handlers[action]()
        handler = self._handlers.get(action)
        if handler is None:
            return self.unimplemented(action)
        try:
            self.context = Parameters.context(action, self._environ)
            self.params = Parameters.load(self.PARAMETERS, self._environ)
            with ExitStack() as stack:
                self.setup(stack)
                result = handler()
        except RaError as e:
            result = OperationResult(e.rc, e.desc)
        Log.info(f"{self.NAME} {action}: rc={result.exit_code} {result.message}")
        return result

    @abstractmethod
    def setup(self, stack: ExitStack):
        """
        Configuration and environment checks, done before any probing.

        Temporary artifacts are registered on stack so they are released on
        every exit path.
        """
        pass

    @abstractmethod
    def probe(self) -> ProbeResult:
        pass

    @abstractmethod
    def start(self) -> OperationResult:
        pass

    @abstractmethod
    def stop(self) -> OperationResult:
        pass

    def recover(self, probe: ProbeResult) -> RecoveryOutcome:
        """Bounded remediation for a degraded resource. Nothing by default."""
        return RecoveryOutcome(attempted=False)

    def monitor(self) -> OperationResult:
        return self._check(allow_recovery=True)

    def status(self) -> OperationResult:
        return self._check(allow_recovery=False)

    def validate_all(self) -> OperationResult:
        return OperationResult(const.OCF_SUCCESS, "Configuration is valid")

    def _check(self, allow_recovery: bool) -> OperationResult:
        result = self.probe()
        Log.debug(f"Probe: {result.level} {result.detail}")
        if result.level is HealthLevel.Healthy:
            return OperationResult(const.OCF_SUCCESS, result.detail)
        if result.level is HealthLevel.Absent:
            return OperationResult(const.OCF_NOT_RUNNING, result.detail)
        if result.level is HealthLevel.Degraded and allow_recovery:
            try:
                outcome = self.recover(result)
                if outcome.attempted:
                    Log.info(f"Recovery attempted: {outcome.action_taken}")
            except RaError as e:
                Log.warn(f"Recovery failed: {e}")
        return OperationResult(const.OCF_ERR_GENERIC, result.detail)

    def meta_data(self) -> OperationResult:
        self._out.write(MetaData.render(type(self)))
        return OperationResult(const.OCF_SUCCESS)

    def usage(self) -> OperationResult:
        self._out.write(self.usage_text() + "\n")
        return OperationResult(const.OCF_SUCCESS)

    def unimplemented(self, action: str) -> OperationResult:
        Log.error(f"Action '{action}' is not implemented. {self.usage_text()}")
        return OperationResult(const.OCF_ERR_UNIMPLEMENTED,
                               f"Action '{action}' is not implemented")

    def usage_text(self) -> str:
        actions = list(dict.fromkeys(action.name for action in self.ACTIONS))
        return f"usage: {self.NAME} {{{'|'.join(actions)}}}"
