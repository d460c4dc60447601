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

from enum import Enum
from dataclasses import dataclass
from typing import Optional


class HealthLevel(Enum):
    """Operational state of a managed resource, recomputed on every call."""

    Absent = 0
    Degraded = 1
    Healthy = 2
    Broken = 3

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class ProbeResult:
    level: HealthLevel
    detail: str = ""
    # failed-device code, instance status string, ...
    recoverable_hint: Optional[str] = None


@dataclass(frozen=True)
class RecoveryOutcome:
    attempted: bool
    action_taken: str = ""
    # Remediation is verified by the next poll, never in-line.
    verified: bool = False


class IPCKind(Enum):
    SharedMemory = "m"
    Semaphore = "s"
    MessageQueue = "q"


@dataclass(frozen=True)
class IPCObjectRecord:
    kind: IPCKind
    id: int
    owner: Optional[str] = None


@dataclass(frozen=True)
class OperationResult:
    exit_code: int
    message: str = ""


@dataclass(frozen=True)
class InvocationContext:
    """What the cluster manager asked for in this invocation."""

    action: str
    interval_ms: int = 0
    check_level: int = 0
    instance: Optional[str] = None

    @property
    def is_recurring(self) -> bool:
        return self.interval_ms > 0
