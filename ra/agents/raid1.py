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
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ra.common.log import Log
from ra.common.conf import Conf
from ra.common.errors import RaConfigurationMissing, RaGenericError, RaNotInstalled
from ra.common.fs_utils import FSUtils
from ra.core import const
from ra.core.gateway import CommandGateway
from ra.core.models import (HealthLevel, InvocationContext, OperationResult,
                            ProbeResult, RecoveryOutcome)
from ra.core.parameters import ActionSpec, Parameter
from ra.core.resource_agent import ResourceAgent
from ra.agents.parsers import classify_detail_rc, parse_mdstat

HINT_FAILED_MEMBER = "failed-member"


class RaidToolFamily(Enum):
    """Management toolset installed on the node, chosen once per invocation."""

    Legacy = "raidtools"
    Unified = "mdadm"

    @staticmethod
    def resolve(gateway: CommandGateway) -> "RaidToolFamily":
        if gateway.has(const.MDADM):
            return RaidToolFamily.Unified
        if gateway.has(const.RAIDSTART) and gateway.has(const.RAIDSTOP):
            return RaidToolFamily.Legacy
        raise RaNotInstalled("Neither mdadm nor raidstart/raidstop is installed")


@dataclass(frozen=True)
class RaidDescriptor:
    raidconf: str
    raiddev: str
    homehost: Optional[str] = None

    @property
    def array_name(self) -> str:
        return os.path.basename(os.path.realpath(self.raiddev))


class RaidProber:
    """Classifies the array: device node, live array table, tool health, raw read."""

    def __init__(self, descriptor: RaidDescriptor, gateway: CommandGateway,
                 family: RaidToolFamily, mdstat: str):
        self._descriptor = descriptor
        self._gateway = gateway
        self._family = family
        self._mdstat = mdstat

    def read_mdstat(self) -> Optional[str]:
        try:
            with open(self._mdstat, 'r') as f:
                return f.read()
        except OSError as e:
            Log.debug(f"Unable to read {self._mdstat}: {e}")
            return None

    def personalities(self) -> set:
        text = self.read_mdstat()
        return parse_mdstat(text)[1] if text is not None else set()

    def probe(self) -> ProbeResult:
        dev = self._descriptor.raiddev
        if not FSUtils.is_block_device(dev):
            return ProbeResult(HealthLevel.Absent, f"Block device {dev} does not exist")

        text = self.read_mdstat()
        if text is None:
            return ProbeResult(HealthLevel.Absent, f"{self._mdstat} is not available")
        arrays, _ = parse_mdstat(text)
        name = self._descriptor.array_name
        if name not in arrays:
            return ProbeResult(HealthLevel.Absent, f"{name} is not listed in {self._mdstat}")
        if arrays[name] != "active":
            return ProbeResult(HealthLevel.Broken, f"{name} is {arrays[name]} in {self._mdstat}")

        level, hint = HealthLevel.Healthy, None
        detail = f"{dev} is active"
        if self._family is RaidToolFamily.Unified:
            result = self._gateway.invoke(const.MDADM, "--detail", "--test", dev)
            level = classify_detail_rc(result.rc)
            if result.rc == const.DETAIL_DEGRADED:
                hint = HINT_FAILED_MEMBER
            detail = f"mdadm --detail --test {dev} returned {result.rc}: {result.raw_output}"

        # A failing read overrides whatever the tool reported.
        try:
            block = FSUtils.read_first_block(dev)
        except RaGenericError as e:
            return ProbeResult(HealthLevel.Broken, str(e))
        if not block:
            return ProbeResult(HealthLevel.Broken, f"Raw read of {dev} returned no data")
        return ProbeResult(level, detail, hint)


class RaidRecovery:
    """
    One pass of member re-addition for a degraded array.

    Issued at most once per invocation, never retried and never verified in
    line: the next scheduled monitor observes the result.
    """

    STEPS = [("--fail", "detached"), ("--remove", "failed"), ("--re-add", "missing")]

    def __init__(self, descriptor: RaidDescriptor, gateway: CommandGateway,
                 family: RaidToolFamily):
        self._descriptor = descriptor
        self._gateway = gateway
        self._family = family

    def applicable(self, context: InvocationContext, probe: ProbeResult) -> bool:
        return (self._family is RaidToolFamily.Unified
                and probe.recoverable_hint == HINT_FAILED_MEMBER
                and context.action == const.ACTION_MONITOR
                and context.check_level > 0
                and context.is_recurring)

    @Log.trace_method(Log.DEBUG)
    def run(self) -> RecoveryOutcome:
        dev = self._descriptor.raiddev
        Log.info(f"Attempting recovery sequence to re-add devices on {dev}")
        taken = []
        for option, target in self.STEPS:
            result = self._gateway.invoke(const.MDADM, dev, option, target)
            if not result.ok:
                Log.warn(f"mdadm {dev} {option} {target} returned {result.rc}: "
                         f"{result.raw_output}")
            taken.append(f"{option} {target}")
        return RecoveryOutcome(attempted=True, action_taken=", ".join(taken))


class Raid1Agent(ResourceAgent):
    NAME = "Raid1"
    SHORTDESC = "Manages a software RAID1 device"
    LONGDESC = ("Resource script for RAID1. It manages a software RAID1 device "
                "on a shared storage medium.")
    PARAMETERS = [
        Parameter("raidconf", required=True,
                  shortdesc="RAID config file",
                  longdesc="The RAID configuration file, e.g. /etc/mdadm.conf."),
        Parameter("raiddev", required=True, unique=True,
                  shortdesc="block device",
                  longdesc="The block device to use."),
        Parameter("homehost",
                  shortdesc="Homehost for mdadm",
                  longdesc="The value for the homehost directive; this is an mdadm "
                           "feature to protect RAIDs against being activated by "
                           "accident."),
    ]
    ACTIONS = [
        ActionSpec(const.ACTION_START, 20),
        ActionSpec(const.ACTION_STOP, 20),
        ActionSpec(const.ACTION_STATUS, 20, interval=10, depth=0),
        ActionSpec(const.ACTION_MONITOR, 20, interval=10, depth=0),
        ActionSpec(const.ACTION_MONITOR, 60, interval=60, depth=10),
        ActionSpec(const.ACTION_VALIDATE, 5),
        ActionSpec(const.ACTION_META_DATA, 5),
    ]
    TOOLS = [const.MDADM, const.RAIDSTART, const.RAIDSTOP, const.MODPROBE]

    def __init__(self, environ=None, out=None, gateway: CommandGateway = None):
        super(Raid1Agent, self).__init__(environ, out)
        self._gateway = gateway
        self._mdstat = None
        self.descriptor = None
        self.family = None
        self.prober = None
        self.recovery = None

    def setup(self, stack: ExitStack):
        self.descriptor = RaidDescriptor(**self.params)
        if not os.access(self.descriptor.raidconf, os.R_OK):
            raise RaConfigurationMissing(
                f"RAID config file {self.descriptor.raidconf} is not readable")
        if self._gateway is None:
            self._gateway = CommandGateway(CommandGateway.locate(self.TOOLS))
        self.family = RaidToolFamily.resolve(self._gateway)
        Log.debug(f"Using {self.family.value} for {self.descriptor.raiddev}")
        self._mdstat = Conf.get(const.RA_INDEX, "raid1.mdstat", "/proc/mdstat")
        self.prober = RaidProber(self.descriptor, self._gateway, self.family, self._mdstat)
        self.recovery = RaidRecovery(self.descriptor, self._gateway, self.family)

    def probe(self) -> ProbeResult:
        return self.prober.probe()

    def recover(self, probe: ProbeResult) -> RecoveryOutcome:
        if not self.recovery.applicable(self.context, probe):
            return RecoveryOutcome(attempted=False)
        return self.recovery.run()

    def start(self) -> OperationResult:
        """
        Assemble the array unless it is already up.

        A running Degraded array counts as started: assembling it again would
        not bring back the missing member, and the next recurring monitor
        re-adds it. A Broken array is refused.
        """
        result = self.probe()
        if result.level in (HealthLevel.Healthy, HealthLevel.Degraded):
            Log.info(f"{self.descriptor.raiddev} is already running")
            return OperationResult(const.OCF_SUCCESS, result.detail)
        if result.level is HealthLevel.Broken:
            return OperationResult(const.OCF_ERR_GENERIC,
                                   f"Refusing to start a broken array: {result.detail}")

        self._load_modules()
        assembled = self._assemble()
        result = self.probe()
        if result.level in (HealthLevel.Healthy, HealthLevel.Degraded):
            return OperationResult(const.OCF_SUCCESS, result.detail)
        return OperationResult(const.OCF_ERR_GENERIC,
                               f"Couldn't start RAID for {self.descriptor.raiddev}: "
                               f"{assembled.raw_output} {result.detail}".strip())

    def stop(self) -> OperationResult:
        result = self.probe()
        if result.level is HealthLevel.Absent:
            Log.info(f"{self.descriptor.raiddev} is already stopped")
            return OperationResult(const.OCF_SUCCESS, result.detail)

        dev, conf = self.descriptor.raiddev, self.descriptor.raidconf
        if self.family is RaidToolFamily.Unified:
            stopped = self._gateway.invoke(const.MDADM, "--stop", dev, f"--config={conf}")
        else:
            stopped = self._gateway.invoke(const.RAIDSTOP, "--configfile", conf, dev)
        if not stopped.ok:
            Log.error(f"Couldn't stop RAID for {dev} (rc={stopped.rc}): {stopped.raw_output}")
            if self.family is RaidToolFamily.Unified:
                readonly = self._gateway.invoke(const.MDADM, "--readonly", dev,
                                                f"--config={conf}")
                if not readonly.ok:
                    Log.error(f"Couldn't set {dev} read-only: {readonly.raw_output}")
            return OperationResult(const.OCF_ERR_GENERIC,
                                   f"Couldn't stop RAID for {dev}: {stopped.raw_output}")

        result = self.probe()
        if result.level is HealthLevel.Absent:
            return OperationResult(const.OCF_SUCCESS, result.detail)
        return OperationResult(const.OCF_ERR_GENERIC,
                               f"{dev} still present after stop: {result.detail}")

    def _load_modules(self):
        loaded = self._gateway.invoke(const.MODPROBE, const.MD_MODULE)
        if not loaded.ok:
            if self.prober.read_mdstat() is None:
                raise RaGenericError(f"Couldn't load {const.MD_MODULE} module: "
                                     f"{loaded.raw_output}")
            Log.warn(f"Couldn't load {const.MD_MODULE} module, md support is already active")
        loaded = self._gateway.invoke(const.MODPROBE, const.RAID1_MODULE)
        if not loaded.ok:
            if const.RAID1_PERSONALITY not in self.prober.personalities():
                raise RaGenericError(f"Couldn't load {const.RAID1_MODULE} module and "
                                     f"RAID1 support is not built in: {loaded.raw_output}")
            Log.warn(f"Couldn't load {const.RAID1_MODULE} module, using built in support")

    def _assemble(self):
        dev, conf = self.descriptor.raiddev, self.descriptor.raidconf
        if self.family is RaidToolFamily.Legacy:
            started = self._gateway.invoke(const.RAIDSTART, "--configfile", conf, dev)
        else:
            args = ["--assemble", dev, f"--config={conf}"]
            if self.descriptor.homehost:
                args.append(f"--homehost={self.descriptor.homehost}")
            started = self._gateway.invoke(const.MDADM, *args)
        if not started.ok:
            Log.error(f"Couldn't assemble {dev} (rc={started.rc}): {started.raw_output}")
        return started
