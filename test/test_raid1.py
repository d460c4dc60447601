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
import io
import shutil
import tempfile
import unittest
from unittest.mock import patch

from common import FakeGateway
from ra.common.conf import Conf
from ra.common.errors import RaGenericError
from ra.core import const
from ra.core.models import HealthLevel
from ra.agents.raid1 import Raid1Agent, RaidToolFamily

MDSTAT_ACTIVE = """Personalities : [raid1]
md0 : active raid1 sdb1[1] sda1[0]
      1048512 blocks [2/2] [UU]

unused devices: <none>
"""
MDSTAT_EMPTY = """Personalities : [raid1]
unused devices: <none>
"""
MDSTAT_NO_PERSONALITY = """Personalities :
unused devices: <none>
"""


class RaidTestBase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.mdstat = os.path.join(self.tmp, "mdstat")
        self.raidconf = os.path.join(self.tmp, "mdadm.conf")
        with open(self.raidconf, 'w') as f:
            f.write("ARRAY /dev/md0 devices=/dev/sda1,/dev/sdb1\n")
        self.write_mdstat(MDSTAT_ACTIVE)
        Conf.init(const.RA_INDEX, {"raid1": {"mdstat": self.mdstat}})
        Conf.unload(const.RA_INDEX)

        self.block_device = True
        self.raw_read = b"\0" * 512
        patches = [
            patch("ra.agents.raid1.FSUtils.is_block_device",
                  side_effect=lambda path: self.block_device),
            patch("ra.agents.raid1.FSUtils.read_first_block",
                  side_effect=self._read_first_block),
        ]
        for each in patches:
            each.start()
            self.addCleanup(each.stop)
        self.gateway = FakeGateway(tools=[const.MDADM, const.MODPROBE])

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def _read_first_block(self, path):
        if isinstance(self.raw_read, Exception):
            raise self.raw_read
        return self.raw_read

    def write_mdstat(self, text):
        with open(self.mdstat, 'w') as f:
            f.write(text)

    def environ(self, interval=0, check_level=0, **params):
        env = {
            "OCF_RESKEY_raidconf": self.raidconf,
            "OCF_RESKEY_raiddev": "/dev/md0",
            const.OCF_META_INTERVAL: str(interval),
            const.OCF_CHECK_LEVEL: str(check_level),
        }
        env.update({f"OCF_RESKEY_{k}": v for k, v in params.items()})
        return env

    def run_action(self, action, **kwargs):
        agent = Raid1Agent(environ=self.environ(**kwargs), out=io.StringIO(),
                           gateway=self.gateway)
        return agent.run(action), agent


class TestRaidMonitor(RaidTestBase):
    def test_missing_device_node_is_not_running_without_detail_query(self):
        self.block_device = False
        result, _ = self.run_action(const.ACTION_MONITOR)
        self.assertEqual(result.exit_code, const.OCF_NOT_RUNNING)
        self.assertEqual(self.gateway.calls, [])

    def test_array_not_in_live_table_is_not_running(self):
        self.write_mdstat(MDSTAT_EMPTY)
        result, _ = self.run_action(const.ACTION_MONITOR)
        self.assertEqual(result.exit_code, const.OCF_NOT_RUNNING)
        self.assertEqual(self.gateway.calls, [])

    def test_healthy_array(self):
        self.gateway.on(const.MDADM, "--detail", rc=0)
        result, agent = self.run_action(const.ACTION_MONITOR)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertEqual(agent.family, RaidToolFamily.Unified)
        self.assertEqual(self.gateway.calls, [(const.MDADM, "--detail", "--test", "/dev/md0")])

    def test_failed_raw_read_overrides_healthy_tool(self):
        self.gateway.on(const.MDADM, "--detail", rc=0)
        self.raw_read = RaGenericError("Raw read of '/dev/md0' failed: I/O error")
        for action in (const.ACTION_MONITOR, const.ACTION_STATUS):
            result, _ = self.run_action(action)
            self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
            self.assertIn("I/O error", result.message)

    def test_empty_raw_read_is_broken(self):
        self.raw_read = b""
        result, agent = self.run_action(const.ACTION_MONITOR)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertEqual(agent.probe().level, HealthLevel.Broken)

    def test_detail_codes_other_than_healthy_fail(self):
        for rc in (2, 4, 99):
            self.gateway.on(const.MDADM, "--detail", rc=rc, output="State : broken")
            result, _ = self.run_action(const.ACTION_MONITOR)
            self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC, rc)
            self.assertIn("State : broken", result.message)

    def test_inactive_array_is_broken(self):
        self.write_mdstat("Personalities : [raid1]\nmd0 : inactive sdb1[1](S)\n")
        result, agent = self.run_action(const.ACTION_STATUS)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertEqual(self.gateway.calls, [])


class TestRaidRecovery(RaidTestBase):
    RECOVERY = [
        (const.MDADM, "/dev/md0", "--fail", "detached"),
        (const.MDADM, "/dev/md0", "--remove", "failed"),
        (const.MDADM, "/dev/md0", "--re-add", "missing"),
    ]

    def setUp(self):
        super(TestRaidRecovery, self).setUp()
        self.gateway.on(const.MDADM, "--detail", rc=1, output="State : clean, degraded")

    def test_scheduled_deep_monitor_runs_one_recovery_pass(self):
        result, _ = self.run_action(const.ACTION_MONITOR, interval=10000, check_level=10)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertEqual(self.gateway.calls[0], (const.MDADM, "--detail", "--test", "/dev/md0"))
        self.assertEqual(self.gateway.calls[1:], self.RECOVERY)

    def test_recovery_step_failures_keep_degraded_result(self):
        self.gateway.on(const.MDADM, "/dev/md0", "--re-add", rc=1, err="cannot re-add")
        result, _ = self.run_action(const.ACTION_MONITOR, interval=10000, check_level=10)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertEqual(self.gateway.calls[1:], self.RECOVERY)

    def test_no_recovery_for_one_shot_monitor(self):
        self.run_action(const.ACTION_MONITOR, interval=0, check_level=10)
        self.assertEqual(len(self.gateway.calls), 1)

    def test_no_recovery_without_check_depth(self):
        self.run_action(const.ACTION_MONITOR, interval=10000, check_level=0)
        self.assertEqual(len(self.gateway.calls), 1)

    def test_no_recovery_from_status(self):
        result, _ = self.run_action(const.ACTION_STATUS, interval=10000, check_level=10)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertEqual(len(self.gateway.calls), 1)


class TestRaidStart(RaidTestBase):
    def test_start_when_healthy_is_noop_and_idempotent(self):
        for _ in range(2):
            result, _ = self.run_action(const.ACTION_START)
            self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertEqual(self.gateway.calls_of(const.MODPROBE), [])
        self.assertEqual([c for c in self.gateway.calls if "--assemble" in c], [])

    def test_start_assembles_stopped_array(self):
        self.write_mdstat(MDSTAT_EMPTY)
        self.gateway.on(const.MDADM, "--assemble",
                        action=lambda: self.write_mdstat(MDSTAT_ACTIVE))
        result, _ = self.run_action(const.ACTION_START, homehost="node1")
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertEqual(self.gateway.calls_of(const.MODPROBE),
                         [(const.MODPROBE, "md_mod"), (const.MODPROBE, "raid1")])
        self.assertIn((const.MDADM, "--assemble", "/dev/md0", f"--config={self.raidconf}",
                       "--homehost=node1"), self.gateway.calls)

    def test_start_accepts_degraded_array(self):
        self.write_mdstat(MDSTAT_EMPTY)
        self.gateway.on(const.MDADM, "--assemble",
                        action=lambda: self.write_mdstat(MDSTAT_ACTIVE))
        self.gateway.on(const.MDADM, "--detail", rc=1)
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)

    def test_start_on_running_degraded_array_leaves_it_alone(self):
        self.gateway.on(const.MDADM, "--detail", rc=1)
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertEqual(self.gateway.calls_of(const.MODPROBE), [])
        self.assertEqual([c for c in self.gateway.calls if "--assemble" in c], [])
        self.assertEqual([c for c in self.gateway.calls if "--re-add" in c], [])

    def test_start_fails_when_array_does_not_come_up(self):
        self.write_mdstat(MDSTAT_EMPTY)
        self.gateway.on(const.MDADM, "--assemble", rc=1, err="no devices found")
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertIn("no devices found", result.message)

    def test_start_refuses_broken_array(self):
        self.gateway.on(const.MDADM, "--detail", rc=2)
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertEqual(self.gateway.calls_of(const.MODPROBE), [])

    def test_md_module_failure_without_md_support_is_fatal(self):
        os.remove(self.mdstat)
        self.gateway.on(const.MODPROBE, "md_mod", rc=1, err="FATAL: Module md_mod not found")
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertEqual([c for c in self.gateway.calls if "--assemble" in c], [])

    def test_md_module_failure_with_md_support_warns(self):
        self.write_mdstat(MDSTAT_EMPTY)
        self.gateway.on(const.MODPROBE, "md_mod", rc=1)
        self.gateway.on(const.MDADM, "--assemble",
                        action=lambda: self.write_mdstat(MDSTAT_ACTIVE))
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)

    def test_raid1_module_failure_with_builtin_support_warns(self):
        self.write_mdstat(MDSTAT_EMPTY)
        self.gateway.on(const.MODPROBE, "raid1", rc=1)
        self.gateway.on(const.MDADM, "--assemble",
                        action=lambda: self.write_mdstat(MDSTAT_ACTIVE))
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)

    def test_raid1_module_failure_without_support_is_fatal(self):
        self.write_mdstat(MDSTAT_NO_PERSONALITY)
        self.gateway.on(const.MODPROBE, "raid1", rc=1)
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertEqual([c for c in self.gateway.calls if "--assemble" in c], [])


class TestRaidStop(RaidTestBase):
    def test_stop_when_absent_issues_no_command(self):
        self.write_mdstat(MDSTAT_EMPTY)
        result, _ = self.run_action(const.ACTION_STOP)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertEqual(self.gateway.calls, [])

    def test_stop(self):
        self.gateway.on(const.MDADM, "--stop", action=lambda: self.write_mdstat(MDSTAT_EMPTY))
        result, _ = self.run_action(const.ACTION_STOP)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertIn((const.MDADM, "--stop", "/dev/md0", f"--config={self.raidconf}"),
                      self.gateway.calls)

    def test_failed_stop_falls_back_to_readonly(self):
        self.gateway.on(const.MDADM, "--stop", rc=1, err="Device or resource busy")
        result, _ = self.run_action(const.ACTION_STOP)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)
        self.assertIn("Device or resource busy", result.message)
        self.assertEqual(self.gateway.calls[-1],
                         (const.MDADM, "--readonly", "/dev/md0", f"--config={self.raidconf}"))

    def test_stop_fails_when_array_is_still_listed(self):
        result, _ = self.run_action(const.ACTION_STOP)
        self.assertEqual(result.exit_code, const.OCF_ERR_GENERIC)


class TestRaidLegacyTools(RaidTestBase):
    def setUp(self):
        super(TestRaidLegacyTools, self).setUp()
        self.gateway = FakeGateway(tools=[const.RAIDSTART, const.RAIDSTOP, const.MODPROBE])

    def test_monitor_uses_live_table_and_raw_read_only(self):
        result, agent = self.run_action(const.ACTION_MONITOR)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertEqual(agent.family, RaidToolFamily.Legacy)
        self.assertEqual(self.gateway.calls, [])

    def test_start_and_stop(self):
        self.write_mdstat(MDSTAT_EMPTY)
        self.gateway.on(const.RAIDSTART, action=lambda: self.write_mdstat(MDSTAT_ACTIVE))
        self.gateway.on(const.RAIDSTOP, action=lambda: self.write_mdstat(MDSTAT_EMPTY))
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertIn((const.RAIDSTART, "--configfile", self.raidconf, "/dev/md0"),
                      self.gateway.calls)
        result, _ = self.run_action(const.ACTION_STOP)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertIn((const.RAIDSTOP, "--configfile", self.raidconf, "/dev/md0"),
                      self.gateway.calls)


class TestRaidConfiguration(RaidTestBase):
    def test_missing_tools(self):
        self.gateway = FakeGateway(tools=[const.MODPROBE])
        result, _ = self.run_action(const.ACTION_MONITOR)
        self.assertEqual(result.exit_code, const.OCF_ERR_INSTALLED)

    def test_missing_required_parameter(self):
        agent = Raid1Agent(environ={"OCF_RESKEY_raiddev": "/dev/md0"}, gateway=self.gateway)
        result = agent.run(const.ACTION_MONITOR)
        self.assertEqual(result.exit_code, const.OCF_ERR_CONFIGURED)
        self.assertIn("raidconf", result.message)

    def test_unreadable_config_file(self):
        os.remove(self.raidconf)
        result, _ = self.run_action(const.ACTION_START)
        self.assertEqual(result.exit_code, const.OCF_ERR_CONFIGURED)
        self.assertEqual(self.gateway.calls, [])

    def test_validate_all_does_not_touch_the_array(self):
        self.block_device = False
        result, _ = self.run_action(const.ACTION_VALIDATE)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        self.assertEqual(self.gateway.calls, [])

    def test_unknown_action(self):
        result, _ = self.run_action("promote")
        self.assertEqual(result.exit_code, const.OCF_ERR_UNIMPLEMENTED)

    def test_meta_data(self):
        out = io.StringIO()
        result = Raid1Agent(environ={}, out=out).run(const.ACTION_META_DATA)
        self.assertEqual(result.exit_code, const.OCF_SUCCESS)
        xml = out.getvalue()
        self.assertIn('<resource-agent name="Raid1"', xml)
        self.assertIn('<parameter name="raiddev" unique="1" required="1">', xml)
        self.assertIn('<action name="monitor" timeout="60s" interval="60s" depth="10" />', xml)
