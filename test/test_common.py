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
import mmap
import errno
import shutil
import logging
import tempfile
import unittest
from unittest.mock import patch

import yaml

import common  # noqa: F401
from ra.common.conf import Conf
from ra.common.errors import RaConfigurationMissing, RaGenericError
from ra.common.fs_utils import FSUtils
from ra.common.log import Log
from ra.common.payload import Dict, Payload, Yaml
from ra.common.process import RC_NOT_FOUND, SimpleProcess


class TestConf(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.conf_file = os.path.join(self.tmp, "ra.yaml")
        with open(self.conf_file, 'w') as f:
            yaml.safe_dump({"oracle": {"stop_checks": 2}, "log": {"level": "DEBUG"}}, f)
        Conf.unload("TEST")
        Conf.init("TEST", {"oracle": {"stop_checks": 5, "oratab": "/etc/oratab"}})

    def tearDown(self):
        Conf.unload("TEST")
        shutil.rmtree(self.tmp)

    def test_defaults_only(self):
        self.assertFalse(Conf.loaded("TEST"))
        self.assertEqual(Conf.get("TEST", "oracle.stop_checks"), 5)
        self.assertIsNone(Conf.get("TEST", "oracle.missing"))
        self.assertEqual(Conf.get("TEST", "oracle.missing", 7), 7)
        self.assertEqual(Conf.get("OTHER", "oracle.stop_checks", 3), 3)

    def test_file_overrides_defaults(self):
        Conf.load("TEST", Yaml(self.conf_file))
        self.assertTrue(Conf.loaded("TEST"))
        self.assertEqual(Conf.get("TEST", "oracle.stop_checks"), 2)
        self.assertEqual(Conf.get("TEST", "oracle.oratab"), "/etc/oratab")
        self.assertEqual(Conf.get("TEST", "log.level"), "DEBUG")

    def test_missing_file(self):
        with self.assertRaises(RaConfigurationMissing):
            Conf.load("TEST", Yaml(os.path.join(self.tmp, "nothing.yaml")))

    def test_load_twice(self):
        Conf.load("TEST", Yaml(self.conf_file))
        with self.assertRaises(Exception):
            Conf.load("TEST", Yaml(self.conf_file))
        Conf.load("TEST", Dict({"oracle": {"stop_checks": 9}}), force=True)
        self.assertEqual(Conf.get("TEST", "oracle.stop_checks"), 9)

    def test_empty_yaml(self):
        open(self.conf_file, 'w').close()
        self.assertEqual(Payload(Yaml(self.conf_file)).get("oracle"), None)


class TestSimpleProcess(unittest.TestCase):
    def test_output_and_rc(self):
        output, err, rc = SimpleProcess(["sh", "-c", "echo out; echo err >&2; exit 3"]).run(
            universal_newlines=True)
        self.assertEqual((output, err, rc), ("out\n", "err\n", 3))

    def test_input(self):
        output, _, rc = SimpleProcess(["cat"]).run(universal_newlines=True, input="hello")
        self.assertEqual((output, rc), ("hello", 0))

    def test_missing_binary(self):
        _, err, rc = SimpleProcess(["/nonexistent/raidstart"]).run(universal_newlines=True)
        self.assertEqual(rc, RC_NOT_FOUND)
        self.assertIn("SubProcess Error", err)


class TestFSUtils(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def test_block_device(self):
        self.assertFalse(FSUtils.is_block_device(self.tmp))
        self.assertFalse(FSUtils.is_block_device(os.path.join(self.tmp, "md0")))

    @patch("ra.common.fs_utils.os.close")
    @patch("ra.common.fs_utils.os.readv")
    @patch("ra.common.fs_utils.os.open", return_value=42)
    def test_read_first_block_bypasses_page_cache(self, mock_open, mock_readv, mock_close):
        sizes = []

        def fill(fd, buffers):
            sizes.append(len(buffers[0]))
            buffers[0].write(b"x" * 512)
            return 512
        mock_readv.side_effect = fill

        self.assertEqual(FSUtils.read_first_block("/dev/md0"), b"x" * 512)
        path, flags = mock_open.call_args[0]
        self.assertEqual(path, "/dev/md0")
        self.assertTrue(flags & os.O_DIRECT)
        self.assertEqual(sizes, [mmap.PAGESIZE])
        mock_close.assert_called_once_with(42)

    @patch("ra.common.fs_utils.os.close")
    @patch("ra.common.fs_utils.os.readv", side_effect=OSError(errno.EIO, "Input/output error"))
    @patch("ra.common.fs_utils.os.open", return_value=42)
    def test_read_error_on_device(self, _open, _readv, mock_close):
        with self.assertRaises(RaGenericError) as cm:
            FSUtils.read_first_block("/dev/md0")
        self.assertIn("Input/output error", cm.exception.desc)
        mock_close.assert_called_once_with(42)

    def test_read_missing_device(self):
        with self.assertRaises(RaGenericError):
            FSUtils.read_first_block(os.path.join(self.tmp, "missing"))

    def test_snapshot(self):
        open(os.path.join(self.tmp, "a.trc"), 'w').close()
        self.assertEqual(FSUtils.snapshot(self.tmp), {"a.trc"})
        with self.assertRaises(RaGenericError):
            FSUtils.snapshot(os.path.join(self.tmp, "missing"))

    def test_delete_matching(self):
        for name in ("lkORCL", "lkORCL2", "lkOTHER"):
            open(os.path.join(self.tmp, name), 'w').close()
        os.mkdir(os.path.join(self.tmp, "lkORCLdir"))
        removed = FSUtils.delete_matching(os.path.join(self.tmp, "lkORCL*"))
        self.assertEqual(removed, [os.path.join(self.tmp, "lkORCL"),
                                   os.path.join(self.tmp, "lkORCL2")])
        self.assertEqual(sorted(os.listdir(self.tmp)), ["lkORCLdir", "lkOTHER"])
        self.assertEqual(FSUtils.delete_matching(os.path.join(self.tmp, "none*")), [])

    def test_owner(self):
        self.assertEqual(FSUtils.owner(self.tmp), os.stat(self.tmp).st_uid)
        self.assertIsNone(FSUtils.owner(os.path.join(self.tmp, "missing")))


class TestLog(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.saved = Log.logger

    def tearDown(self):
        for handler in list(Log.logger.handlers):
            handler.close()
            Log.logger.removeHandler(handler)
        Log.logger = self.saved
        shutil.rmtree(self.tmp)

    def test_file_log(self):
        Log.init("ra-test", log_path=self.tmp, level="DEBUG", file_size_in_mb=1)
        Log.debug("probing md0")
        Log.warn("md0 degraded")
        for handler in Log.logger.handlers:
            handler.flush()
        with open(os.path.join(self.tmp, "ra-test.log")) as f:
            lines = f.read().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertIn("DEBUG [test_file_log] probing md0", lines[0])
        self.assertIn("WARNING [test_file_log] md0 degraded", lines[1])

    def test_level(self):
        Log.init("ra-test-level", log_path=self.tmp, level="ERROR")
        self.assertEqual(Log.logger.level, logging.ERROR)
        Log.info("not written")
        Log.error("written")
        for handler in Log.logger.handlers:
            handler.flush()
        with open(os.path.join(self.tmp, "ra-test-level.log")) as f:
            self.assertNotIn("not written", f.read())

    def test_no_destination(self):
        Log.init("ra-test-null")
        self.assertTrue(all(isinstance(h, logging.NullHandler) for h in Log.logger.handlers))

    def test_trace_method(self):
        Log.init("ra-test-trace", log_path=self.tmp, level="DEBUG")

        @Log.trace_method(Log.DEBUG)
        def assemble(dev, homehost=None):
            return 0

        self.assertEqual(assemble("/dev/md0", homehost="node1"), 0)
        with open(os.path.join(self.tmp, "ra-test-trace.log")) as f:
            text = f.read()
        self.assertIn("Invoked with ('/dev/md0',homehost='node1')", text)
        self.assertIn("Returned 0", text)
