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

import subprocess

RC_NOT_FOUND = 127


class SimpleProcess:
    """Execute process and provide output."""

    def __init__(self, cmd):
        self._cmd = cmd
        self.shell = False
        self.cwd = None
        self.timeout = None
        self.env = None
        self.input = None
        self.universal_newlines = None

    def run(self, **kwargs):
        """
        Run simple process.

        Never raises for process level failures: a binary that cannot be found
        is reported with return code 127, any other OSError with -1.
        """
        for key, value in kwargs.items():
            setattr(self, key, value)

        try:
            cmd = self._cmd.split() if isinstance(self._cmd, str) else self._cmd
            self._cp = subprocess.run(cmd, stdout=subprocess.PIPE,
                                      stderr=subprocess.PIPE, shell=self.shell, cwd=self.cwd,
                                      timeout=self.timeout, env=self.env, input=self.input,
                                      universal_newlines=self.universal_newlines)

            self._output = self._cp.stdout
            self._err = self._cp.stderr
            self._returncode = self._cp.returncode
            return self._output, self._err, self._returncode
        except FileNotFoundError as err:
            self._err = "SubProcess Error: " + str(err)
            self._output = ""
            self._returncode = RC_NOT_FOUND
            return self._output, self._err, self._returncode
        except (OSError, subprocess.SubprocessError) as err:
            self._err = "SubProcess Error: " + str(err)
            self._output = ""
            self._returncode = -1
            return self._output, self._err, self._returncode
