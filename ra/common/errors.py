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

from ra.common.log import Log
from ra.core import const


class RaError(Exception):
    """ Parent class for the resource agent error classes """

    _desc = "Resource agent error"

    def __init__(self, rc=const.OCF_ERR_GENERIC, desc=None):
        self._rc = rc
        self._desc = desc if desc is not None else self._desc
        super(RaError, self).__init__(self._desc)
        # Common error logging for all kind of RaError
        Log.error(f"{self._rc}:{self._desc}")

    @property
    def rc(self):
        return self._rc

    @property
    def desc(self):
        return self._desc

    def __str__(self):
        return f"{self._desc}"


class RaGenericError(RaError):
    """
    This error will be raised when an operation does not reach its target
    state. The orchestrator decides about retries.
    """

    _desc = "Operation failed"

    def __init__(self, desc=None):
        super(RaGenericError, self).__init__(const.OCF_ERR_GENERIC, desc)


class RaInvalidArgument(RaError):
    """
    This error will be raised when a parameter has a value the agent does
    not accept.
    """

    _desc = "Invalid argument"

    def __init__(self, desc=None):
        super(RaInvalidArgument, self).__init__(const.OCF_ERR_ARGS, desc)


class RaPermissionDenied(RaError):
    """
    This error is raised when the agent runs under an account that cannot
    manage the resource.
    """

    _desc = "Insufficient privileges"

    def __init__(self, desc=None):
        super(RaPermissionDenied, self).__init__(const.OCF_ERR_PERM, desc)


class RaNotInstalled(RaError):

    """Required software is not installed on this node"""

    _desc = "Required software not installed"

    def __init__(self, desc=None):
        super(RaNotInstalled, self).__init__(const.OCF_ERR_INSTALLED, desc)


class RaConfigurationMissing(RaError):

    """Required configuration or environment is missing or unreadable"""

    _desc = "Required configuration missing"

    def __init__(self, desc=None):
        super(RaConfigurationMissing, self).__init__(const.OCF_ERR_CONFIGURED, desc)

