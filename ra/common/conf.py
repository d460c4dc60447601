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
from ra.common.payload import Payload, Dict, Yaml
from ra.common.errors import RaConfigurationMissing


class Conf:
    """Represent conf file - singleton."""

    _payloads = {}
    _defaults = {}

    @staticmethod
    def init(index, defaults):
        """Register built-in defaults consulted when a key is not set."""
        Conf._defaults[index] = Payload(Dict(defaults))

    @staticmethod
    def load(index, doc, force=False):
        if isinstance(doc, Yaml) and not os.path.isfile(str(doc)):
            raise RaConfigurationMissing(f'File {doc} does not exist')
        if index in Conf._payloads and not force:
            raise Exception(f'index {index} is already loaded')
        Conf._payloads[index] = Payload(doc)

    @staticmethod
    def loaded(index):
        return index in Conf._payloads

    @staticmethod
    def get(index, key, default_val=None):
        """Obtain value for the given key, then the default, then default_val."""
        val = None
        if index in Conf._payloads:
            val = Conf._payloads[index].get(key)
        if val is None and index in Conf._defaults:
            val = Conf._defaults[index].get(key)
        return default_val if val is None else val

    @staticmethod
    def unload(index=None):
        indexes = list(Conf._payloads) if index is None else [index]
        for each in indexes:
            Conf._payloads.pop(each, None)
