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
import yaml


class Doc:
    """Configuration source. A missing file reads as an empty mapping."""

    def __init__(self, source):
        self._source = source

    def __str__(self):
        return str(self._source)

    def load(self) -> dict:
        if not os.path.exists(self._source):
            return {}
        try:
            return self._load()
        except Exception as e:
            raise Exception(f"Unable to read file {self._source}. {e}") from None


class Yaml(Doc):
    def _load(self):
        with open(self._source, 'r') as f:
            return yaml.safe_load(f) or {}


class Dict(Doc):
    """In-memory mapping, used for built-in defaults."""

    def __init__(self, data=None):
        super(Dict, self).__init__(data if data is not None else {})

    def load(self) -> dict:
        return self._source


class Payload:
    """Loaded document addressed by dot separated keys (log.level)."""

    def __init__(self, doc: Doc):
        self._doc = doc
        self._data = doc.load()

    def get(self, key: str):
        node = self._data
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

