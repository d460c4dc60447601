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

"""
Narrow parsers for the text the managed tools print.

Every parser either recognizes its input or reports that it did not (None or an
empty result); none of them guesses a favourable answer.
"""

import re
from typing import Dict, List, Optional, Set, Tuple

from ra.core import const
from ra.core.models import HealthLevel, IPCKind, IPCObjectRecord

_MDSTAT_ARRAY = re.compile(r"^(?P<name>md[\w/-]*)\s*:\s*(?P<state>\S+)")
_MDSTAT_PERSONALITIES = re.compile(r"^Personalities\s*:(?P<list>.*)$")
_IPCS_ROW = re.compile(r"^0x[0-9a-fA-F]+\s+(?P<id>\d+)\s+(?P<owner>\S+)\s")
_TRACE_SHM_ROW = re.compile(r"^\s*(?P<id>\d+)\s+0x[0-9a-fA-F]+\s*$")
_TRACE_SEM_ID = re.compile(r"Semaphore ID:\s*(?P<id>\d+)")


def parse_mdstat(text: str) -> Tuple[Dict[str, str], Set[str]]:
    """
    Parse /proc/mdstat.

    :returns: ({array name: state}, {personalities})
    """
    arrays = {}
    personalities = set()
    for line in text.splitlines():
        match = _MDSTAT_PERSONALITIES.match(line)
        if match:
            personalities.update(p.strip("[] ") for p in match.group("list").split())
            continue
        match = _MDSTAT_ARRAY.match(line)
        if match:
            arrays[match.group("name")] = match.group("state")
    personalities.discard("")
    return arrays, personalities


def classify_detail_rc(rc: int) -> HealthLevel:
    """Map the return code of `mdadm --detail --test`."""
    if rc == const.DETAIL_HEALTHY:
        return HealthLevel.Healthy
    if rc == const.DETAIL_DEGRADED:
        return HealthLevel.Degraded
    return HealthLevel.Broken


def _sql_lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def sql_errors(text: str) -> List[str]:
    return [line for line in _sql_lines(text) if line.startswith(const.SQL_ERROR_PREFIXES)]


def parse_instance_status(text: str) -> Optional[str]:
    """
    Status from `select status from v$instance`.

    :returns: OPEN, MOUNTED or STARTED; None for anything else
    """
    lines = _sql_lines(text)
    if sql_errors(text) or len(lines) != 1:
        return None
    status = lines[0].upper()
    return status if status in const.ORA_STATUS_LIST else None


def parse_backup_mode(text: str) -> Optional[bool]:
    """
    Whether any datafile is in online backup mode.

    :returns: True / False, None when the query failed
    """
    if sql_errors(text):
        return None
    return const.ORA_BACKUP_ACTIVE in _sql_lines(text)


def parse_single_value(text: str) -> Optional[str]:
    lines = _sql_lines(text)
    if sql_errors(text) or len(lines) != 1:
        return None
    return lines[0]


def parse_oratab(text: str, sid: str) -> Optional[str]:
    """Home directory of sid from an oratab (SID:HOME:FLAG) document."""
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        entry = line.split(":")
        if len(entry) >= 2 and entry[0] == sid and entry[1]:
            return entry[1]
    return None


def parse_ipcs(text: str, kind: IPCKind) -> List[IPCObjectRecord]:
    """Rows of `ipcs -m|-s|-q`: key, id, owner, ..."""
    records = []
    for line in text.splitlines():
        match = _IPCS_ROW.match(line.strip() + " ")
        if match:
            records.append(IPCObjectRecord(kind, int(match.group("id")),
                                           match.group("owner")))
    return records


def parse_ipc_trace(text: str) -> Optional[List[IPCObjectRecord]]:
    """
    Shared memory and semaphore ids from an `oradebug ipc` trace.

    The shared memory section is a "Shared Memory:" line, an "ID KEY" header
    and one "<id> <0xkey>" row per segment. Semaphores are reported as
    "Semaphore ID: <id>" lines.

    :returns: records, None when the text carries neither section
    """
    lines = text.splitlines()
    if not any("Shared Memory:" in line or "Semaphore List:" in line for line in lines):
        return None
    records = []
    seen = set()

    def _add(kind, id_):
        if (kind, id_) not in seen:
            seen.add((kind, id_))
            records.append(IPCObjectRecord(kind, id_))

    index = 0
    while index < len(lines):
        line = lines[index]
        index += 1
        if "Shared Memory:" in line:
            if index < len(lines) and lines[index].split()[:2] == ["ID", "KEY"]:
                index += 1
            while index < len(lines):
                match = _TRACE_SHM_ROW.match(lines[index])
                if not match:
                    break
                _add(IPCKind.SharedMemory, int(match.group("id")))
                index += 1
            continue
        match = _TRACE_SEM_ID.search(line)
        if match:
            _add(IPCKind.Semaphore, int(match.group("id")))
    return records
