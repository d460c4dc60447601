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
Bounded stop-time procedures of the Oracle agent: process escalation, IPC
attribution and post-stop cleanup.

IPC attribution diffs the diagnostic dump directory around a requested
`oradebug ipc`. It is a sampling technique: another session writing trace
files into the same directory at the same moment can make the new file
ambiguous. Only trace files that parse as IPC dumps are accepted and the
attributed ids are filtered again by ownership before removal.
"""

import os
import time
from typing import List, Optional

import psutil

from ra.common.log import Log
from ra.common.errors import RaGenericError
from ra.common.fs_utils import FSUtils
from ra.core import const
from ra.core.gateway import CommandGateway
from ra.core.models import IPCKind, IPCObjectRecord
from ra.agents.parsers import parse_ipc_trace, parse_ipcs, parse_single_value, sql_errors


class ProcessEscalation:
    """TERM, a fixed number of checks with a fixed delay, then one KILL."""

    def __init__(self, processes, checks: int = 5, interval: float = 2,
                 sleep=None):
        self._processes = processes
        self._checks = checks
        self._interval = interval
        self._sleep = sleep or time.sleep

    @staticmethod
    def _signal(procs, kill: bool):
        for proc in procs:
            try:
                if kill:
                    proc.kill()
                else:
                    proc.terminate()
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                Log.debug(f"Signal to {proc.pid} not delivered: {e}")

    def run(self) -> bool:
        """
        :returns: True when no instance process was left before the KILL
        """
        procs = self._processes.instance_processes()
        if not procs:
            return True
        Log.info(f"Sending TERM to {len(procs)} process(es): {[p.pid for p in procs]}")
        self._signal(procs, kill=False)
        for check in range(self._checks):
            self._sleep(self._interval)
            procs = self._processes.instance_processes()
            if not procs:
                return True
            Log.debug(f"Check {check + 1}/{self._checks}: {len(procs)} process(es) left")
        Log.warn(f"Sending KILL to {len(procs)} process(es): {[p.pid for p in procs]}")
        self._signal(procs, kill=True)
        return False


class IpcAttribution:
    """Finds the IPC objects of a running instance through its own trace."""

    def __init__(self, session, dump_dest: Optional[str] = None):
        self._session = session
        self._dump_dest = dump_dest

    def dump_dir(self) -> str:
        if self._dump_dest:
            return self._dump_dest
        result = self._session.run(const.SQL_DUMP_DEST)
        value = parse_single_value(result.output)
        if not value:
            raise RaGenericError(f"Unable to determine user_dump_dest: {result.raw_output}")
        return value

    def capture(self) -> List[IPCObjectRecord]:
        """
        :raises RaGenericError: the dump directory cannot be read, no new
            trace file appeared or none of the new files is an IPC dump
        """
        dump_dir = self.dump_dir()
        before = FSUtils.snapshot(dump_dir)
        result = self._session.run(const.SQL_DUMP_IPC)
        if sql_errors(result.output):
            Log.warn(f"oradebug ipc reported: {result.raw_output}")
        after = FSUtils.snapshot(dump_dir)

        new = [name for name in after - before if name.endswith(const.TRACE_SUFFIX)]
        if not new:
            raise RaGenericError(f"No new trace file in {dump_dir} after oradebug ipc")
        paths = [os.path.join(dump_dir, name) for name in new]
        for path in sorted(paths, key=self._mtime, reverse=True):
            try:
                with open(path, 'r', errors='replace') as f:
                    records = parse_ipc_trace(f.read())
            except OSError as e:
                raise RaGenericError(f"Unable to read trace file {path}: {e}") from None
            if records is not None:
                Log.info(f"IPC objects attributed from {path}: "
                         f"{[(r.kind.value, r.id) for r in records]}")
                return records
        raise RaGenericError(f"No IPC dump found in {', '.join(sorted(paths))}")

    @staticmethod
    def _mtime(path):
        try:
            return os.path.getmtime(path)
        except OSError:
            return 0


class IpcCleanup:
    """Removes IPC objects of the instance owner through ipcs/ipcrm."""

    def __init__(self, gateway: CommandGateway, user: str):
        self._gateway = gateway
        self._user = user

    def owned(self, kinds) -> List[IPCObjectRecord]:
        records = []
        for kind in kinds:
            result = self._gateway.invoke(const.IPCS, f"-{kind.value}")
            if not result.ok:
                raise RaGenericError(f"ipcs -{kind.value} failed: {result.raw_output}")
            records.extend(r for r in parse_ipcs(result.output, kind) if r.owner == self._user)
        return records

    @Log.trace_method(Log.DEBUG)
    def remove(self, records: List[IPCObjectRecord]) -> int:
        failed = []
        for record in records:
            result = self._gateway.invoke(const.IPCRM, f"-{record.kind.value}", str(record.id))
            if not result.ok:
                failed.append(f"{record.kind.value}:{record.id} ({result.raw_output})")
        if failed:
            raise RaGenericError(f"Unable to remove IPC objects: {', '.join(failed)}")
        return len(records)

    def remove_attributed(self, attributed: List[IPCObjectRecord]) -> int:
        owned = {(r.kind, r.id): r for r in
                 self.owned([IPCKind.SharedMemory, IPCKind.Semaphore])}
        targets = [owned[(r.kind, r.id)] for r in attributed if (r.kind, r.id) in owned]
        skipped = len(attributed) - len(targets)
        if skipped:
            Log.info(f"{skipped} attributed IPC object(s) gone or not owned by {self._user}")
        return self.remove(targets)

    def remove_all(self) -> int:
        return self.remove(self.owned(list(IPCKind)))


class InstanceCleanup:
    """Post-stop cleanup. Callers run it only once the instance is Absent."""

    def __init__(self, descriptor, ipc: IpcCleanup):
        self._descriptor = descriptor
        self._ipc = ipc

    def remove_lock_files(self) -> list:
        dbs = os.path.join(self._descriptor.home, "dbs")
        removed = []
        for pattern in const.LOCK_FILE_PATTERNS:
            removed.extend(FSUtils.delete_matching(
                os.path.join(dbs, pattern.format(sid=self._descriptor.sid))))
        if removed:
            Log.info(f"Removed stale lock files: {removed}")
        return removed

    def run(self, attributed: Optional[List[IPCObjectRecord]] = None,
            attribution_error: Optional[Exception] = None) -> int:
        """
        :returns: number of IPC objects removed
        :raises RaGenericError: cleanup could not be completed
        """
        self.remove_lock_files()
        policy = self._descriptor.ipcrm
        if policy == const.IPCRM_NONE:
            return 0
        if policy == const.IPCRM_ORAUSER:
            return self._ipc.remove_all()
        if attribution_error is not None or attributed is None:
            raise RaGenericError(f"IPC objects of {self._descriptor.sid} could not be "
                                 f"attributed, none removed: {attribution_error}")
        return self._ipc.remove_attributed(attributed)
