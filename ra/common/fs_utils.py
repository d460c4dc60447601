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
import glob
import mmap
import stat

from ra.common.errors import RaGenericError

# O_DIRECT needs a buffer and length aligned to the logical block size.
BLOCK_SIZE = mmap.PAGESIZE


class FSUtils:
    """
    Utils for file system checks used by the agents:

    1. Device node and raw block checks
    2. Directory snapshots and file removal by pattern

    """

    @staticmethod
    def is_block_device(path: str) -> bool:
        try:
            return stat.S_ISBLK(os.stat(path).st_mode)
        except OSError:
            return False

    @staticmethod
    def read_first_block(path: str, size: int = BLOCK_SIZE) -> bytes:
        """
        Read the first block of a device with O_DIRECT, bypassing the page
        cache, into a page aligned buffer.

        :param path: device path
        :param size: multiple of the logical block size
        :return: bytes read
        :raises RaGenericError: when the device cannot be opened or read
        """
        try:
            fd = os.open(path, os.O_RDONLY | os.O_DIRECT)
            try:
                with mmap.mmap(-1, size) as buf:
                    count = os.readv(fd, [buf])
                    return bytes(buf[:count])
            finally:
                os.close(fd)
        except OSError as e:
            raise RaGenericError(f"Raw read of '{path}' failed: {e}") from None

    @staticmethod
    def snapshot(path: str) -> set:
        """
        Names of the entries of a directory.

        :raises RaGenericError: when the directory cannot be listed
        """
        try:
            return set(os.listdir(path))
        except OSError as e:
            raise RaGenericError(f"Unable to list directory '{path}': {e}") from None

    @staticmethod
    def delete_matching(pattern: str) -> list:
        """
        Delete every regular file or link matching a glob pattern.

        :return: removed paths
        """
        removed = []
        for path in sorted(glob.glob(pattern)):
            if os.path.isdir(path):
                continue
            try:
                os.remove(path)
            except OSError as e:
                raise RaGenericError(f"System error during file deletion '{path}': {e}")
            removed.append(path)
        return removed

    @staticmethod
    def owner(path: str):
        """Uid of the owner of path, None when path does not exist."""
        try:
            return os.stat(path).st_uid
        except OSError:
            return None
