# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

"""
Durable storage for the descriptor -> identity path map.

On disk, the map is a directory of symlinks.
Each link is named for a watch descriptor (in decimal) and points at the syspath of the device.
This layout is shared with anything else which reads the watch registry - so it must not change.
"""

from __future__ import annotations

from typing import Iterator, Optional

import abc
import errno
import logging
import os


def encode_key(descriptor: int) -> str:
    """
    The entry name for a watch descriptor.

    :param descriptor:
    :return:
    """
    return "%d" % descriptor


def decode_key(name: str) -> Optional[int]:
    """
    The watch descriptor an entry name encodes - None for names which are not registry entries.

    Anything not starting with a digit is some other artifact in the directory.
    :param name:
    :return:
    """
    if not name or not "0" <= name[0] <= "9":
        return None

    # Mirror atoi - take the leading run of digits
    digits = len(name) - len(name.lstrip("0123456789"))
    return int(name[:digits])


class WatchStore(abc.ABC):
    """
    Key-value view of the registry.

    Keys are entry names, values identity paths.
    """

    @abc.abstractmethod
    def ensure(self) -> None:
        """
        Make sure the store exists and can be written to.
        """

    @abc.abstractmethod
    def put(self, key: str, value: str) -> bool:
        """
        Store value under key - replacing anything already there.
        """

    @abc.abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        The value stored under key - None if missing, unreadable or empty.
        """

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        """
        Remove key - absence is not an error.
        """

    @abc.abstractmethod
    def keys(self) -> Iterator[str]:
        """
        Every key which looks like an encoded watch descriptor.
        """

    @abc.abstractmethod
    def scan(self) -> list[str]:
        """
        Like keys - but a store which cannot be read raises OSError.
        """

    @abc.abstractmethod
    def displace(self, new_path: str) -> WatchStore:
        """
        Move the whole store to new_path in one step - raises OSError on failure.
        """

    @abc.abstractmethod
    def discard(self) -> None:
        """
        Remove the (empty) store.
        """

    def items(self) -> Iterator[tuple[str, str]]:
        """
        Every readable (key, value) pair.

        :return:
        """
        for key in self.keys():
            value = self.get(key)
            if value is not None:
                yield key, value


class SymlinkWatchStore(WatchStore):
    """
    The on-disk registry - a directory of symlinks.
    """

    _path: str

    _logger: logging.Logger

    def __init__(self, path: str) -> None:
        """
        Store entries in the directory at path - which does not need to exist yet.

        :param path:
        """
        self._path = path
        self._logger = logging.getLogger(__name__ + ":" + type(self).__name__)

    @property
    def path(self) -> str:
        """
        The backing directory.

        :return:
        """
        return self._path

    def entry_path(self, key: str) -> str:
        """
        Full path to the link for key.

        :param key:
        :return:
        """
        return os.path.join(self._path, key)

    def ensure(self) -> None:
        """
        Create the directory, along with any missing parents.

        :return:
        """
        try:
            os.makedirs(self._path, mode=0o755, exist_ok=True)
        except OSError as e:
            self._logger.error("unable to create %s: %s", self._path, os.strerror(e.errno or 0))

    def put(self, key: str, value: str) -> bool:
        """
        Unlink whatever is at the entry, then link it to value.

        :param key:
        :param value:
        :return: Was the link created?
        """
        self.ensure()
        filename = self.entry_path(key)
        self.delete(key)
        try:
            os.symlink(value, filename)
        except OSError as e:
            self._logger.error(
                "symlink(%s, %s) failed: %s", value, filename, os.strerror(e.errno or 0)
            )
            return False
        return True

    def get(self, key: str) -> Optional[str]:
        """
        Read the link target for key.

        :param key:
        :return:
        """
        try:
            target = os.readlink(self.entry_path(key))
        except OSError:
            return None
        return target or None

    def delete(self, key: str) -> None:
        """
        Unlink the entry - missing entries are fine.

        :param key:
        :return:
        """
        try:
            os.unlink(self.entry_path(key))
        except OSError as e:
            if e.errno != errno.ENOENT:
                self._logger.error(
                    "unlink(%s) failed: %s", self.entry_path(key), os.strerror(e.errno or 0)
                )

    def keys(self) -> Iterator[str]:
        """
        Names in the directory which start with a digit.

        A missing directory has no keys.
        :return:
        """
        try:
            names = self.scan()
        except OSError:
            return
        yield from names

    def scan(self) -> list[str]:
        """
        Like keys - but an unreadable directory raises.

        :return:
        """
        with os.scandir(self._path) as entries:
            return [entry.name for entry in entries if decode_key(entry.name) is not None]

    def displace(self, new_path: str) -> SymlinkWatchStore:
        """
        Rename the whole directory out of the way in one step.

        Raises on failure - the caller decides which failures matter.
        :param new_path:
        :return: A store over the moved directory
        """
        os.rename(self._path, new_path)
        return SymlinkWatchStore(new_path)

    def discard(self) -> None:
        """
        Remove the (by now empty) directory.

        :return:
        """
        try:
            os.rmdir(self._path)
        except OSError as e:
            self._logger.error("rmdir(%s) failed: %s", self._path, os.strerror(e.errno or 0))
