# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

"""
The minimum the watch registry needs to know about a device.

A device has a node under the dev tree (which may be handed to a different device later), a
syspath (which is stable for the life of the device instance) and a device number.
"""

from __future__ import annotations

from typing import Optional, Protocol

import dataclasses
import logging
import os

from udevwatch.config import WatchConfig


@dataclasses.dataclass(frozen=True)
class Device:
    """
    A device, as far as watching it is concerned.
    """

    syspath: str
    devnode: Optional[str] = None
    devnum: int = 0

    @property
    def major(self) -> int:
        """
        Major number of the device - zero for anything which is not a real device node.

        :return:
        """
        return os.major(self.devnum)

    @property
    def minor(self) -> int:
        """
        Minor number of the device.

        :return:
        """
        return os.minor(self.devnum)


class DeviceResolver(Protocol):
    """
    Turns an identity path back into a live device.
    """

    def resolve(self, syspath: str) -> Optional[Device]:
        """
        Look up the device currently at syspath - None if it has gone.

        :param syspath:
        :return:
        """

    def release(self, device: Device) -> None:
        """
        Done with a device returned by resolve.

        :param device:
        :return:
        """


class SysfsDeviceResolver:
    """
    Resolves syspaths by reading the uevent file of the device out of sysfs.
    """

    _config: WatchConfig

    _logger: logging.Logger

    def __init__(self, config: WatchConfig) -> None:
        """
        Resolve against the sysfs and dev roots in the given config.

        :param config:
        """
        self._config = config
        self._logger = logging.getLogger(__name__ + ":" + type(self).__name__)

    def resolve(self, syspath: str) -> Optional[Device]:
        """
        Read MAJOR, MINOR and DEVNAME from <syspath>/uevent.

        :param syspath:
        :return:
        """
        sys_root = self._config.sys_path
        if os.path.commonpath([sys_root, os.path.abspath(syspath)]) != sys_root:
            self._logger.debug("%s is not under %s - not a device", syspath, sys_root)
            return None

        if not os.path.isdir(syspath):
            self._logger.debug("No device at %s", syspath)
            return None

        try:
            # Names in uevent are raw bytes - keep them that way for the kernel calls
            with open(
                os.path.join(syspath, "uevent"), "r", encoding="utf-8", errors="surrogateescape"
            ) as uevent:
                values = parse_uevent(uevent.read())
        except OSError as e:
            self._logger.debug("Cannot read uevent for %s - %s", syspath, e)
            # A device without a uevent file still exists - it just has no node
            return Device(syspath=syspath)

        devnode: Optional[str] = None
        if values.get("DEVNAME"):
            devnode = os.path.join(self._config.dev_path, values["DEVNAME"].lstrip("/"))

        try:
            devnum = os.makedev(int(values.get("MAJOR", 0)), int(values.get("MINOR", 0)))
        except ValueError:
            self._logger.debug("Malformed device number in uevent for %s", syspath)
            devnum = 0

        return Device(syspath=syspath, devnode=devnode, devnum=devnum)

    def release(self, device: Device) -> None:
        """
        Nothing is held open per device.

        :param device:
        :return:
        """


def parse_uevent(content: str) -> dict[str, str]:
    """
    Parse the KEY=value lines of a sysfs uevent file.

    :param content:
    :return:
    """
    values: dict[str, str] = {}
    for line in content.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            values[key] = value
    return values
