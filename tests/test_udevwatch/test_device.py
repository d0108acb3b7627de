# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

"""
Tests for resolving syspaths back into devices.
"""

import os

from udevwatch import Device, SysfsDeviceResolver
from tests.test_udevwatch.watch_test_utils import TEST_MAJOR, DeviceTree

# pylint: disable=invalid-name
# for clarity, test functions should be named after the things they test


class TestDevice:
    """
    Device numbers.
    """

    def test_major_minor(self) -> None:
        """
        Split back out of devnum.
        """
        device = Device(syspath="/sys/devices/A", devnode="/dev/a", devnum=os.makedev(8, 3))

        assert device.major == 8
        assert device.minor == 3

    def test_default_devnum_is_not_a_device(self) -> None:
        """
        No devnum - major zero.
        """
        assert Device(syspath="/sys/devices/virtual/A").major == 0


class TestSysfsDeviceResolver:
    """
    Reading uevent files out of a fake sysfs.
    """

    def test_resolve_live_device(self, tree: DeviceTree) -> None:
        """
        Node and numbers come from uevent.
        """
        device = tree.add_device("sda", minor=1)
        resolver = SysfsDeviceResolver(tree.config)

        resolved = resolver.resolve(device.syspath)

        assert resolved == device
        assert resolved is not None and resolved.major == TEST_MAJOR
        resolver.release(resolved)

    def test_resolve_gone_device(self, tree: DeviceTree) -> None:
        """
        An unplugged device does not resolve.
        """
        device = tree.add_device("sdb")
        tree.remove_device(device)

        assert SysfsDeviceResolver(tree.config).resolve(device.syspath) is None

    def test_resolve_outside_sysfs(self, tree: DeviceTree) -> None:
        """
        Only paths under the sys root are devices.
        """
        assert SysfsDeviceResolver(tree.config).resolve(tree.config.dev_path) is None

    def test_resolve_without_uevent(self, tree: DeviceTree) -> None:
        """
        A sysfs dir with no uevent is a device with no node.
        """
        syspath = os.path.join(tree.config.sys_path, "devices", "virtual")
        os.makedirs(syspath)

        resolved = SysfsDeviceResolver(tree.config).resolve(syspath)

        assert resolved == Device(syspath=syspath)
