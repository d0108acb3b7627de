# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

"""
Keeps track of which device each inotify watch belongs to - in a form which survives a restart.

Watch descriptors mean nothing to the next process.
So every watch is mirrored into the registry directory as a link from the descriptor to the
syspath of the device.
On startup, restore() moves the old registry out of the way, re-watches every device it still
names, and throws the old registry away.
"""

from __future__ import annotations

from typing import Optional

import dataclasses
import enum
import logging

import inotify_simple

from udevwatch.channel import INVALID_DESCRIPTOR, NotificationChannel
from udevwatch.config import WatchConfig
from udevwatch.device import Device, DeviceResolver, SysfsDeviceResolver
from udevwatch.store import SymlinkWatchStore, WatchStore, decode_key, encode_key

# Fires when a writer closes the device node - rather than on every open
WATCH_MASK: int = inotify_simple.flags.CLOSE_WRITE


class WatchStatus(enum.Enum):
    """
    How a registry operation went.

    Nothing here is ever fatal - failures are logged and leave the watch absent.
    """

    DONE = "done"
    RECOVERED = "recovered"  # something failed, was logged, and the rest carried on
    NOOP = "noop"  # nothing to do - channel unavailable, or not a real device


@dataclasses.dataclass(frozen=True)
class WatchResult:
    """
    Result of placing a watch.
    """

    status: WatchStatus
    descriptor: int = INVALID_DESCRIPTOR


@dataclasses.dataclass
class RestoreReport:
    """
    What restore() managed to do with the previous run's registry.
    """

    status: WatchStatus = WatchStatus.NOOP
    restored: list[str] = dataclasses.field(default_factory=list)
    discarded: list[str] = dataclasses.field(default_factory=list)
    failed: list[str] = dataclasses.field(default_factory=list)


class WatchRegistry:
    """
    Maps watch descriptors to device syspaths - in the kernel and on disk.

    Not thread safe; drive it from a single control thread.
    """

    _channel: NotificationChannel
    _config: WatchConfig
    _resolver: DeviceResolver
    _store: WatchStore

    _logger: logging.Logger

    def __init__(
        self,
        channel: NotificationChannel,
        config: Optional[WatchConfig] = None,
        resolver: Optional[DeviceResolver] = None,
        store: Optional[WatchStore] = None,
    ) -> None:
        """
        Startup the registry.

        :param channel: The process wide inotify channel - may be unavailable
        :param config: Where the dev and sys trees are - defaults to /dev and /sys
        :param resolver: Turns syspaths from the old registry back into devices
        :param store: Defaults to the directory of links under <dev>/.udev/watch
        """
        self._channel = channel
        self._config = config if config is not None else WatchConfig()
        self._resolver = resolver if resolver is not None else SysfsDeviceResolver(self._config)
        self._store = store if store is not None else SymlinkWatchStore(self._config.watch_dir)

        self._logger = logging.getLogger(__name__ + ":" + type(self).__name__)

    @property
    def available(self) -> bool:
        """
        False if watching is disabled for this process.

        :return:
        """
        return self._channel.available

    @property
    def channel(self) -> NotificationChannel:
        """
        The channel watches are placed through - read events off this.

        :return:
        """
        return self._channel

    @property
    def store(self) -> WatchStore:
        """
        The durable side of the registry.

        :return:
        """
        return self._store

    def begin(self, device: Device) -> WatchResult:
        """
        Watch the node of device for close-after-write, and record the watch.

        If the kernel refuses the watch, the failure is logged and the entry is recorded anyway
        (under the invalid descriptor).
        :param device:
        :return:
        """
        if not self._channel.available or device.major == 0:
            return WatchResult(WatchStatus.NOOP)

        descriptor = self._channel.add_watch(device.devnode or "", WATCH_MASK)
        recorded = self._store.put(encode_key(descriptor), device.syspath)

        if descriptor < 0 or not recorded:
            return WatchResult(WatchStatus.RECOVERED, descriptor)

        self._logger.debug("Watching %s (%s) as %d", device.devnode, device.syspath, descriptor)
        return WatchResult(WatchStatus.DONE, descriptor)

    def end(self, descriptor: int) -> WatchStatus:
        """
        Drop the watch and its record.

        Safe to call for a watch which has already gone.
        :param descriptor:
        :return:
        """
        if not self._channel.available or descriptor < 0:
            return WatchStatus.NOOP

        self._channel.rm_watch(descriptor)
        self._store.delete(encode_key(descriptor))
        return WatchStatus.DONE

    def clear(self, device: Device) -> WatchStatus:
        """
        End every watch recorded against the syspath of device.

        :param device:
        :return: NOOP if no watch was found
        """
        if not self._channel.available or device.major == 0:
            return WatchStatus.NOOP

        status = WatchStatus.NOOP
        for key in self._store.keys():
            # Links which can't be read are never a match
            if self._store.get(key) != device.syspath:
                continue

            self._logger.info("clearing existing watch on '%s'", device.devnode)
            descriptor = decode_key(key)
            assert descriptor is not None, "keys() only yields encoded descriptors"
            self.end(descriptor)
            status = WatchStatus.DONE

        return status

    def lookup(self, descriptor: int) -> Optional[str]:
        """
        The syspath of the device a watch belongs to.

        :param descriptor:
        :return: None if there's no such watch
        """
        if not self._channel.available or descriptor < 0:
            return None
        return self._store.get(encode_key(descriptor))

    def entries(self) -> dict[int, str]:
        """
        Every readable record in the registry.

        :return:
        """
        rtn: dict[int, str] = {}
        for key, identity_path in self._store.items():
            descriptor = decode_key(key)
            if descriptor is not None:
                rtn[descriptor] = identity_path
        return rtn

    def restore(self) -> RestoreReport:
        """
        Re-watch every device the previous run was watching.

        Run once, at startup, before anything else touches the registry.
        :return:
        """
        report = RestoreReport()
        if not self._channel.available:
            return report

        old_dir = self._config.old_watch_dir
        try:
            old_store = self._store.displace(old_dir)
        except FileNotFoundError:
            # No previous registry - nothing to do
            report.status = WatchStatus.DONE
            return report
        except OSError as e:
            self._logger.error(
                "unable to move watches dir '%s', old watches will not be restored: %s",
                self._config.watch_dir,
                e.strerror,
            )
            report.status = WatchStatus.RECOVERED
            return report

        try:
            names = old_store.scan()
        except OSError as e:
            # Left where it is, for someone to look at
            self._logger.error(
                "unable to open old watches dir '%s', old watches will not be restored: %s",
                old_dir,
                e.strerror,
            )
            report.status = WatchStatus.RECOVERED
            return report

        for name in names:
            identity_path = old_store.get(name)
            if identity_path is None:
                old_store.delete(name)
                continue

            self._logger.debug("old watch to '%s' found", identity_path)
            try:
                device = self._resolver.resolve(identity_path)
            except (OSError, ValueError) as e:
                self._logger.error("unable to resolve old watch to '%s': %s", identity_path, e)
                device = None
            if device is None:
                report.discarded.append(identity_path)
                old_store.delete(name)
                continue

            self._logger.info("restoring old watch on '%s'", device.devnode)
            try:
                result = self.begin(device)
            finally:
                self._resolver.release(device)
            if result.status is WatchStatus.DONE:
                report.restored.append(identity_path)
            elif result.status is WatchStatus.RECOVERED:
                report.failed.append(identity_path)

            old_store.delete(name)

        old_store.discard()
        report.status = WatchStatus.DONE
        return report
