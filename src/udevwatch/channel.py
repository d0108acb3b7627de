# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

"""
The process wide inotify handle which all device watches are registered through.

There is exactly one of these per daemon.
If the kernel does not offer inotify, an UnavailableChannel stands in for it - and every watch
operation quietly does nothing.
"""

from __future__ import annotations

from typing import Any, Optional, Union

import errno
import logging
import os

import inotify_simple

INVALID_DESCRIPTOR: int = -1


class NotificationChannel:
    """
    Wraps an inotify_simple.INotify handle - which is opened close-on-exec.

    Children which share the handle can still add watches through it; they just don't inherit it
    over an exec.
    """

    _logger: logging.Logger

    _inotify: Optional[inotify_simple.INotify]

    def __init__(self, inotify: Optional[inotify_simple.INotify]) -> None:
        """
        Hold an already opened inotify handle.

        Use NotificationChannel.init() to actually open one.
        :param inotify:
        """
        self._inotify = inotify
        self._logger = logging.getLogger(__name__ + ":" + type(self).__name__)

    @classmethod
    def init(cls) -> NotificationChannel:
        """
        Acquire the inotify handle for this process.

        Never raises - if inotify can't be had, watching is disabled for the life of the process.
        :return:
        """
        logger = logging.getLogger(__name__ + ":" + cls.__name__)
        try:
            inotify = inotify_simple.INotify(inheritable=False)
        except OSError as e:
            if e.errno == errno.ENOSYS:
                logger.info("unable to use inotify, device changes will not be monitored")
            else:
                logger.error("inotify_init failed: %s", os.strerror(e.errno or 0))
            return UnavailableChannel()

        return cls(inotify)

    @property
    def available(self) -> bool:
        """
        Can watches actually be placed through this channel?

        :return:
        """
        return self._inotify is not None

    def fileno(self) -> int:
        """
        The underlying file descriptor - for use with select/poll/event loops.

        :return:
        """
        assert self._inotify is not None, "channel has been closed"
        return self._inotify.fileno()

    def add_watch(self, path: Union[str, bytes], mask: int) -> int:
        """
        Place a watch on the given path.

        :param path:
        :param mask:
        :return: The watch descriptor - or INVALID_DESCRIPTOR if the kernel refused
        """
        if self._inotify is None:
            return INVALID_DESCRIPTOR

        try:
            return int(self._inotify.add_watch(path, mask))
        except OSError as e:
            self._logger.error(
                "inotify_add_watch(%d, %s, %o) failed: %s",
                self._inotify.fileno(),
                path,
                mask,
                os.strerror(e.errno or 0),
            )
            return INVALID_DESCRIPTOR

    def rm_watch(self, descriptor: int) -> bool:
        """
        Remove a watch.

        A watch which has already gone (the watched node was removed, say) is not an error.
        :param descriptor:
        :return: True if the kernel removed a watch
        """
        if self._inotify is None or descriptor < 0:
            return False

        try:
            self._inotify.rm_watch(descriptor)
        except OSError as e:
            if e.errno == errno.EINVAL:
                self._logger.debug("Cannot remove watch, descriptor does not exist: %d", descriptor)
            else:
                self._logger.error(
                    "inotify_rm_watch(%d) failed: %s", descriptor, os.strerror(e.errno or 0)
                )
            return False

        return True

    def read(
        self,
        timeout: Optional[int] | Optional[float] = None,
        read_delay: Optional[int] = None,
    ) -> list[Any]:
        """
        Read pending events off the handle.

        What to do with them is up to the caller.
        :param timeout: In milliseconds - None blocks until something turns up
        :param read_delay:
        :return:
        """
        if self._inotify is None:
            return []
        return list(self._inotify.read(timeout=timeout, read_delay=read_delay))

    def close(self) -> None:
        """
        Release the handle - the channel is unusable afterward.

        :return:
        """
        if self._inotify is not None:
            self._inotify.close()
            self._inotify = None

    def __enter__(self) -> NotificationChannel:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class UnavailableChannel(NotificationChannel):
    """
    Stands in when the kernel has no inotify support (or it could not be initialised).

    Every operation is a no-op.
    """

    def __init__(self) -> None:
        super().__init__(None)

    def fileno(self) -> int:
        return INVALID_DESCRIPTOR


def init_channel() -> NotificationChannel:
    """
    Open the process wide channel.

    :return:
    """
    return NotificationChannel.init()
