#!/usr/bin/env python3

"""
Public api for the persistent device watch registry.

A daemon opens one NotificationChannel at startup, builds a WatchRegistry around it, calls
restore() once, and then begins and ends watches on devices as they come and go.
"""

# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

from __future__ import annotations

from udevwatch.channel import (
    INVALID_DESCRIPTOR,
    NotificationChannel,
    UnavailableChannel,
    init_channel,
)
from udevwatch.config import WatchConfig, WatchConfigError
from udevwatch.device import Device, DeviceResolver, SysfsDeviceResolver
from udevwatch.registry import (
    WATCH_MASK,
    RestoreReport,
    WatchRegistry,
    WatchResult,
    WatchStatus,
)
from udevwatch.store import SymlinkWatchStore, WatchStore, decode_key, encode_key

__version__ = "0.0.1"


__all__ = (
    "INVALID_DESCRIPTOR",
    "NotificationChannel",
    "UnavailableChannel",
    "init_channel",
    "WatchConfig",
    "WatchConfigError",
    "Device",
    "DeviceResolver",
    "SysfsDeviceResolver",
    "WATCH_MASK",
    "RestoreReport",
    "WatchRegistry",
    "WatchResult",
    "WatchStatus",
    "SymlinkWatchStore",
    "WatchStore",
    "decode_key",
    "encode_key",
)
