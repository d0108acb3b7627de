# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

"""
Where the device tree and sysfs live - and so where the watch registry is kept on disk.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

import dataclasses
import logging
import os

WATCH_DIR_NAME = os.path.join(".udev", "watch")
OLD_WATCH_DIR_NAME = os.path.join(".udev", "watch.old")

UDEV_CONF = "/etc/udev/udev.conf"


class WatchConfigError(ValueError):
    """
    A configuration value was supplied which the registry cannot work with.
    """


@dataclasses.dataclass(frozen=True)
class WatchConfig:
    """
    Stores the roots of the device tree and sysfs.

    The watch registry directories are derived from dev_path.
    """

    dev_path: str = "/dev"
    sys_path: str = "/sys"

    def __post_init__(self) -> None:
        """
        Preforms validation on the roots - both must be absolute.

        :return:
        """
        object.__setattr__(self, "dev_path", _validate_root("dev_path", self.dev_path))
        object.__setattr__(self, "sys_path", _validate_root("sys_path", self.sys_path))

    @property
    def watch_dir(self) -> str:
        """
        The live registry directory.

        :return:
        """
        return os.path.join(self.dev_path, WATCH_DIR_NAME)

    @property
    def old_watch_dir(self) -> str:
        """
        Where the previous run's registry is moved to while it's being restored.

        :return:
        """
        return os.path.join(self.dev_path, OLD_WATCH_DIR_NAME)

    @classmethod
    def from_udev_conf(cls, conf_path: str = UDEV_CONF) -> WatchConfig:
        """
        Read udev_root out of a udev.conf style file.

        A missing file just means the defaults.
        :param conf_path:
        :return:
        """
        logger = logging.getLogger(__name__ + ":" + cls.__name__)

        try:
            with open(conf_path, "r", encoding="utf-8") as conf_file:
                values = parse_conf_lines(conf_file)
        except FileNotFoundError:
            logger.debug("No config file at %s - using defaults", conf_path)
            return cls()

        config = cls(dev_path=values.get("udev_root", cls.dev_path))
        logger.debug("Loaded %s from %s", config, conf_path)
        return config

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, conf_path: str = UDEV_CONF
    ) -> WatchConfig:
        """
        Config file values, overridden by UDEV_ROOT and SYSFS_PATH.

        :param environ: Defaults to os.environ
        :param conf_path:
        :return:
        """
        if environ is None:
            environ = os.environ

        config = cls.from_udev_conf(conf_path)
        return dataclasses.replace(
            config,
            dev_path=environ.get("UDEV_ROOT") or config.dev_path,
            sys_path=environ.get("SYSFS_PATH") or config.sys_path,
        )


def parse_conf_lines(lines: Iterable[str]) -> dict[str, str]:
    """
    Parse key=value lines - values may be quoted, # starts a comment line.

    :param lines:
    :return:
    """
    values: dict[str, str] = {}
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key, sep, value = line.partition("=")
        if not sep:
            continue

        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        values[key.strip()] = value
    return values


def _validate_root(name: str, value: str) -> str:
    if not isinstance(value, str) or not os.path.isabs(value):
        raise WatchConfigError(f"{name} must be an absolute path - got {value!r}")
    # "/dev/" and "/dev" name the same tree
    return value.rstrip("/") or "/"
