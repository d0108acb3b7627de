# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

"""
Tests for working out where the registry lives.
"""

import os

import pytest

from udevwatch import WatchConfig, WatchConfigError

# pylint: disable=invalid-name
# for clarity, test functions should be named after the things they test


class TestWatchConfig:
    """
    Defaults, validation and the derived registry dirs.
    """

    def test_defaults(self) -> None:
        """
        The usual places.
        """
        config = WatchConfig()

        assert config.dev_path == "/dev"
        assert config.sys_path == "/sys"
        assert config.watch_dir == "/dev/.udev/watch"
        assert config.old_watch_dir == "/dev/.udev/watch.old"

    def test_trailing_slash_is_dropped(self) -> None:
        """
        /dev/ and /dev are the same tree.
        """
        assert WatchConfig(dev_path="/dev/").watch_dir == "/dev/.udev/watch"

    @pytest.mark.parametrize("value", ["dev", "", "./dev"])
    def test_relative_paths_are_rejected(self, value: str) -> None:
        """
        Relative roots would depend on the working dir of the daemon.
        """
        with pytest.raises(WatchConfigError):
            WatchConfig(dev_path=value)
        with pytest.raises(WatchConfigError):
            WatchConfig(sys_path=value)


class TestWatchConfigLoading:
    """
    Reading udev.conf and the environment.
    """

    def test_from_udev_conf(self, tmp_path) -> None:  # type: ignore
        """
        Quoted and unquoted values, comments and junk lines.
        """
        conf_path = os.path.join(str(tmp_path), "udev.conf")
        with open(conf_path, "w", encoding="utf-8") as conf:
            conf.write(
                "# udev.conf\n"
                'udev_root="/run/dev/"\n'
                "udev_sys=/run/sys\n"  # not a udev.conf key - ignored
                "udev_log='err'\n"
                "garbage line\n"
            )

        config = WatchConfig.from_udev_conf(conf_path)

        assert config.dev_path == "/run/dev"
        assert config.sys_path == "/sys"

    def test_missing_conf_gives_defaults(self, tmp_path) -> None:  # type: ignore
        """
        No config file is not an error.
        """
        assert WatchConfig.from_udev_conf(os.path.join(str(tmp_path), "nope")) == WatchConfig()

    def test_env_overrides_conf(self, tmp_path) -> None:  # type: ignore
        """
        UDEV_ROOT wins over the file - SYSFS_PATH only applies when given.
        """
        conf_path = os.path.join(str(tmp_path), "udev.conf")
        with open(conf_path, "w", encoding="utf-8") as conf:
            conf.write("udev_root=/run/dev\n")

        config = WatchConfig.from_env({"UDEV_ROOT": "/tmp/dev"}, conf_path=conf_path)

        assert config.dev_path == "/tmp/dev"
        assert config.sys_path == "/sys"

    def test_env_sysfs_path(self, tmp_path) -> None:  # type: ignore
        """
        SYSFS_PATH moves the sys root - there's no config file key for it.
        """
        config = WatchConfig.from_env(
            {"SYSFS_PATH": "/run/sys"}, conf_path=os.path.join(str(tmp_path), "nope")
        )

        assert config.dev_path == "/dev"
        assert config.sys_path == "/run/sys"
