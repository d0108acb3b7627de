# SPDX-FileCopyrightText: 2023 Mewbot Developers <mewbot@quicksilver.london>
#
# SPDX-License-Identifier: BSD-2-Clause

"""
Shared fixtures for the watch registry tests.
"""

import pytest

from tests.test_udevwatch.watch_test_utils import DeviceTree


@pytest.fixture
def tree(tmp_path) -> DeviceTree:  # type: ignore
    """
    A fresh dev and sys tree under a temporary directory.
    """
    return DeviceTree(str(tmp_path))
