# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Stage mixins for BuildSubmitter.

Each mixin handles one stage of a submission:
- UploadStageMixin: Source archiving and upload
- LaunchStageMixin: Build creation
- WatchStageMixin: Status polling and log tailing
"""

from cbctl.cli.mixins.launch_stage import LaunchStageMixin
from cbctl.cli.mixins.upload_stage import UploadStageMixin
from cbctl.cli.mixins.watch_stage import WatchState, WatchStageMixin

__all__ = [
    "UploadStageMixin",
    "LaunchStageMixin",
    "WatchStageMixin",
    "WatchState",
]
