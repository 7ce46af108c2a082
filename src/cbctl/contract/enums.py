# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Canonical enum definitions for the Cloud Build API contract."""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class BuildStatus(str, Enum):
    """Build status values as reported by Cloud Build.

    Values the service reports that are not listed here parse as STATUS_UNKNOWN.
    """

    STATUS_UNKNOWN = "STATUS_UNKNOWN"
    QUEUED = "QUEUED"
    WORKING = "WORKING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"

    @classmethod
    def _missing_(cls, value):
        logger.debug("Unrecognized build status %r, treating as STATUS_UNKNOWN", value)
        return cls.STATUS_UNKNOWN

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition can occur from this status."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        BuildStatus.SUCCESS,
        BuildStatus.FAILURE,
        BuildStatus.INTERNAL_ERROR,
        BuildStatus.TIMEOUT,
        BuildStatus.CANCELLED,
    }
)
