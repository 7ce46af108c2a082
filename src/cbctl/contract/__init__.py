# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Shared API contract for the Cloud Build REST API.

This package defines the Pydantic models and enums cbctl exchanges with
Cloud Build. It has zero internal imports outside the package and only
depends on pydantic.

Usage:
    from cbctl.contract import Build, BuildStatus, TERMINAL_STATUSES
"""

from cbctl.contract.builds import Build, BuildOperationMetadata, Operation, Source, StorageSource
from cbctl.contract.enums import TERMINAL_STATUSES, BuildStatus

__all__ = [
    "BuildStatus",
    "TERMINAL_STATUSES",
    "Build",
    "BuildOperationMetadata",
    "Operation",
    "Source",
    "StorageSource",
]
