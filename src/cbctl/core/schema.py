# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Frozen dataclass schema for the submission configuration.

Uses marshmallow_dataclass for type-safe configuration with validation.
The config is frozen (immutable) after creation; defaults are filled in with
dataclasses.replace().

All "*_try" and "max_*_count" fields use 0 to mean "unbounded".
"""

from dataclasses import field
from typing import ClassVar, Dict, Optional, Type

from marshmallow import Schema, validate
from marshmallow_dataclass import dataclass

_non_negative = {"validate": validate.Range(min=0)}
_positive = {"validate": validate.Range(min=1)}


@dataclass(frozen=True)
class SubmitConfig:
    """Complete cbctl submission configuration (frozen, immutable)."""

    source_dir: str = "."
    project: Optional[str] = None
    gcs_source_staging_dir: Optional[str] = None
    ignore_file: str = ".gcloudignore"
    config: str = "cloudbuild.yaml"
    substitutions: Dict[str, str] = field(default_factory=dict)

    polling_interval_msec: int = field(default=1000, metadata=_positive)

    upload_try: int = field(default=3, metadata=_non_negative)
    upload_timeout_msec: int = field(default=300000, metadata=_positive)

    cloudbuild_try: int = field(default=3, metadata=_non_negative)
    cloudbuild_timeout_msec: int = field(default=10000, metadata=_positive)

    gcs_timeout_msec: int = field(default=10000, metadata=_positive)

    max_get_build_error_count: int = field(default=5, metadata=_non_negative)
    max_read_log_error_count: int = field(default=5, metadata=_non_negative)

    # Trap SIGUSR1 to dump thread stacks; quit signals are always trapped
    always_dump: bool = True

    Schema: ClassVar[Type[Schema]] = Schema

    @property
    def polling_interval(self) -> float:
        return self.polling_interval_msec / 1000

    @property
    def upload_timeout(self) -> float:
        return self.upload_timeout_msec / 1000

    @property
    def cloudbuild_timeout(self) -> float:
        return self.cloudbuild_timeout_msec / 1000

    @property
    def gcs_timeout(self) -> float:
        return self.gcs_timeout_msec / 1000
