# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Core modules for cbctl.

This package contains:
- schema: Frozen SubmitConfig dataclass
- config: Config loading and default resolution
- errors: Error taxonomy, retry classification, exit codes
- backoff / retry: Exponential backoff and the retry driver
- gcs_path: gs:// locations
- build_spec: cloudbuild.yaml reader
- archive: Source archiving with ignore-file support
- storage / cloudbuild: Cloud Storage and Cloud Build clients
- submission / cancellation: Shared submission state and build cancellation
- interrupts: Signal-driven stack dumps and shutdown
"""

from .backoff import Backoff
from .cancellation import CancellationController
from .config import load_config, resolve_defaults
from .errors import (
    BuildResultError,
    ConfigurationError,
    ExitCode,
    ServiceError,
    SubmitError,
    exit_code_for,
    is_ignorable_read_error,
    is_retryable,
)
from .gcs_path import GcsPath, parse_gcs_url
from .interrupts import InterruptListener, listen_for_interrupts
from .retry import retry_call
from .schema import SubmitConfig
from .submission import Submission, SubmissionSnapshot

__all__ = [
    # Config
    "SubmitConfig",
    "load_config",
    "resolve_defaults",
    # Errors
    "SubmitError",
    "ConfigurationError",
    "ServiceError",
    "BuildResultError",
    "ExitCode",
    "exit_code_for",
    "is_retryable",
    "is_ignorable_read_error",
    # Retry
    "Backoff",
    "retry_call",
    # Paths
    "GcsPath",
    "parse_gcs_url",
    # Submission
    "Submission",
    "SubmissionSnapshot",
    "CancellationController",
    # Signals
    "InterruptListener",
    "listen_for_interrupts",
]
