# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy, retry classification, and exit codes.

Every failure cbctl reports falls into one of three kinds:
- CONFIGURATION: bad input; never retried
- SERVICE: an infrastructure/API failure that already exhausted its retries
- BUILD_RESULT: the remote build finished, but not with SUCCESS

Anything else is unexpected and exits with ExitCode.UNEXPECTED_ERROR.
"""

from enum import Enum, IntEnum

import requests
from google.api_core import exceptions as api_exceptions

from cbctl.contract import BuildStatus

# Exit code used when a quit signal terminates the process
SIGNAL_EXIT_CODE = 2


class ExitCode(IntEnum):
    SUCCESS = 0
    RESULT_UNKNOWN = 10
    RESULT_FAILURE = 11
    RESULT_INTERNAL_ERROR = 12
    RESULT_TIMEOUT = 13
    RESULT_CANCELLED = 14
    UNEXPECTED_ERROR = 100
    CONFIGURATION_ERROR = 101
    SERVICE_ERROR = 102


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    SERVICE = "service"
    BUILD_RESULT = "build_result"


class SubmitError(Exception):
    """Base class for classified cbctl failures.

    Attributes:
        kind: Which class of failure this is
        message: Human-readable description
        cause: The lower-level exception, if any
    """

    kind: ErrorKind

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


class ConfigurationError(SubmitError):
    """Invalid configuration or local input. Never retried."""

    kind = ErrorKind.CONFIGURATION


class ServiceError(SubmitError):
    """Remote service failure, raised once retries are exhausted."""

    kind = ErrorKind.SERVICE


class BuildResultError(SubmitError):
    """The build reached a terminal status other than SUCCESS."""

    kind = ErrorKind.BUILD_RESULT

    def __init__(self, build_id: str, status: BuildStatus):
        super().__init__(f"Build {build_id} failed with {status.value}")
        self.build_id = build_id
        self.status = status


_STATUS_EXIT_CODES = {
    BuildStatus.SUCCESS: ExitCode.SUCCESS,
    BuildStatus.FAILURE: ExitCode.RESULT_FAILURE,
    BuildStatus.INTERNAL_ERROR: ExitCode.RESULT_INTERNAL_ERROR,
    BuildStatus.TIMEOUT: ExitCode.RESULT_TIMEOUT,
    BuildStatus.CANCELLED: ExitCode.RESULT_CANCELLED,
}


def exit_code_for_status(status: BuildStatus) -> ExitCode:
    """Return the exit code for a terminal build status."""
    return _STATUS_EXIT_CODES.get(status, ExitCode.RESULT_UNKNOWN)


def exit_code_for(err: BaseException | None) -> ExitCode:
    """Return the process exit code appropriate for an error (None means success)."""
    if err is None:
        return ExitCode.SUCCESS
    if isinstance(err, SubmitError):
        if err.kind is ErrorKind.BUILD_RESULT:
            return exit_code_for_status(err.status)
        if err.kind is ErrorKind.CONFIGURATION:
            return ExitCode.CONFIGURATION_ERROR
        if err.kind is ErrorKind.SERVICE:
            return ExitCode.SERVICE_ERROR
    return ExitCode.UNEXPECTED_ERROR


def _http_status_of(err: BaseException) -> int | None:
    if isinstance(err, api_exceptions.GoogleAPICallError) and isinstance(err.code, int):
        return err.code
    if isinstance(err, requests.HTTPError) and err.response is not None:
        return err.response.status_code
    return None


def is_retryable(err: BaseException) -> bool:
    """Whether retrying the failed call makes sense.

    Unknown errors are retryable: most of them are transient network conditions.
    """
    if isinstance(err, SubmitError) and err.kind is ErrorKind.CONFIGURATION:
        return False

    if isinstance(err, (TimeoutError, requests.Timeout, api_exceptions.DeadlineExceeded)):
        return True

    status = _http_status_of(err)
    if status is not None:
        # 429 (Too Many Requests) and server side errors
        return status == 429 or status >= 500

    return True


def is_ignorable_read_error(err: BaseException) -> bool:
    """Whether a log read error is an expected steady-state condition.

    404: the log object does not exist yet.
    416: no new bytes since the last offset.
    """
    if isinstance(err, (api_exceptions.NotFound, api_exceptions.RequestRangeNotSatisfiable)):
        return True
    return _http_status_of(err) in (404, 416)
