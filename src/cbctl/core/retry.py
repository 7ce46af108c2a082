# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Retry driver shared by the upload, launch, and cancel calls."""

import logging
from collections.abc import Callable
from typing import TypeVar

from cbctl.core.backoff import Backoff
from cbctl.core.errors import ServiceError, SubmitError, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_call(func: Callable[[], T], description: str, max_try: int) -> T:
    """Call func until it succeeds or the retry budget runs out.

    Args:
        func: Zero-argument callable performing one attempt
        description: What the call does, for log and error messages
        max_try: Maximum number of attempts (0 means unbounded)

    Returns:
        Whatever func returns

    Raises:
        SubmitError: Re-raised untouched if func raises one
        ServiceError: If the error is not retryable or the budget is exhausted
    """
    backoff = Backoff()
    while True:
        try:
            return func()
        except SubmitError:
            raise
        except Exception as e:
            attempt = backoff.attempt
            if not is_retryable(e):
                raise ServiceError(f"Failed to {description}", e) from e
            if max_try > 0 and attempt >= max_try:
                raise ServiceError(f"Failed to {description} after {attempt} attempts", e) from e
            logger.warning(
                "Failed to %s (attempt %d), retrying in %d msec: %s",
                description,
                attempt,
                backoff.next_sleep_msec,
                e,
            )
            backoff.sleep()
