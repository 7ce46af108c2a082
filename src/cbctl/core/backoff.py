# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Exponential backoff between retry attempts."""

import time

INITIAL_SLEEP_MSEC = 100
MAX_SLEEP_MSEC = 5000


class Backoff:
    """Doubling delay generator, capped at MAX_SLEEP_MSEC.

    One instance covers one logical retry sequence. There is no reset:
    create a new instance for the next sequence.

    Usage:
        backoff = Backoff()
        while True:
            try:
                return call()
            except Exception:
                if backoff.attempt >= max_try:
                    raise
                backoff.sleep()
    """

    def __init__(self, initial_msec: int = INITIAL_SLEEP_MSEC, max_msec: int = MAX_SLEEP_MSEC):
        self._attempt = 1
        self._next_sleep_msec = initial_msec
        self._max_sleep_msec = max_msec

    @property
    def attempt(self) -> int:
        """1-based count of attempts made so far."""
        return self._attempt

    @property
    def next_sleep_msec(self) -> int:
        """Delay the next sleep() call will block for."""
        return self._next_sleep_msec

    def sleep(self) -> None:
        """Block for the current delay, then advance to the next attempt."""
        time.sleep(self._next_sleep_msec / 1000)
        self._attempt += 1
        self._next_sleep_msec = min(self._next_sleep_msec * 2, self._max_sleep_msec)
