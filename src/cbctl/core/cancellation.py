# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Best-effort cancellation of an in-flight build.

Called from the signal listener thread (quit signals) or from the
submitter's cleanup path (KeyboardInterrupt). A failed cancellation is
logged; it never replaces the error that triggered it.
"""

import logging
import threading

from google.api_core import exceptions as api_exceptions

from cbctl.core.cloudbuild import BuildService
from cbctl.core.errors import ServiceError
from cbctl.core.retry import retry_call
from cbctl.core.submission import Submission
from cbctl.logging_utils import STOP, error, section, success

logger = logging.getLogger(__name__)


class CancellationController:
    """Cancels the submission's build if it is running.

    Usage:
        controller = CancellationController(submission, builds)
        controller.cancel()  # safe to call any number of times
    """

    def __init__(self, submission: Submission, builds: BuildService):
        self.submission = submission
        self.builds = builds
        self._lock = threading.Lock()
        self._requested = False

    def _cancel_once(self, build_id: str) -> None:
        config = self.submission.config
        try:
            self.builds.cancel_build(config.project, build_id, timeout=config.cloudbuild_timeout)
        except api_exceptions.NotModified:
            # Finished or already cancelled between the check and the call
            logger.debug("Build %s was not modified by cancel", build_id)

    def cancel(self) -> bool:
        """Cancel the build unless there is nothing to cancel.

        Returns:
            True if a cancel request succeeded, False otherwise (including no-ops)
        """
        with self._lock:
            snapshot = self.submission.snapshot()
            if snapshot.build_id is None:
                logger.debug("No build to cancel")
                return False
            if snapshot.is_finished:
                logger.debug("Build %s already finished with %s", snapshot.build_id, snapshot.status.value)
                return False
            if self._requested:
                logger.debug("Cancellation of build %s already requested", snapshot.build_id)
                return False
            self._requested = True

            section(f"Cancelling build {snapshot.build_id}...", STOP, logger)
            try:
                retry_call(
                    lambda: self._cancel_once(snapshot.build_id),
                    description=f"cancel build {snapshot.build_id}",
                    max_try=self.submission.config.cloudbuild_try,
                )
            except ServiceError as e:
                error(str(e), logger)
                return False

            success(f"Cancelled build {snapshot.build_id}", logger)
            return True
