# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Watch stage mixin for BuildSubmitter.

Polls the build status and tails the build log until the build reaches a
terminal status. Each cycle runs, strictly in order:

1. Status poll   - get the build; failures count against the status budget
2. Start gate    - while the build is still QUEUED, there is no log to read
3. Log read      - copy new log bytes from the current offset to the sink
4. Terminal check - stop on a terminal status, otherwise sleep and repeat

Status polling and log reading have independent failure budgets. A missing
log object (404) or no new bytes (416) is normal and never counts against
either of them.

The log offset only moves forward, and only by bytes actually delivered to
the sink, so output is never skipped or duplicated across failed reads.
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO

from cbctl.contract import Build, BuildStatus
from cbctl.core.errors import ServiceError, is_ignorable_read_error, is_retryable
from cbctl.core.gcs_path import GcsPath, parse_gcs_url
from cbctl.core.storage import CountingWriter
from cbctl.logging_utils import LINK, step, waiting, warn

if TYPE_CHECKING:
    from cbctl.core.cloudbuild import BuildService
    from cbctl.core.schema import SubmitConfig
    from cbctl.core.storage import ObjectStore
    from cbctl.core.submission import Submission

logger = logging.getLogger(__name__)


@dataclass
class WatchState:
    """Mutable state of one watch loop.

    Attributes:
        build: Latest known build snapshot (kept when a poll fails)
        offset: Number of log bytes already delivered to the sink
        status_attempt: Consecutive failed status polls
        log_attempt: Consecutive failed (non-ignorable) log reads
        started: Whether the build has been seen outside QUEUED
        complete: Whether the build reached a terminal status
    """

    build: Build
    offset: int = 0
    status_attempt: int = 0
    log_attempt: int = 0
    started: bool = False
    complete: bool = False
    log_path: GcsPath | None = None
    warned_no_logs: bool = False


class WatchStageMixin:
    """Mixin for the build watch stage.

    Requires:
        self.config: SubmitConfig
        self.builds: BuildService
        self.store: ObjectStore
        self.submission: Submission
        self.log_sink: binary stream receiving the build log
    """

    config: "SubmitConfig"
    builds: "BuildService"
    store: "ObjectStore"
    submission: "Submission"
    log_sink: BinaryIO

    def watch_build(self, build_id: str) -> BuildStatus:
        """Stream the build log until the build finishes.

        Returns:
            The terminal build status (also recorded on the submission)

        Raises:
            ServiceError: If status polling or log reading exhausts its budget
        """
        state = WatchState(build=Build(id=build_id))
        waiting(f"Waiting for build {build_id} to start...", logger)

        while not state.complete:
            self._poll_status(state, build_id)

            if state.started or state.build.status is not BuildStatus.QUEUED:
                self._read_log(state)

            if state.build.status.is_terminal:
                state.complete = True
            else:
                time.sleep(self.config.polling_interval)

        self.submission.record_status(state.build.status)
        logger.info("Build %s finished with %s", build_id, state.build.status.value)
        return state.build.status

    def _poll_status(self, state: WatchState, build_id: str) -> None:
        try:
            build = self.builds.get_build(self.config.project, build_id, timeout=self.config.cloudbuild_timeout)
        except Exception as e:
            state.status_attempt += 1
            limit = self.config.max_get_build_error_count
            if not is_retryable(e) or (limit > 0 and state.status_attempt >= limit):
                raise ServiceError(f"Failed to stat build {build_id}", e) from e
            logger.warning("Failed to stat build %s (%d): %s", build_id, state.status_attempt, e)
            return

        state.status_attempt = 0
        state.build = build
        if not state.started and build.status is not BuildStatus.QUEUED:
            state.started = True
            self._on_build_started(build)

    def _on_build_started(self, build: Build) -> None:
        step(f"Build {build.id} started", logger)
        if build.log_url:
            logger.info("%s Logs are available at [%s]", LINK, build.log_url)

    def _resolve_log_path(self, state: WatchState) -> GcsPath | None:
        if state.log_path is not None:
            return state.log_path

        build = state.build
        if not build.logs_bucket:
            if state.started and not state.warned_no_logs:
                warn(f"Build {build.id} has no logs bucket; build log will not be streamed", logger)
                state.warned_no_logs = True
            return None

        try:
            bucket = parse_gcs_url(build.logs_bucket, allow_empty_object=True)
        except ValueError as e:
            raise ServiceError(f"Invalid logs bucket for build {build.id}", e) from e
        state.log_path = bucket.join(f"log-{build.id}.txt")
        logger.debug("Tailing build log %s", state.log_path)
        return state.log_path

    def _read_log(self, state: WatchState) -> None:
        log_path = self._resolve_log_path(state)
        if log_path is None:
            return

        writer = CountingWriter(self.log_sink)
        try:
            self.store.range_read(log_path, state.offset, writer, timeout=self.config.gcs_timeout)
        except Exception as e:
            # Partial reads count: bytes already delivered must not be re-read
            state.offset += writer.count
            writer.flush()
            if is_ignorable_read_error(e):
                state.log_attempt = 0
                return
            state.log_attempt += 1
            limit = self.config.max_read_log_error_count
            if limit > 0 and state.log_attempt >= limit:
                raise ServiceError("Failed to read log", e) from e
            logger.warning("Failed to read log (%d): %s", state.log_attempt, e)
            return

        state.log_attempt = 0
        state.offset += writer.count
        writer.flush()
