# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Live state of one build submission.

The submitter (main thread) is the only writer. The signal listener thread
only reads through snapshot(), so it never sees a half-published value.
"""

import logging
import threading
from dataclasses import dataclass

from cbctl.contract import BuildStatus
from cbctl.core.gcs_path import GcsPath
from cbctl.core.schema import SubmitConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionSnapshot:
    """Point-in-time view of a submission.

    Attributes:
        build_id: Assigned build id, or None before launch succeeded
        status: Terminal status, or None while the build is still running
    """

    build_id: str | None
    status: BuildStatus | None

    @property
    def is_finished(self) -> bool:
        return self.status is not None


class Submission:
    """Single-writer state shared between the submitter and the cancellation path.

    Usage:
        submission = Submission(config)
        submission.source_path = parse_gcs_url("gs://bucket/source/abc.tgz")
        submission.assign_build_id("1234")
        submission.record_status(BuildStatus.SUCCESS)
    """

    def __init__(self, config: SubmitConfig):
        self.config = config
        self.source_path: GcsPath | None = None
        self._build_id: str | None = None
        self._status: BuildStatus | None = None
        self._lock = threading.Lock()

    @property
    def build_id(self) -> str | None:
        with self._lock:
            return self._build_id

    @property
    def status(self) -> BuildStatus | None:
        with self._lock:
            return self._status

    def assign_build_id(self, build_id: str) -> None:
        """Publish the build id. May only be called once."""
        with self._lock:
            if self._build_id is not None:
                raise RuntimeError(f"Build id already assigned ({self._build_id})")
            self._build_id = build_id
        logger.debug("Assigned build id %s", build_id)

    def record_status(self, status: BuildStatus) -> None:
        """Publish the terminal status the watch stage ended with."""
        with self._lock:
            self._status = status

    def snapshot(self) -> SubmissionSnapshot:
        with self._lock:
            return SubmissionSnapshot(build_id=self._build_id, status=self._status)
