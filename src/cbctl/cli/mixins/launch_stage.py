# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Launch stage mixin for BuildSubmitter.

Attaches the uploaded source to the build spec and starts the build.
"""

import logging
from typing import TYPE_CHECKING

from cbctl.contract import Source, StorageSource
from cbctl.core.retry import retry_call
from cbctl.logging_utils import step

if TYPE_CHECKING:
    from cbctl.contract import Build
    from cbctl.core.cloudbuild import BuildService
    from cbctl.core.schema import SubmitConfig
    from cbctl.core.submission import Submission

logger = logging.getLogger(__name__)


class LaunchStageMixin:
    """Mixin for the build launch stage.

    Requires:
        self.config: SubmitConfig
        self.builds: BuildService
        self.submission: Submission (with source_path set)
    """

    config: "SubmitConfig"
    builds: "BuildService"
    submission: "Submission"

    def launch_build(self, build: "Build") -> str:
        """Start the build and publish its id on the submission.

        Only checks that an id was assigned; status is the watch stage's job.

        Returns:
            The new build id

        Raises:
            ServiceError: If retries are exhausted or the error isn't retryable
        """
        path = self.submission.source_path
        assert path is not None
        build.source = Source(storage_source=StorageSource(bucket=path.bucket, object_name=path.object_name))

        build_id = retry_call(
            lambda: self.builds.create_build(self.config.project, build, timeout=self.config.cloudbuild_timeout),
            description=f"create a new build for source archive {path}",
            max_try=self.config.cloudbuild_try,
        )
        self.submission.assign_build_id(build_id)
        step(f"Started build {build_id}", logger)
        return build_id
