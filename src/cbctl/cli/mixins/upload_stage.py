# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Upload stage mixin for BuildSubmitter.

Archives the source directory and uploads it to the staging location.
"""

import logging
from typing import TYPE_CHECKING, BinaryIO

from cbctl.core.archive import create_source_archive
from cbctl.core.retry import retry_call
from cbctl.logging_utils import PACKAGE, section, success

if TYPE_CHECKING:
    from cbctl.core.schema import SubmitConfig
    from cbctl.core.storage import ObjectStore
    from cbctl.core.submission import Submission

logger = logging.getLogger(__name__)


class UploadStageMixin:
    """Mixin for the archive and upload stage.

    Requires:
        self.config: SubmitConfig
        self.store: ObjectStore
        self.submission: Submission (with source_path set)
    """

    config: "SubmitConfig"
    store: "ObjectStore"
    submission: "Submission"

    def archive_source(self) -> BinaryIO:
        """Create the .tgz stream of the source directory."""
        return create_source_archive(self.config.source_dir, self.config.ignore_file)

    def upload_source(self, stream: BinaryIO) -> int:
        """Upload the archive, retrying transient failures.

        Each attempt rewinds the stream and gets the full upload timeout.

        Returns:
            Number of bytes uploaded

        Raises:
            ServiceError: If retries are exhausted or the error isn't retryable
        """
        path = self.submission.source_path
        assert path is not None
        section(f"Uploading source archive to {path}", PACKAGE, logger)

        def attempt() -> int:
            stream.seek(0)
            return self.store.write_object(path, stream, timeout=self.config.upload_timeout)

        written = retry_call(
            attempt,
            description=f"upload source archive to {path}",
            max_try=self.config.upload_try,
        )
        success(f"Uploaded {written} bytes to {path}", logger)
        return written
