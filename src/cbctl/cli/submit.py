#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Build submission interface for cbctl.

Archives a source directory, uploads it to Cloud Storage, starts a Cloud
Build build from it, and streams the build log to stdout until the build
finishes. The exit code reflects the build result.

Usage:
    cbctl .                                          # Build the current directory
    cbctl src/ -c deploy/cloudbuild.yaml --project my-project
    cbctl . --substitutions _ENV=prod,_TAG=v1.2.0
"""

import argparse
import contextlib
import functools
import logging
import sys
import uuid
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from google.auth.exceptions import DefaultCredentialsError
from rich.console import Console

from cbctl.cli.mixins import LaunchStageMixin, UploadStageMixin, WatchStageMixin
from cbctl.contract import BuildStatus
from cbctl.core.build_spec import read_build_spec
from cbctl.core.cancellation import CancellationController
from cbctl.core.cloudbuild import BuildService, CloudBuildClient
from cbctl.core.config import load_config, parse_substitutions, resolve_defaults
from cbctl.core.errors import (
    SIGNAL_EXIT_CODE,
    BuildResultError,
    ConfigurationError,
    exit_code_for,
)
from cbctl.core.gcs_path import parse_gcs_url
from cbctl.core.interrupts import listen_for_interrupts
from cbctl.core.schema import SubmitConfig
from cbctl.core.storage import GcsObjectStore, ObjectStore
from cbctl.core.submission import Submission
from cbctl.logging_utils import setup_logging

logger = logging.getLogger(__name__)

console = Console(stderr=True)


@dataclass
class BuildSubmitter(UploadStageMixin, LaunchStageMixin, WatchStageMixin):
    """Runs one submission: upload -> launch -> watch.

    Usage:
        config = resolve_defaults(load_config())
        submitter = BuildSubmitter(config, store, builds, log_sink=sys.stdout.buffer)
        build_id = submitter.run()
    """

    config: SubmitConfig
    store: ObjectStore
    builds: BuildService
    log_sink: BinaryIO
    submission: Submission = field(init=False)

    def __post_init__(self):
        self.submission = Submission(self.config)

    @functools.cached_property
    def cancellation(self) -> CancellationController:
        """Cancellation controller bound to this submission."""
        return CancellationController(self.submission, self.builds)

    def run(self) -> str:
        """Run the complete submission.

        Returns:
            Id of the build, which finished with SUCCESS

        Raises:
            ConfigurationError: Invalid staging dir, build spec or source dir
            ServiceError: Upload, launch or watch gave up
            BuildResultError: The build finished with a non-SUCCESS status
        """
        staging_dir = self.config.gcs_source_staging_dir
        try:
            staging = parse_gcs_url(staging_dir, allow_empty_object=True)
        except ValueError as e:
            raise ConfigurationError(f"Invalid gcs URL '{staging_dir}'", e) from e
        self.submission.source_path = staging.join(f"{uuid.uuid4().hex}.tgz")

        build = read_build_spec(self.config.config, self.config.substitutions)

        with contextlib.closing(self.archive_source()) as stream:
            self.upload_source(stream)

        try:
            build_id = self.launch_build(build)
            status = self.watch_build(build_id)
        except KeyboardInterrupt:
            logger.warning("Interrupted, cancelling the build")
            self.cancellation.cancel()
            raise

        if status is not BuildStatus.SUCCESS:
            raise BuildResultError(build_id, status)
        return build_id


def create_submitter(config: SubmitConfig, log_sink: BinaryIO | None = None) -> BuildSubmitter:
    """Create a submitter talking to Cloud Storage and Cloud Build.

    Raises:
        ConfigurationError: If no application default credentials are available
    """
    try:
        store = GcsObjectStore.from_default_credentials(config.project)
        builds = CloudBuildClient.from_default_credentials()
    except DefaultCredentialsError as e:
        raise ConfigurationError("Failed to get default credentials", e) from e

    return BuildSubmitter(
        config=config,
        store=store,
        builds=builds,
        log_sink=log_sink if log_sink is not None else sys.stdout.buffer,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cbctl",
        description="cbctl - submit a build to Google Cloud Build and stream its log",
        epilog="""Exit codes:
  0    build succeeded
  10   build finished with an unknown status
  11   build failed
  12   build failed with an internal error
  13   build timed out
  14   build was cancelled
  100  unexpected error
  101  configuration error
  102  service error
""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("source_dir", nargs="?", help="Source directory to archive (default: .)")
    parser.add_argument("--project", help="ID of Google Cloud Project")
    parser.add_argument("--gcs-source-staging-dir", help="GCS directory to store source archives")
    parser.add_argument("--ignore-file", help="File to use instead of .gcloudignore")
    parser.add_argument("-c", "--config", help="File to use instead of cloudbuild.yaml")
    parser.add_argument("--substitutions", type=parse_substitutions, help="KEY=VALUE,... build substitutions")
    parser.add_argument("--polling-interval-msec", type=int, help="Interval for polling build status and logs")
    parser.add_argument("--upload-try", type=int, help="Upload attempts (0: unbounded)")
    parser.add_argument("--upload-timeout-msec", type=int, help="Timeout for the whole upload")
    parser.add_argument("--cloudbuild-try", type=int, help="Build create/cancel attempts (0: unbounded)")
    parser.add_argument("--cloudbuild-timeout-msec", type=int, help="Timeout for each Cloud Build call")
    parser.add_argument("--gcs-timeout-msec", type=int, help="Timeout for each log read")
    parser.add_argument("--max-get-build-error-count", type=int, help="Consecutive status errors to give up at")
    parser.add_argument("--max-read-log-error-count", type=int, help="Consecutive log read errors to give up at")
    parser.add_argument(
        "--always-dump",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also trap SIGUSR1 to dump thread stacks without exiting",
    )
    parser.add_argument("--settings", help="Settings file to use instead of cbctl.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


_NON_CONFIG_ARGS = {"settings", "verbose"}


def config_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Config values given on the command line (unset flags are None and ignored)."""
    return {k: v for k, v in vars(args).items() if k not in _NON_CONFIG_ARGS and v is not None}


def main(argv: list[str] | None = None):
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except ConfigurationError as e:
        parser.error(str(e))

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = resolve_defaults(load_config(config_overrides(args), settings_path=args.settings))
        submitter = create_submitter(config)

        with listen_for_interrupts(submitter.cancellation.cancel, always_dump=config.always_dump):
            build_id = submitter.run()

    except KeyboardInterrupt:
        console.print("[bold red]Interrupted[/]")
        sys.exit(SIGNAL_EXIT_CODE)
    except Exception as e:
        console.print(f"[bold red]❌ Error:[/] {e}")
        logging.debug("Full traceback:", exc_info=True)
        sys.exit(exit_code_for(e))

    console.print(f"[bold green]✅ Build {build_id} succeeded![/]")
    sys.exit(0)


if __name__ == "__main__":
    main()
