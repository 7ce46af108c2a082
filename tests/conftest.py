# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures and in-memory fakes for Cloud Storage and Cloud Build."""

import io
from unittest.mock import patch

import pytest
from google.api_core import exceptions as api_exceptions

from cbctl.contract import Build, BuildStatus
from cbctl.core.gcs_path import GcsPath
from cbctl.core.schema import SubmitConfig

LOGS_BUCKET = "gs://test-logs"
PROJECT = "test-project"


# ============================================================================
# Fakes
# ============================================================================


class FakeObjectStore:
    """In-memory ObjectStore with scripted failures.

    write_errors: exceptions raised by successive write_object() calls
    read_failures: per range_read() call, either an exception or
        (n_bytes, exception) to deliver n_bytes before failing
    """

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.write_errors: list[Exception] = []
        self.read_failures: list = []
        self.writes: list[str] = []
        self.read_offsets: list[int] = []

    def write_object(self, path: GcsPath, stream, timeout: float) -> int:
        self.writes.append(str(path))
        if self.write_errors:
            raise self.write_errors.pop(0)
        data = stream.read()
        self.objects[str(path)] = data
        return len(data)

    def append(self, path: GcsPath, data: bytes) -> None:
        if data:
            self.objects[str(path)] = self.objects.get(str(path), b"") + data

    def range_read(self, path: GcsPath, offset: int, sink, timeout: float) -> None:
        self.read_offsets.append(offset)
        key = str(path)
        failure = self.read_failures.pop(0) if self.read_failures else None

        if key not in self.objects:
            raise api_exceptions.NotFound(f"No such object: {key}")
        data = self.objects[key]
        if offset >= len(data):
            raise api_exceptions.RequestRangeNotSatisfiable("Requested range not satisfiable")

        if isinstance(failure, tuple):
            n_bytes, error = failure
            sink.write(data[offset : offset + n_bytes])
            raise error
        if failure is not None:
            raise failure
        sink.write(data[offset:])


class FakeBuildService:
    """In-memory BuildService following a script of (status, new_log_bytes) steps.

    Every successful get_build() advances one step and appends that step's
    log bytes to the log object. The last step repeats forever.
    get_errors: exceptions raised (without advancing) before the next step
    """

    def __init__(self, store: FakeObjectStore, script=None, build_id: str = "test-build-id"):
        self.store = store
        self.script = list(script or [(BuildStatus.SUCCESS, b"")])
        self.build_id = build_id
        self.created: list[Build] = []
        self.create_errors: list[Exception] = []
        self.get_errors: list[Exception] = []
        self.cancel_errors: list[Exception] = []
        self.cancelled: list[str] = []
        self.get_calls = 0

    @property
    def log_path(self) -> GcsPath:
        return GcsPath("test-logs", f"log-{self.build_id}.txt")

    def create_build(self, project: str, build: Build, timeout: float) -> str:
        if self.create_errors:
            raise self.create_errors.pop(0)
        self.created.append(build)
        return self.build_id

    def get_build(self, project: str, build_id: str, timeout: float) -> Build:
        self.get_calls += 1
        if self.get_errors:
            error = self.get_errors.pop(0)
            if error is not None:
                raise error
        status, log_bytes = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        self.store.append(self.log_path, log_bytes)
        return Build(
            id=build_id,
            status=status,
            logs_bucket=LOGS_BUCKET,
            log_url=f"https://console.cloud.google.com/cloud-build/builds/{build_id}",
        )

    def cancel_build(self, project: str, build_id: str, timeout: float) -> None:
        self.cancelled.append(build_id)
        if self.cancel_errors:
            raise self.cancel_errors.pop(0)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def source_dir(tmp_path):
    """A small source tree with a build spec and an ignore file."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "main.py").write_text("print('hello')\n")
    (src / "lib").mkdir()
    (src / "lib" / "util.py").write_text("X = 1\n")
    (src / "build").mkdir()
    (src / "build" / "out.bin").write_bytes(b"\x00" * 16)
    (src / "debug.log").write_text("noise\n")
    (src / ".gcloudignore").write_text("# local artifacts\nbuild/\n*.log\n")
    (src / "cloudbuild.yaml").write_text(
        "steps:\n"
        "  - name: gcr.io/cloud-builders/docker\n"
        "    args: ['build', '-t', 'gcr.io/$PROJECT_ID/app:$_TAG', '.']\n"
        "substitutions:\n"
        "  _TAG: latest\n"
    )
    return src


@pytest.fixture
def config(source_dir) -> SubmitConfig:
    return SubmitConfig(
        source_dir=str(source_dir),
        project=PROJECT,
        gcs_source_staging_dir="gs://test-staging/source",
        config=str(source_dir / "cloudbuild.yaml"),
        polling_interval_msec=10,
        upload_try=5,
        cloudbuild_try=3,
        max_get_build_error_count=3,
        max_read_log_error_count=3,
    )


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def log_sink() -> io.BytesIO:
    return io.BytesIO()


@pytest.fixture
def backoff_time():
    """Patched time module used by Backoff (sleep calls are recorded, not slept)."""
    with patch("cbctl.core.backoff.time") as mock_time:
        yield mock_time


@pytest.fixture
def poll_time():
    """Patched time module used by the watch loop."""
    with patch("cbctl.cli.mixins.watch_stage.time") as mock_time:
        yield mock_time
