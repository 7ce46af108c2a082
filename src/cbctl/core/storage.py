# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Object store access on Google Cloud Storage.

Two operations are needed:
- write_object(): upload the source archive
- range_read(): copy a log object from an offset to a sink

Uploads use the JSON API's resumable protocol in fixed-size chunks, so one
deadline can bound the whole transfer: it is checked between chunks and
each chunk request only gets the time that is left. Ranged reads go through
google-cloud-storage.

Both surface failures as google.api_core.exceptions (NotFound,
RequestRangeNotSatisfiable, ServiceUnavailable, ...) so errors.py can
classify them. An upload that overruns its deadline raises TimeoutError.
"""

import logging
import os
import time
from typing import BinaryIO, Protocol

import google.auth
import requests
from google.api_core import exceptions as api_exceptions
from google.auth.transport.requests import AuthorizedSession
from google.cloud import storage

from cbctl.core.cloudbuild import CLOUD_PLATFORM_SCOPE
from cbctl.core.gcs_path import GcsPath

logger = logging.getLogger(__name__)

UPLOAD_API_ROOT = "https://storage.googleapis.com/upload/storage/v1"
ARCHIVE_CONTENT_TYPE = "application/gzip"

# Resumable chunks must be a multiple of 256 KiB
UPLOAD_CHUNK_SIZE = 4 * 256 * 1024

# Shortest timeout handed to a single request near the deadline
MIN_REQUEST_TIMEOUT = 0.5

_RESUME_INCOMPLETE = 308


class ObjectStore(Protocol):
    """Object store operations used by the submitter."""

    def write_object(self, path: GcsPath, stream: BinaryIO, timeout: float) -> int:
        """Upload stream to path, returning the number of bytes written."""
        ...

    def range_read(self, path: GcsPath, offset: int, sink: BinaryIO, timeout: float) -> None:
        """Copy bytes from offset to the end of the object into sink."""
        ...


class DeadlineReader:
    """Read-only stream wrapper enforcing one deadline over the whole transfer.

    Positions are relative to where the stream was when wrapped.
    """

    def __init__(self, stream: BinaryIO, timeout: float):
        self._stream = stream
        self._start = stream.tell()
        self._deadline = time.monotonic() + timeout
        self.timeout = timeout

    def check(self) -> None:
        """Raise TimeoutError once the deadline has passed."""
        if time.monotonic() > self._deadline:
            raise TimeoutError(f"Upload did not finish within {self.timeout:.1f}s")

    def remaining(self) -> float:
        """Timeout for the next request: what is left, but at least MIN_REQUEST_TIMEOUT."""
        return max(self._deadline - time.monotonic(), MIN_REQUEST_TIMEOUT)

    def read(self, size: int = -1) -> bytes:
        self.check()
        return self._stream.read(size)

    def tell(self) -> int:
        return self._stream.tell() - self._start

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        if whence == os.SEEK_SET:
            offset += self._start
        return self._stream.seek(offset, whence) - self._start

    def size(self) -> int:
        """Total readable bytes. Leaves the stream rewound."""
        end = self.seek(0, os.SEEK_END)
        self.seek(0)
        return end


class CountingWriter:
    """Write-through wrapper counting bytes delivered to the underlying sink."""

    def __init__(self, sink: BinaryIO):
        self._sink = sink
        self.count = 0

    def write(self, data: bytes) -> int:
        self._sink.write(data)
        self.count += len(data)
        return len(data)

    def flush(self) -> None:
        self._sink.flush()


def _committed_bytes(response: requests.Response) -> int:
    # "Range: bytes=0-N" means N+1 bytes are persisted; no header means none
    committed = response.headers.get("Range")
    if not committed:
        return 0
    return int(committed.rpartition("-")[2]) + 1


class GcsObjectStore:
    """ObjectStore backed by Cloud Storage.

    Usage:
        store = GcsObjectStore.from_default_credentials(project)
        store.write_object(parse_gcs_url("gs://bucket/src.tgz"), stream, timeout=300)
    """

    def __init__(
        self,
        client: storage.Client,
        session: requests.Session,
        upload_api_root: str = UPLOAD_API_ROOT,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ):
        self.client = client
        self.session = session
        self.upload_api_root = upload_api_root.rstrip("/")
        self.chunk_size = chunk_size

    @classmethod
    def from_default_credentials(cls, project: str | None) -> "GcsObjectStore":
        """Create a store authorized with application default credentials."""
        credentials, _project = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        return cls(storage.Client(project=project, credentials=credentials), AuthorizedSession(credentials))

    def _blob(self, path: GcsPath) -> storage.Blob:
        return self.client.bucket(path.bucket).blob(path.object_name)

    def _check(self, response: requests.Response, *expected: int) -> None:
        if response.status_code not in expected:
            raise api_exceptions.from_http_response(response)

    def _start_upload(self, path: GcsPath, total: int, reader: DeadlineReader) -> str:
        response = self.session.request(
            "POST",
            f"{self.upload_api_root}/b/{path.bucket}/o",
            params={"uploadType": "resumable"},
            json={"name": path.object_name, "contentType": ARCHIVE_CONTENT_TYPE},
            headers={"X-Upload-Content-Type": ARCHIVE_CONTENT_TYPE, "X-Upload-Content-Length": str(total)},
            timeout=reader.remaining(),
        )
        self._check(response, 200, 201)
        session_url = response.headers.get("Location")
        if not session_url:
            raise api_exceptions.InternalServerError(f"No upload session for {path}", response=response)
        return session_url

    def write_object(self, path: GcsPath, stream: BinaryIO, timeout: float) -> int:
        reader = DeadlineReader(stream, timeout)
        total = reader.size()
        session_url = self._start_upload(path, total, reader)
        reader.check()

        offset = 0
        while True:
            reader.seek(offset)
            chunk = reader.read(self.chunk_size)
            end = offset + len(chunk)
            content_range = f"bytes {offset}-{end - 1}/{total}" if chunk else f"bytes */{total}"
            response = self.session.request(
                "PUT",
                session_url,
                data=chunk,
                headers={"Content-Range": content_range},
                timeout=reader.remaining(),
            )
            reader.check()
            if response.status_code in (200, 201):
                break
            self._check(response, _RESUME_INCOMPLETE)
            offset = _committed_bytes(response)
            logger.debug("Uploaded %d/%d bytes to %s", offset, total, path)

        logger.debug("Wrote %d bytes to %s", total, path)
        return total

    def range_read(self, path: GcsPath, offset: int, sink: BinaryIO, timeout: float) -> None:
        # Ranged reads can't be checksummed against the object hash
        self._blob(path).download_to_file(
            sink,
            start=offset,
            raw_download=True,
            checksum=None,
            timeout=timeout,
            retry=None,
        )
