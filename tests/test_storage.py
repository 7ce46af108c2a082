# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for gs:// paths and the Cloud Storage object store."""

import io
from unittest.mock import MagicMock, patch

import pytest
import requests
from google.api_core import exceptions as api_exceptions

from cbctl.core.gcs_path import GcsPath, parse_gcs_url
from cbctl.core.storage import MIN_REQUEST_TIMEOUT, CountingWriter, DeadlineReader, GcsObjectStore


# ============================================================================
# GcsPath Tests
# ============================================================================


class TestParseGcsUrl:
    """Test parse_gcs_url()."""

    def test_bucket_and_object(self):
        path = parse_gcs_url("gs://my-bucket/source/archive.tgz")

        assert path == GcsPath("my-bucket", "source/archive.tgz")
        assert str(path) == "gs://my-bucket/source/archive.tgz"

    def test_bucket_only_when_allowed(self):
        path = parse_gcs_url("gs://logs-bucket", allow_empty_object=True)

        assert path.bucket == "logs-bucket"
        assert path.object_name == ""

    @pytest.mark.parametrize(
        "url",
        [
            "s3://bucket/key",
            "https://storage.googleapis.com/bucket/key",
            "gs://",
            "gs:///key",
            "bucket/key",
        ],
    )
    def test_invalid_urls(self, url):
        with pytest.raises(ValueError):
            parse_gcs_url(url, allow_empty_object=True)

    def test_empty_object_rejected_by_default(self):
        with pytest.raises(ValueError):
            parse_gcs_url("gs://bucket")

    def test_join(self):
        staging = parse_gcs_url("gs://p_cloudbuild/source", allow_empty_object=True)

        assert str(staging.join("abc.tgz")) == "gs://p_cloudbuild/source/abc.tgz"
        assert str(GcsPath("logs", "").join("log-1.txt")) == "gs://logs/log-1.txt"


# ============================================================================
# Stream Wrapper Tests
# ============================================================================


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self):
        self.now = 100.0

    def monotonic(self):
        return self.now


@pytest.fixture
def clock():
    fake = FakeClock()
    with patch("cbctl.core.storage.time") as mock_time:
        mock_time.monotonic.side_effect = fake.monotonic
        yield fake


class TestDeadlineReader:
    def test_reads_through_before_deadline(self):
        reader = DeadlineReader(io.BytesIO(b"0123456789"), timeout=60)

        assert reader.read(4) == b"0123"
        assert reader.read() == b"456789"

    def test_raises_after_deadline(self, clock):
        reader = DeadlineReader(io.BytesIO(b"data"), timeout=5)
        clock.now += 5.5

        with pytest.raises(TimeoutError):
            reader.read(1)
        with pytest.raises(TimeoutError):
            reader.check()

    def test_remaining_has_a_floor(self, clock):
        reader = DeadlineReader(io.BytesIO(b"data"), timeout=5)

        assert reader.remaining() == 5
        clock.now += 4
        assert reader.remaining() == 1
        clock.now += 10
        assert reader.remaining() == MIN_REQUEST_TIMEOUT

    def test_positions_are_relative_to_start(self):
        stream = io.BytesIO(b"xxpayload")
        stream.seek(2)
        reader = DeadlineReader(stream, timeout=60)

        assert reader.size() == 7
        assert reader.tell() == 0
        reader.read(3)
        assert reader.tell() == 3
        assert reader.seek(0) == 0
        assert reader.read() == b"payload"


class TestCountingWriter:
    def test_counts_delivered_bytes(self):
        sink = io.BytesIO()
        writer = CountingWriter(sink)

        writer.write(b"abc")
        writer.write(b"")
        writer.write(b"de")

        assert writer.count == 5
        assert sink.getvalue() == b"abcde"


# ============================================================================
# GcsObjectStore Tests
# ============================================================================

SESSION_URL = "https://storage.googleapis.com/upload/storage/v1/b/b/o?uploadType=resumable&upload_id=xyz"


def make_response(status_code: int, method: str, url: str, headers=None, body: bytes = b"{}") -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.headers.update(headers or {})
    response._content = body
    response.request = requests.Request(method, url).prepare()
    return response


class FakeUploadSession:
    """Resumable upload endpoint that commits every chunk it receives.

    put_delay: seconds each PUT takes on the fake clock
    put_statuses: status codes to answer successive PUTs with (default: 308 or 200)
    """

    def __init__(self, clock=None, put_delay: float = 0.0, location: str | None = SESSION_URL):
        self.clock = clock
        self.put_delay = put_delay
        self.location = location
        self.put_statuses: list[int] = []
        self.calls: list[tuple[str, str, dict]] = []
        self.received = b""
        self.committed_override: list[int] = []

    @property
    def puts(self):
        return [kwargs for method, _url, kwargs in self.calls if method == "PUT"]

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if method == "POST":
            headers = {"Location": self.location} if self.location else {}
            return make_response(200, method, url, headers)

        if self.clock is not None:
            self.clock.now += self.put_delay
        if self.put_statuses:
            status = self.put_statuses.pop(0)
            if status >= 400:
                return make_response(status, method, url, body=b'{"error": {"message": "nope"}}')

        content_range = kwargs["headers"]["Content-Range"]
        total = int(content_range.rpartition("/")[2])
        if content_range.startswith("bytes */"):
            return make_response(200, method, url)

        start = int(content_range.split()[1].split("-")[0])
        self.received = self.received[:start] + kwargs["data"]
        if self.committed_override:
            self.received = self.received[: self.committed_override.pop(0)]
        if len(self.received) == total:
            return make_response(200, method, url)
        headers = {"Range": f"bytes=0-{len(self.received) - 1}"} if self.received else {}
        return make_response(308, method, url, headers)


class TestGcsObjectStoreUpload:
    """Test chunked resumable uploads and the whole-transfer deadline."""

    def test_single_chunk(self):
        session = FakeUploadSession()
        store = GcsObjectStore(MagicMock(), session)

        written = store.write_object(GcsPath("b", "source/x.tgz"), io.BytesIO(b"0123456789"), timeout=30)

        assert written == 10
        assert session.received == b"0123456789"
        method, url, kwargs = session.calls[0]
        assert (method, url) == ("POST", "https://storage.googleapis.com/upload/storage/v1/b/b/o")
        assert kwargs["params"] == {"uploadType": "resumable"}
        assert kwargs["json"] == {"name": "source/x.tgz", "contentType": "application/gzip"}
        assert kwargs["headers"]["X-Upload-Content-Length"] == "10"
        assert session.puts[0]["headers"] == {"Content-Range": "bytes 0-9/10"}

    def test_multiple_chunks(self):
        session = FakeUploadSession()
        store = GcsObjectStore(MagicMock(), session, chunk_size=4)

        assert store.write_object(GcsPath("b", "x.tgz"), io.BytesIO(b"0123456789"), timeout=30) == 10

        ranges = [put["headers"]["Content-Range"] for put in session.puts]
        assert ranges == ["bytes 0-3/10", "bytes 4-7/10", "bytes 8-9/10"]
        assert session.received == b"0123456789"

    def test_resends_uncommitted_bytes(self):
        """The next chunk starts at what the server reports as committed."""
        session = FakeUploadSession()
        session.committed_override = [2]
        store = GcsObjectStore(MagicMock(), session, chunk_size=4)

        store.write_object(GcsPath("b", "x.tgz"), io.BytesIO(b"0123456789"), timeout=30)

        ranges = [put["headers"]["Content-Range"] for put in session.puts]
        assert ranges == ["bytes 0-3/10", "bytes 2-5/10", "bytes 6-9/10"]
        assert session.received == b"0123456789"

    def test_empty_archive(self):
        session = FakeUploadSession()
        store = GcsObjectStore(MagicMock(), session)

        assert store.write_object(GcsPath("b", "x.tgz"), io.BytesIO(b""), timeout=30) == 0
        assert session.puts[0]["headers"] == {"Content-Range": "bytes */0"}

    def test_slow_transfer_exceeds_deadline(self, clock):
        """A chunk that finishes after the deadline fails the whole upload."""
        session = FakeUploadSession(clock, put_delay=1.0)
        store = GcsObjectStore(MagicMock(), session)

        with pytest.raises(TimeoutError):
            store.write_object(GcsPath("b", "x.tgz"), io.BytesIO(b"0123456789"), timeout=0.5)

    def test_deadline_checked_between_chunks(self, clock):
        session = FakeUploadSession(clock, put_delay=0.4)
        store = GcsObjectStore(MagicMock(), session, chunk_size=4)

        with pytest.raises(TimeoutError):
            store.write_object(GcsPath("b", "x.tgz"), io.BytesIO(b"x" * 20), timeout=1.0)

        # 0.4s per chunk: the third chunk ends past the 1.0s deadline, no fourth is sent
        assert len(session.puts) == 3

    def test_requests_get_the_remaining_time(self, clock):
        session = FakeUploadSession(clock, put_delay=0.4)
        store = GcsObjectStore(MagicMock(), session, chunk_size=4)

        with pytest.raises(TimeoutError):
            store.write_object(GcsPath("b", "x.tgz"), io.BytesIO(b"x" * 20), timeout=1.0)

        timeouts = [kwargs["timeout"] for _method, _url, kwargs in session.calls]
        assert timeouts == [pytest.approx(1.0), pytest.approx(1.0), pytest.approx(0.6), MIN_REQUEST_TIMEOUT]

    def test_http_error_is_raised_as_api_exception(self):
        session = FakeUploadSession()
        session.put_statuses = [503]
        store = GcsObjectStore(MagicMock(), session)

        with pytest.raises(api_exceptions.ServiceUnavailable):
            store.write_object(GcsPath("b", "x.tgz"), io.BytesIO(b"data"), timeout=30)

    def test_missing_upload_session(self):
        store = GcsObjectStore(MagicMock(), FakeUploadSession(location=None))

        with pytest.raises(api_exceptions.InternalServerError):
            store.write_object(GcsPath("b", "x.tgz"), io.BytesIO(b"data"), timeout=30)

    def test_from_default_credentials(self):
        credentials = MagicMock()
        with (
            patch("cbctl.core.storage.google.auth.default", return_value=(credentials, "p")),
            patch("cbctl.core.storage.storage.Client") as mock_client,
            patch("cbctl.core.storage.AuthorizedSession") as mock_session,
        ):
            store = GcsObjectStore.from_default_credentials("my-project")

        mock_client.assert_called_once_with(project="my-project", credentials=credentials)
        mock_session.assert_called_once_with(credentials)
        assert store.session is mock_session.return_value


class TestGcsObjectStoreRangeRead:
    def test_range_read(self):
        client = MagicMock()
        blob = client.bucket.return_value.blob.return_value
        store = GcsObjectStore(client, MagicMock())
        sink = io.BytesIO()

        store.range_read(GcsPath("logs", "log-1.txt"), 42, sink, timeout=10)

        client.bucket.assert_called_once_with("logs")
        client.bucket.return_value.blob.assert_called_once_with("log-1.txt")
        args, kwargs = blob.download_to_file.call_args
        assert args == (sink,)
        assert kwargs["start"] == 42
        assert kwargs["raw_download"] is True
        assert kwargs["timeout"] == 10
        # Retries are handled by the watch loop's own budget
        assert kwargs["retry"] is None
