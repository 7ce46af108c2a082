# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Object locations on Google Cloud Storage."""

from dataclasses import dataclass
from urllib.parse import urlparse

GCS_SCHEME = "gs"


@dataclass(frozen=True)
class GcsPath:
    """An object location: gs://<bucket>/<object_name>."""

    bucket: str
    object_name: str

    def __str__(self) -> str:
        return f"{GCS_SCHEME}://{self.bucket}/{self.object_name}"

    def join(self, name: str) -> "GcsPath":
        """Return the path of `name` inside this path treated as a directory."""
        prefix = self.object_name.rstrip("/")
        object_name = f"{prefix}/{name}" if prefix else name
        return GcsPath(bucket=self.bucket, object_name=object_name)


def parse_gcs_url(url: str, allow_empty_object: bool = False) -> GcsPath:
    """Parse a gs://bucket/object URL.

    Args:
        url: URL to parse
        allow_empty_object: Accept a bare bucket (gs://bucket) as a directory

    Raises:
        ValueError: If the URL is not a gs:// URL with a bucket (and object)
    """
    parsed = urlparse(url)
    if parsed.scheme != GCS_SCHEME:
        raise ValueError(f"Invalid gcs URL '{url}': scheme must be {GCS_SCHEME}://")
    if not parsed.netloc:
        raise ValueError(f"Invalid gcs URL '{url}': no bucket")
    object_name = parsed.path[1:]
    if not object_name and not allow_empty_object:
        raise ValueError(f"Invalid gcs URL '{url}': no object")
    return GcsPath(bucket=parsed.netloc, object_name=object_name)
