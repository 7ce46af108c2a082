# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Build resource models for the Cloud Build REST API (v1).

Only the fields cbctl reads or writes are declared. Everything else in a
build spec (steps, images, options, ...) is carried through verbatim.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from cbctl.contract.enums import BuildStatus


class CloudBuildModel(BaseModel):
    """Base model: camelCase on the wire, unknown fields preserved."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_api(self) -> dict:
        """Serialize for a request body."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True)


class StorageSource(CloudBuildModel):
    """Location of the source archive in Cloud Storage."""

    bucket: str = Field(..., description="Bucket holding the source archive")
    object_name: str = Field(..., alias="object", description="Object path of the source archive")


class Source(CloudBuildModel):
    """Build source."""

    storage_source: StorageSource | None = None


class Build(CloudBuildModel):
    """A Cloud Build build resource."""

    id: str | None = None
    project_id: str | None = None
    status: BuildStatus = BuildStatus.STATUS_UNKNOWN
    status_detail: str | None = None
    source: Source | None = None
    substitutions: dict[str, str] | None = None
    logs_bucket: str | None = Field(None, description="gs:// URL of the bucket holding build logs")
    log_url: str | None = Field(None, description="Console URL of the build log")

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        if value is None:
            return BuildStatus.STATUS_UNKNOWN
        return BuildStatus(value)


class BuildOperationMetadata(CloudBuildModel):
    """Metadata attached to the long-running operation returned by builds.create."""

    build: Build


class Operation(CloudBuildModel):
    """Long-running operation returned by builds.create."""

    name: str | None = None
    metadata: BuildOperationMetadata | None = None
