# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Cloud Build REST API client.

Covers the three calls cbctl needs:
- POST /v1/projects/{project}/builds             -> Operation (build id in metadata)
- GET  /v1/projects/{project}/builds/{id}        -> Build
- POST /v1/projects/{project}/builds/{id}:cancel

HTTP failures are raised as google.api_core.exceptions (via
from_http_response), the same family google-cloud-storage raises.
"""

import logging
from typing import Protocol

import google.auth
import requests
from google.api_core import exceptions as api_exceptions
from google.auth.transport.requests import AuthorizedSession
from pydantic import ValidationError

from cbctl.contract import Build, Operation
from cbctl.core.errors import ServiceError

logger = logging.getLogger(__name__)

API_ROOT = "https://cloudbuild.googleapis.com/v1"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class BuildService(Protocol):
    """Build service operations used by the submitter."""

    def create_build(self, project: str, build: Build, timeout: float) -> str:
        """Start a build, returning its id."""
        ...

    def get_build(self, project: str, build_id: str, timeout: float) -> Build:
        """Fetch the current build snapshot."""
        ...

    def cancel_build(self, project: str, build_id: str, timeout: float) -> None:
        """Request cancellation of a build."""
        ...


class CloudBuildClient:
    """BuildService over the Cloud Build v1 REST API.

    Usage:
        client = CloudBuildClient.from_default_credentials()
        build_id = client.create_build("my-project", build, timeout=10)
    """

    def __init__(self, session: requests.Session, api_root: str = API_ROOT):
        self.session = session
        self.api_root = api_root.rstrip("/")

    @classmethod
    def from_default_credentials(cls, api_root: str = API_ROOT) -> "CloudBuildClient":
        """Create a client authorized with application default credentials."""
        credentials, _project = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        return cls(AuthorizedSession(credentials), api_root=api_root)

    def _request(self, method: str, path: str, timeout: float, json: dict | None = None) -> dict:
        url = f"{self.api_root}{path}"
        logger.debug("%s %s", method, url)
        response = self.session.request(method, url, json=json, timeout=timeout)
        # 304 surfaces as NotModified so cancel can tolerate it
        if response.status_code == 304 or response.status_code >= 400:
            raise api_exceptions.from_http_response(response)
        if not response.content:
            return {}
        return response.json()

    def create_build(self, project: str, build: Build, timeout: float) -> str:
        body = self._request("POST", f"/projects/{project}/builds", timeout, json=build.to_api())
        try:
            operation = Operation.model_validate(body)
        except ValidationError as e:
            raise ServiceError(f"Failed to parse result ({body})", e) from e
        if operation.metadata is None or not operation.metadata.build.id:
            raise ServiceError(f"No build id in create result ({body})")
        logger.debug("Started operation %s", operation.name)
        return operation.metadata.build.id

    def get_build(self, project: str, build_id: str, timeout: float) -> Build:
        body = self._request("GET", f"/projects/{project}/builds/{build_id}", timeout)
        return Build.model_validate(body)

    def cancel_build(self, project: str, build_id: str, timeout: float) -> None:
        self._request("POST", f"/projects/{project}/builds/{build_id}:cancel", timeout, json={})
