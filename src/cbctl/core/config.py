# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Config loading and resolution.

This module provides:
- load_config(): Merge settings file, environment and CLI overrides into a typed SubmitConfig
- resolve_defaults(): Fill in project and staging directory
- parse_substitutions(): Parse "KEY=VALUE,KEY2=VALUE2" strings

Precedence (lowest first): defaults, cbctl.yaml, CBCTL_* environment, flags.
"""

import dataclasses
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import google.auth
import yaml
from google.auth.exceptions import DefaultCredentialsError
from marshmallow import ValidationError

from cbctl.core.errors import ConfigurationError
from cbctl.core.schema import SubmitConfig

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "cbctl.yaml"
HOME_SETTINGS_FILE_NAME = ".cbctl.yaml"
ENV_PREFIX = "CBCTL_"


def find_settings_file() -> Path | None:
    """
    Locate a settings file.

    Searches for cbctl.yaml in:
    1. Current working directory
    2. Parent directories up to 2 levels
    3. ~/.cbctl.yaml

    Returns None if no file exists (graceful degradation).
    """
    search_paths = [
        Path.cwd() / SETTINGS_FILE_NAME,
        Path.cwd().parent / SETTINGS_FILE_NAME,
        Path.cwd().parent.parent / SETTINGS_FILE_NAME,
        Path.home() / HOME_SETTINGS_FILE_NAME,
    ]

    for path in search_paths:
        if path.exists():
            return path
    return None


def load_settings_file(path: Path | None = None) -> dict[str, Any]:
    """
    Load the settings file.

    Args:
        path: Explicit settings file. When None, find_settings_file() is used and a
            broken file is skipped with a warning.

    Raises:
        ConfigurationError: If an explicit file is missing or invalid
    """
    explicit = path is not None
    if path is None:
        path = find_settings_file()
        if path is None:
            logger.debug("No %s found - using defaults", SETTINGS_FILE_NAME)
            return {}

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"expected a mapping, got {type(raw).__name__}")
    except (OSError, yaml.YAMLError, ValueError) as e:
        if explicit:
            raise ConfigurationError(f"Failed to read settings file {path}", e) from e
        logger.warning("Failed to load %s, ignoring it: %s", path, e)
        return {}

    logger.info("Using settings file: %s", path)
    return raw


def parse_substitutions(value: str) -> dict[str, str]:
    """Parse "KEY=VALUE,KEY2=VALUE2" into a dict.

    Raises:
        ConfigurationError: If an entry has no "="
    """
    substitutions = {}
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        key, sep, val = entry.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"Invalid substitution '{entry}': expected KEY=VALUE")
        substitutions[key.strip()] = val
    return substitutions


def read_env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect CBCTL_<FIELD> environment variables for every SubmitConfig field."""
    if environ is None:
        environ = os.environ

    overrides: dict[str, Any] = {}
    for f in dataclasses.fields(SubmitConfig):
        value = environ.get(ENV_PREFIX + f.name.upper())
        if value is None:
            continue
        if f.name == "substitutions":
            overrides[f.name] = parse_substitutions(value)
        else:
            overrides[f.name] = value
    return overrides


def merge_config_sources(*sources: Mapping[str, Any]) -> dict[str, Any]:
    """Merge config dicts; later sources win, substitutions merge key by key."""
    merged: dict[str, Any] = {}
    substitutions: dict[str, str] = {}
    for source in sources:
        for key, value in source.items():
            if value is None:
                continue
            if key == "substitutions":
                if not isinstance(value, Mapping):
                    raise ConfigurationError(f"Invalid substitutions: expected a mapping, got {type(value).__name__}")
                substitutions.update({str(k): str(v) for k, v in value.items()})
            else:
                merged[key] = value
    if substitutions:
        merged["substitutions"] = substitutions
    return merged


def load_config(
    overrides: Mapping[str, Any] | None = None,
    settings_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> SubmitConfig:
    """
    Load and validate the submission config.

    Args:
        overrides: Values from command-line flags (None values are ignored)
        settings_path: Explicit settings file instead of the search path
        environ: Environment to read CBCTL_* variables from (default: os.environ)

    Returns:
        SubmitConfig frozen dataclass (project/staging dir not yet resolved)

    Raises:
        ConfigurationError: If any source is invalid
    """
    settings = load_settings_file(Path(settings_path) if settings_path else None)
    resolved = merge_config_sources(settings, read_env_overrides(environ), overrides or {})

    try:
        config = SubmitConfig.Schema().load(resolved)
    except ValidationError as e:
        raise ConfigurationError("Invalid configuration", e) from e
    assert isinstance(config, SubmitConfig)
    return config


def _default_project() -> str:
    if project := os.environ.get("GOOGLE_PROJECT_ID"):
        return project

    try:
        _credentials, project = google.auth.default()
    except DefaultCredentialsError as e:
        raise ConfigurationError("Failed to get default credentials", e) from e
    if not project:
        raise ConfigurationError("No projectId is configured. Please set GOOGLE_PROJECT_ID.")
    return project


def resolve_defaults(config: SubmitConfig) -> SubmitConfig:
    """Fill in the project and the source staging directory.

    Raises:
        ConfigurationError: If no project can be determined
    """
    project = config.project or _default_project()
    staging_dir = config.gcs_source_staging_dir or f"gs://{project}_cloudbuild/source"
    logger.debug("Resolved project=%s staging_dir=%s", project, staging_dir)
    return dataclasses.replace(config, project=project, gcs_source_staging_dir=staging_dir)
