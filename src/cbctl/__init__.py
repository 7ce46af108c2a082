"""
cbctl - Command-line client for Google Cloud Build.

Submits a local source tree as a Cloud Build build and follows it to
completion:
1. Archive the source directory (honoring .gcloudignore)
2. Upload the archive to a GCS staging directory
3. Create the build from cloudbuild.yaml
4. Stream the build log to stdout until the build finishes

Key modules:
- core.config: Configuration loading and validation
- core.schema: Frozen SubmitConfig dataclass
- core.errors: Error taxonomy and exit codes
- core.interrupts: Signal handling (stack dumps, cancel on quit)
- cli.submit: BuildSubmitter and the `cbctl` entrypoint
- logging_utils: Logging configuration

Usage:
    cbctl . --project my-project
"""

__version__ = "0.1.0"

# Logging utilities (should be first)
from .logging_utils import setup_logging

# Core modules
from .core.config import load_config, resolve_defaults
from .core.errors import BuildResultError, ConfigurationError, ExitCode, ServiceError, exit_code_for
from .core.schema import SubmitConfig

__all__ = [
    # Version
    "__version__",
    # Logging
    "setup_logging",
    # Config
    "load_config",
    "resolve_defaults",
    "SubmitConfig",
    # Errors
    "ConfigurationError",
    "ServiceError",
    "BuildResultError",
    "ExitCode",
    "exit_code_for",
]
