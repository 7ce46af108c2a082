# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Logging utilities for cbctl.

Provides consistent logging configuration, emoji constants, and helper functions
for formatted output throughout the codebase.

All log records go to stderr: stdout is reserved for the streamed build log.
"""

import logging
import sys

# ============================================================================
# Emoji Constants
# ============================================================================

CHECK = "✓"
CROSS = "✗"
ROCKET = "🚀"
GEAR = "⚙"
HOURGLASS = "⏳"
PACKAGE = "📦"
WARN = "⚠"
LINK = "🔗"
STOP = "🛑"


# ============================================================================
# Logging Configuration
# ============================================================================


def setup_logging(
    level: int = logging.INFO,
    format_string: str | None = None,
    date_format: str | None = None,
) -> None:
    """Configure logging for cbctl.

    Sets up the root logger with consistent formatting on stderr.

    Args:
        level: Logging level (default: INFO)
        format_string: Custom format string (default: timestamp + level + message)
        date_format: Custom date format (default: ISO-like)
    """
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(message)s"

    if date_format is None:
        date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt=date_format,
        stream=sys.stderr,
        force=True,  # Override any existing configuration
    )

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("google.auth").setLevel(logging.WARNING)
    logging.getLogger("google.resumable_media").setLevel(logging.WARNING)


# ============================================================================
# Output Helpers
# ============================================================================


def section(title: str, emoji: str = GEAR, logger: logging.Logger | None = None) -> None:
    """Log a section header.

    Args:
        title: Section title
        emoji: Emoji to prefix (default: gear)
        logger: Logger to use (default: root logger)
    """
    if logger is None:
        logger = logging.getLogger()

    logger.info("%s %s", emoji, title)


def success(message: str, logger: logging.Logger | None = None) -> None:
    """Log a success message with checkmark."""
    if logger is None:
        logger = logging.getLogger()
    logger.info("%s %s", CHECK, message)


def error(message: str, logger: logging.Logger | None = None) -> None:
    """Log an error message with cross."""
    if logger is None:
        logger = logging.getLogger()
    logger.error("%s %s", CROSS, message)


def warn(message: str, logger: logging.Logger | None = None) -> None:
    """Log a warning message with warning emoji."""
    if logger is None:
        logger = logging.getLogger()
    logger.warning("%s %s", WARN, message)


def step(message: str, logger: logging.Logger | None = None) -> None:
    """Log a step/progress message with rocket."""
    if logger is None:
        logger = logging.getLogger()
    logger.info("%s %s", ROCKET, message)


def waiting(message: str, logger: logging.Logger | None = None) -> None:
    """Log a waiting/pending message with hourglass."""
    if logger is None:
        logger = logging.getLogger()
    logger.info("%s %s", HOURGLASS, message)
