# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Source archiving.

Packs a source directory into a gzipped tarball, skipping paths matched by a
gitignore-style ignore file (.gcloudignore by default).
"""

import logging
import os
import tarfile
import tempfile
from pathlib import Path
from typing import BinaryIO

from pathspec import GitIgnoreSpec

from cbctl.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Archives larger than this spill from memory to a temporary file
SPOOL_MAX_BYTES = 16 * 1024 * 1024


def load_ignore_patterns(ignore_file: Path) -> list[str]:
    """Read ignore patterns.

    A missing file means no exclusions. A file that can't be read is logged
    and also means no exclusions.
    """
    if not ignore_file.exists():
        return []

    try:
        lines = ignore_file.read_text().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Ignored %s: %s", ignore_file, e)
        return []

    patterns = [line.rstrip() for line in lines]
    return [p for p in patterns if p and not p.startswith("#")]


def _iter_archive_members(root: Path, spec: GitIgnoreSpec):
    """Yield (path, arcname) for every non-excluded entry, parents before children."""
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root)

        kept_dirs = []
        for name in sorted(dirnames):
            rel = (rel_dir / name).as_posix()
            if spec.match_file(rel + "/"):
                logger.debug("Excluded directory %s", rel)
                continue
            kept_dirs.append(name)
            yield Path(dirpath) / name, rel
        # Prune excluded directories from the walk
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            rel = (rel_dir / name).as_posix()
            if spec.match_file(rel):
                logger.debug("Excluded %s", rel)
                continue
            yield Path(dirpath) / name, rel


def create_source_archive(source_dir: Path | str, ignore_file: str) -> BinaryIO:
    """
    Archive a source directory as .tgz.

    Args:
        source_dir: Directory to archive
        ignore_file: Ignore file path, relative to source_dir

    Returns:
        Seekable binary stream positioned at 0. The caller closes it.

    Raises:
        ConfigurationError: If the directory is missing or archiving fails
    """
    root = Path(source_dir).resolve()
    if not root.is_dir():
        raise ConfigurationError(f"Source directory not found: {source_dir}")

    spec = GitIgnoreSpec.from_lines(load_ignore_patterns(root / ignore_file))

    buffer = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES)
    count = 0
    try:
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            for path, arcname in _iter_archive_members(root, spec):
                tar.add(path, arcname=arcname, recursive=False)
                count += 1
    except (OSError, tarfile.TarError) as e:
        buffer.close()
        raise ConfigurationError(f"Failed to create source archive {source_dir}", e) from e

    size = buffer.tell()
    buffer.seek(0)
    logger.info("Archived %d entries from %s (%d bytes)", count, root, size)
    return buffer
