# ABOUTME: Pre-parse checks applied to both Kindle source files.
# ABOUTME: Enforces location, extension, existence, regular-file, and size limits.

import logging
import os
from pathlib import Path

from kindlecat.errors import (
    EmptyFileError,
    FileTooLargeError,
    NotARegularFileError,
    OutsideExpectedDirectoryError,
    SourceFileNotFoundError,
    WrongExtensionError,
)

logger = logging.getLogger(__name__)


def is_within(path: Path, directory: Path) -> bool:
    """Whether path resolves to a location inside directory (or is directory)."""
    try:
        resolved = path.resolve()
        base = directory.resolve()
    except OSError:
        return False
    return resolved == base or base in resolved.parents


def validate_source_file(
    path: Path,
    *,
    expected_dir: Path,
    suffix: str,
    max_size: int,
) -> os.stat_result:
    """Validate a source file before any parsing work begins.

    Checks run in order: inside expected_dir, extension, existence,
    regular file, non-empty, at most max_size bytes.

    Returns:
        The file's stat result.

    Raises:
        OutsideExpectedDirectoryError, WrongExtensionError,
        SourceFileNotFoundError, NotARegularFileError, EmptyFileError,
        FileTooLargeError: one per failed check.
    """
    if not is_within(path, expected_dir):
        logger.error("Rejected source path outside %s: %s", expected_dir, path)
        raise OutsideExpectedDirectoryError(
            f"Source file is outside the Kindle cache directory: {path}", path
        )

    if path.suffix.lower() != suffix.lower():
        raise WrongExtensionError(f"Expected a {suffix} file: {path}", path)

    try:
        stats = path.stat()
    except FileNotFoundError as exc:
        raise SourceFileNotFoundError(f"File not found: {path}", path) from exc

    if not path.is_file():
        raise NotARegularFileError(f"Not a regular file: {path}", path)

    if stats.st_size == 0:
        raise EmptyFileError(f"File is empty: {path}", path)

    if stats.st_size > max_size:
        raise FileTooLargeError(
            f"File is too large: {stats.st_size} bytes > {max_size} bytes: {path}", path
        )

    return stats
