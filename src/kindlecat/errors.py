# ABOUTME: Typed exception hierarchy for kindlecat's extraction and integration pipeline.
# ABOUTME: Each error carries a stable code and a details dict for display.

from pathlib import Path
from typing import Any


class KindlecatError(Exception):
    """Base class for every error kindlecat raises on purpose."""

    code = "KINDLECAT_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details


# --- Path resolution ---


class PathResolutionError(KindlecatError):
    """Raised when the Kindle cache files could not be located."""

    code = "KINDLE_PATH_ERROR"


class PathNotFoundError(PathResolutionError):
    """No candidate directory held both Kindle cache files."""

    code = "KINDLE_FILES_NOT_FOUND"

    def __init__(self, message: str, searched_paths: list[Path] | None = None) -> None:
        super().__init__(message, searched_paths=[str(p) for p in searched_paths or []])
        self.searched_paths = list(searched_paths or [])


class PathSecurityError(PathResolutionError):
    """A manually supplied path contains traversal segments or illegal characters."""

    code = "KINDLE_PATH_REJECTED"


class PathPermissionError(PathResolutionError):
    """A candidate file exists but cannot be read."""

    code = "KINDLE_PATH_PERMISSION_DENIED"


# --- Source file validation ---


class FileValidationError(KindlecatError):
    """Raised when a source file fails pre-parse validation."""

    code = "SOURCE_FILE_INVALID"

    def __init__(self, message: str, path: Path) -> None:
        super().__init__(message, path=str(path))
        self.path = path


class SourceFileNotFoundError(FileValidationError):
    code = "SOURCE_FILE_NOT_FOUND"


class NotARegularFileError(FileValidationError):
    code = "SOURCE_NOT_A_FILE"


class EmptyFileError(FileValidationError):
    code = "SOURCE_FILE_EMPTY"


class FileTooLargeError(FileValidationError):
    code = "SOURCE_FILE_TOO_LARGE"


class WrongExtensionError(FileValidationError):
    code = "SOURCE_WRONG_EXTENSION"


class OutsideExpectedDirectoryError(FileValidationError):
    code = "SOURCE_OUTSIDE_EXPECTED_DIR"


# --- Parsing ---


class MalformedDocumentError(KindlecatError):
    """Raised when the XML metadata cache is not a well-formed document."""

    code = "KINDLE_XML_PARSE_ERROR"


# --- Collections store ---


class StoreError(KindlecatError):
    """Raised when the collections database cannot be read."""

    code = "KINDLE_DB_PARSE_ERROR"


class StoreLockedError(StoreError):
    """The collections database stayed locked past the busy timeout."""

    code = "KINDLE_DB_LOCKED"


class InvalidStoreError(StoreError):
    """The collections file is not a SQLite database."""

    code = "KINDLE_DB_INVALID"


# --- Record validation ---


class InvalidAsinError(KindlecatError, ValueError):
    """Raised when a value is not a 10-character uppercase alphanumeric ASIN."""

    code = "INVALID_ASIN"

    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid ASIN: {value!r}", value=value)
        self.value = value


class BookValidationError(KindlecatError, ValueError):
    """Raised when an integrated record is missing a required field."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str, value: object = None) -> None:
        super().__init__(message, field=field, value=value)
        self.field = field
        self.value = value
