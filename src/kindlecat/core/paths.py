# ABOUTME: Locates the Kindle cache files (metadata XML and collections DB) on this host.
# ABOUTME: Priority: explicit file overrides, then a persisted 24h resolution, then candidate dirs.

import json
import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

from kindlecat.config import (
    DB_FILENAME,
    DB_SUBDIR,
    LOCAL_APP_DATA_CACHE_SUBPATH,
    PROFILE_CACHE_SUBPATH,
    RESOLUTION_VALIDITY_SECONDS,
    XML_FILENAME,
    CatalogSettings,
)
from kindlecat.errors import (
    PathNotFoundError,
    PathPermissionError,
    PathResolutionError,
    PathSecurityError,
)

logger = logging.getLogger(__name__)

SOURCE_EXPLICIT = "explicit"
SOURCE_CACHED = "cached"
SOURCE_AUTO = "auto"
SOURCE_MANUAL = "manual"

_PERSISTED_SOURCES = frozenset({SOURCE_AUTO, SOURCE_MANUAL})

# Characters never allowed in a manually entered directory. A colon is only
# allowed as a Windows drive separator ("C:").
_INVALID_PATH_CHARS_RE = re.compile(r'[<>"|?*\x00]')
_DRIVE_PREFIX_RE = re.compile(r"^[A-Za-z]:")
_SEGMENT_SPLIT_RE = re.compile(r"[\\/]+")


@dataclass(frozen=True)
class KindlePaths:
    """A resolved pair of Kindle cache files and the directory that contains them."""

    xml_path: Path
    db_path: Path
    base_dir: Path


@dataclass(frozen=True)
class PathCandidate:
    """A directory to check for the Kindle cache files."""

    base_dir: Path
    origin: str


@dataclass
class PathResolution:
    """Outcome of a path resolution attempt.

    On failure, searched_paths lists every location that was tried and
    failure holds the typed error for callers that prefer exceptions.
    """

    success: bool
    source: str
    paths: KindlePaths | None = None
    searched_paths: list[Path] = field(default_factory=list)
    failure: PathResolutionError | None = None

    @property
    def error(self) -> str | None:
        return str(self.failure) if self.failure is not None else None

    def raise_for_failure(self) -> KindlePaths:
        """Return the resolved paths, or raise the recorded failure."""
        if self.success and self.paths is not None:
            return self.paths
        raise self.failure or PathNotFoundError(
            "Kindle cache files were not found", self.searched_paths
        )


@dataclass(frozen=True)
class PathConfiguration:
    """The persisted record of the last successful resolution."""

    kindle_cache_path: Path
    last_validated: datetime
    source: str

    def to_json(self) -> str:
        return json.dumps(
            {
                "kindle_cache_path": str(self.kindle_cache_path),
                "last_validated": self.last_validated.isoformat(),
                "source": self.source,
            },
            indent=2,
        )

    @classmethod
    def from_dict(cls, data: object) -> "PathConfiguration | None":
        """Parse a decoded JSON document, or return None if it is malformed."""
        if not isinstance(data, dict):
            return None
        path = data.get("kindle_cache_path")
        stamp = data.get("last_validated")
        source = data.get("source")
        if not isinstance(path, str) or not path or not isinstance(stamp, str):
            return None
        if source not in _PERSISTED_SOURCES:
            return None
        try:
            validated = datetime.fromisoformat(stamp)
        except ValueError:
            return None
        if validated.tzinfo is None:
            validated = validated.replace(tzinfo=timezone.utc)
        return cls(kindle_cache_path=Path(path), last_validated=validated, source=source)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def check_source_file(path: Path, label: str) -> None:
    """Verify one cache file is an existing, readable, non-empty regular file.

    Raises:
        PathPermissionError: If the file exists but cannot be read.
        PathNotFoundError: For any other failed check.
    """
    try:
        stats = path.stat()
    except PermissionError as exc:
        raise PathPermissionError(f"{label} file is not accessible: {path}", path=str(path)) from exc
    except OSError as exc:
        raise PathNotFoundError(f"{label} file does not exist: {path}", [path]) from exc

    if not path.is_file():
        raise PathNotFoundError(f"{label} file is not a regular file: {path}", [path])
    if stats.st_size == 0:
        raise PathNotFoundError(f"{label} file is empty: {path}", [path])
    if not os.access(path, os.R_OK):
        raise PathPermissionError(f"{label} file is not readable: {path}", path=str(path))


def check_cache_directory(base_dir: Path) -> KindlePaths:
    """Verify base_dir holds both Kindle cache files.

    The XML file sits directly in base_dir; the DB sits in its db/ subdirectory.

    Raises:
        PathNotFoundError, PathPermissionError: If any check fails.
    """
    try:
        is_dir = base_dir.is_dir()
    except PermissionError as exc:
        raise PathPermissionError(
            f"Directory is not accessible: {base_dir}", path=str(base_dir)
        ) from exc
    if not is_dir:
        raise PathNotFoundError(f"Not a directory: {base_dir}", [base_dir])

    xml_path = base_dir / XML_FILENAME
    db_path = base_dir / DB_SUBDIR / DB_FILENAME
    check_source_file(xml_path, "XML")
    check_source_file(db_path, "DB")

    logger.info("Validated Kindle cache directory: %s", base_dir)
    return KindlePaths(xml_path=xml_path, db_path=db_path, base_dir=base_dir)


def normalize_manual_path(raw: str) -> Path:
    """Normalize a user-entered directory and reject unsafe input.

    Rejects any '..' segment and the characters < > " | ? * (plus ':' outside
    a leading drive letter), then returns an absolute path.

    Raises:
        PathSecurityError: If the input is empty or unsafe.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise PathSecurityError("No path was given")

    text = raw.strip()
    if ".." in _SEGMENT_SPLIT_RE.split(text):
        raise PathSecurityError(f"Path contains a parent-directory segment: {text}", path=text)

    if _INVALID_PATH_CHARS_RE.search(text):
        raise PathSecurityError(f"Path contains invalid characters: {text}", path=text)
    if ":" in _DRIVE_PREFIX_RE.sub("", text, count=1):
        raise PathSecurityError(f"Path contains invalid characters: {text}", path=text)

    return Path(os.path.abspath(os.path.expanduser(text)))


def build_candidates(settings: CatalogSettings) -> list[PathCandidate]:
    """Ordered, de-duplicated list of directories to check.

    Order: KINDLE_CACHE_PATH override, USERPROFILE-derived default,
    LOCALAPPDATA-derived default.
    """
    raw: list[PathCandidate] = []
    if settings.cache_dir_override is not None:
        raw.append(PathCandidate(Path(os.path.abspath(settings.cache_dir_override)), "override"))
    if settings.user_profile is not None:
        raw.append(
            PathCandidate(settings.user_profile.joinpath(*PROFILE_CACHE_SUBPATH), "user_profile")
        )
    if settings.local_app_data is not None:
        raw.append(
            PathCandidate(
                settings.local_app_data.joinpath(*LOCAL_APP_DATA_CACHE_SUBPATH), "local_app_data"
            )
        )

    candidates: list[PathCandidate] = []
    seen: set[Path] = set()
    for candidate in raw:
        if candidate.base_dir in seen:
            continue
        seen.add(candidate.base_dir)
        candidates.append(candidate)
    return candidates


class PathResolver:
    """Finds the Kindle cache files and remembers the last directory that worked.

    The persisted state is a small JSON document at settings.state_path.
    """

    def __init__(
        self,
        settings: CatalogSettings,
        *,
        validity: timedelta = timedelta(seconds=RESOLUTION_VALIDITY_SECONDS),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._settings = settings
        self._state_path = settings.state_path
        self._validity = validity
        self._clock = clock

    @property
    def state_path(self) -> Path:
        return self._state_path

    def resolve(self, *, force_refresh: bool = False) -> PathResolution:
        """Locate both cache files.

        Explicit file overrides always win. Otherwise a persisted resolution
        younger than the validity window is reused unless force_refresh is set,
        and finally each candidate directory is checked in order.
        """
        logger.info("Resolving Kindle cache paths (force_refresh=%s)", force_refresh)

        # Every location tried, rejected overrides and remembered dir included.
        searched: list[Path] = []

        explicit = self._resolve_explicit(searched)
        if explicit is not None:
            return explicit

        if not force_refresh:
            cached = self._resolve_cached(searched)
            if cached is not None:
                return cached

        candidates = build_candidates(self._settings)
        for candidate in candidates:
            if candidate.base_dir not in searched:
                searched.append(candidate.base_dir)
        permission_failure: PathPermissionError | None = None

        for candidate in candidates:
            try:
                paths = check_cache_directory(candidate.base_dir)
            except PathPermissionError as exc:
                logger.warning("Candidate %s is not accessible: %s", candidate.base_dir, exc)
                permission_failure = permission_failure or exc
                continue
            except PathNotFoundError as exc:
                logger.info("Candidate %s rejected: %s", candidate.base_dir, exc)
                continue

            self._save_configuration(candidate.base_dir, SOURCE_AUTO)
            return PathResolution(
                success=True,
                source=SOURCE_AUTO,
                paths=paths,
                searched_paths=[candidate.base_dir],
            )

        failure: PathResolutionError
        if permission_failure is not None:
            failure = permission_failure
        else:
            listing = ", ".join(str(p) for p in searched) or "(no candidates)"
            failure = PathNotFoundError(
                f"Kindle cache files were not found. Searched: {listing}", searched
            )
        logger.error("%s", failure)
        return PathResolution(
            success=False, source=SOURCE_AUTO, searched_paths=searched, failure=failure
        )

    def set_manual_path(self, raw_path: str) -> PathResolution:
        """Validate a user-chosen directory and persist it on success."""
        logger.info("Checking manual Kindle cache path: %s", raw_path)
        try:
            base_dir = normalize_manual_path(raw_path)
        except PathSecurityError as exc:
            logger.warning("Rejected manual path %r: %s", raw_path, exc)
            return PathResolution(
                success=False,
                source=SOURCE_MANUAL,
                searched_paths=[Path(raw_path)] if isinstance(raw_path, str) else [],
                failure=exc,
            )

        try:
            paths = check_cache_directory(base_dir)
        except (PathNotFoundError, PathPermissionError) as exc:
            logger.warning("Manual path %s failed validation: %s", base_dir, exc)
            return PathResolution(
                success=False, source=SOURCE_MANUAL, searched_paths=[base_dir], failure=exc
            )

        self._save_configuration(base_dir, SOURCE_MANUAL)
        return PathResolution(
            success=True, source=SOURCE_MANUAL, paths=paths, searched_paths=[base_dir]
        )

    def current_configuration(self) -> PathConfiguration | None:
        """Load the persisted resolution, or None if absent or unreadable."""
        try:
            raw = self._state_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.error("Could not read %s: %s", self._state_path, exc)
            return None

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unparsable path configuration: %s", self._state_path)
            return None

        config = PathConfiguration.from_dict(data)
        if config is None:
            logger.warning("Ignoring invalid path configuration: %s", self._state_path)
        return config

    def clear_configuration(self) -> None:
        """Delete the persisted resolution. A missing file is not an error."""
        try:
            self._state_path.unlink()
        except FileNotFoundError:
            return
        logger.info("Removed path configuration %s", self._state_path)

    def _resolve_explicit(self, searched: list[Path]) -> PathResolution | None:
        xml_override = self._settings.xml_override
        db_override = self._settings.db_override
        if xml_override is None or db_override is None:
            return None

        xml_path = Path(os.path.abspath(xml_override))
        db_path = Path(os.path.abspath(db_override))
        try:
            check_source_file(xml_path, "XML")
            check_source_file(db_path, "DB")
        except PathResolutionError as exc:
            logger.warning("Ignoring explicit file overrides: %s", exc)
            searched.extend([xml_path, db_path])
            return None

        base_dir = Path(os.path.commonpath([xml_path.parent, db_path.parent]))
        logger.info("Using explicit file overrides: %s, %s", xml_path, db_path)
        return PathResolution(
            success=True,
            source=SOURCE_EXPLICIT,
            paths=KindlePaths(xml_path=xml_path, db_path=db_path, base_dir=base_dir),
            searched_paths=[xml_path, db_path],
        )

    def _resolve_cached(self, searched: list[Path]) -> PathResolution | None:
        config = self.current_configuration()
        if config is None:
            return None

        age = self._clock() - config.last_validated
        if age > self._validity or age < timedelta(0):
            logger.info("Cached path configuration expired (validated %s)", config.last_validated)
            return None

        try:
            paths = check_cache_directory(config.kindle_cache_path)
        except PathResolutionError as exc:
            logger.warning("Cached path %s is no longer valid: %s", config.kindle_cache_path, exc)
            searched.append(config.kindle_cache_path)
            return None

        logger.info("Using cached Kindle cache path: %s", config.kindle_cache_path)
        return PathResolution(
            success=True,
            source=SOURCE_CACHED,
            paths=paths,
            searched_paths=[config.kindle_cache_path],
        )

    def _save_configuration(self, base_dir: Path, source: str) -> None:
        config = PathConfiguration(
            kindle_cache_path=base_dir, last_validated=self._clock(), source=source
        )
        try:
            self._state_path.parent.mkdir(parents=True, exist_ok=True)
            self._state_path.write_text(config.to_json(), encoding="utf-8")
        except OSError as exc:
            logger.error("Could not save path configuration to %s: %s", self._state_path, exc)
            return
        logger.info("Saved path configuration (%s): %s", source, base_dir)
