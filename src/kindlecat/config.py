# ABOUTME: Environment-derived settings and fixed limits for the kindlecat pipeline.
# ABOUTME: CatalogSettings is built once by the caller and passed down explicitly.

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

XML_FILENAME = "KindleSyncMetadataCache.xml"
DB_SUBDIR = "db"
DB_FILENAME = "synced_collections.db"

# Relative location of the Kindle cache under a Windows profile / local app data dir.
PROFILE_CACHE_SUBPATH = ("AppData", "Local", "Amazon", "Kindle", "Cache")
LOCAL_APP_DATA_CACHE_SUBPATH = ("Amazon", "Kindle", "Cache")

MAX_XML_SIZE = 10 * 1024 * 1024  # 10 MiB
MAX_DB_SIZE = 50 * 1024 * 1024  # 50 MiB

RESOLUTION_VALIDITY_SECONDS = 24 * 60 * 60
RESULT_CACHE_TTL_SECONDS = 5 * 60
DB_BUSY_TIMEOUT_SECONDS = 5.0
BATCH_SIZE = 100

# Wall-clock target for a full sync of ~1000 books.
SYNC_TARGET_MS = 5000

DEFAULT_STATE_PATH = Path.home() / ".kindlecat" / "paths.json"


def _path_or_none(value: str | None) -> Path | None:
    if value is None or not value.strip():
        return None
    return Path(value.strip())


@dataclass(frozen=True)
class CatalogSettings:
    """Filesystem overrides and platform locations used to find the Kindle cache.

    Every field is optional. Overrides come first in resolution order; the
    platform locations are only used to derive default candidate directories.
    """

    xml_override: Path | None = None
    db_override: Path | None = None
    cache_dir_override: Path | None = None
    user_profile: Path | None = None
    local_app_data: Path | None = None
    state_path: Path = DEFAULT_STATE_PATH

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CatalogSettings":
        """Build settings from environment variables.

        Reads KINDLE_XML_PATH, KINDLE_DB_PATH, KINDLE_CACHE_PATH, USERPROFILE,
        LOCALAPPDATA and KINDLECAT_STATE. Blank values count as unset.
        """
        env = os.environ if environ is None else environ
        state = _path_or_none(env.get("KINDLECAT_STATE"))
        return cls(
            xml_override=_path_or_none(env.get("KINDLE_XML_PATH")),
            db_override=_path_or_none(env.get("KINDLE_DB_PATH")),
            cache_dir_override=_path_or_none(env.get("KINDLE_CACHE_PATH")),
            user_profile=_path_or_none(env.get("USERPROFILE")),
            local_app_data=_path_or_none(env.get("LOCALAPPDATA")),
            state_path=state or DEFAULT_STATE_PATH,
        )
