# ABOUTME: Read-only SQLite access to the Kindle synced_collections.db store.
# ABOUTME: Opens with mode=ro, applies a busy timeout, and maps driver errors to typed errors.

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from kindlecat.config import DB_BUSY_TIMEOUT_SECONDS
from kindlecat.errors import InvalidStoreError, StoreError, StoreLockedError

logger = logging.getLogger(__name__)


def _readonly_uri(path: Path) -> str:
    """Build a SQLite URI that can only ever open the file for reading."""
    return f"{path.resolve().as_uri()}?mode=ro"


def classify_store_error(exc: sqlite3.Error, path: Path) -> StoreError:
    """Map a sqlite3 error to the matching StoreError subclass."""
    message = str(exc).lower()
    if "locked" in message or "busy" in message:
        return StoreLockedError(f"Collections database is locked: {path}", path=str(path))
    if "not a database" in message or "malformed" in message:
        return InvalidStoreError(
            f"Collections file is not a valid SQLite database: {path}", path=str(path)
        )
    return StoreError(f"Failed to read collections database {path}: {exc}", path=str(path))


def open_readonly(
    path: Path, *, busy_timeout: float = DB_BUSY_TIMEOUT_SECONDS
) -> sqlite3.Connection:
    """Open a SQLite database strictly read-only.

    The connection uses a URI with mode=ro, so SQLite refuses any write. The
    busy timeout bounds how long a query waits on a lock held by the Kindle app.

    Raises:
        StoreLockedError, InvalidStoreError, StoreError: If the open fails.
    """
    try:
        conn = sqlite3.connect(_readonly_uri(path), uri=True, timeout=busy_timeout)
    except sqlite3.Error as exc:
        raise classify_store_error(exc, path) from exc

    try:
        conn.execute("PRAGMA query_only = ON")
    except sqlite3.Error as exc:
        conn.close()
        raise classify_store_error(exc, path) from exc

    conn.row_factory = sqlite3.Row
    logger.debug("Opened %s read-only (busy timeout %.1fs)", path, busy_timeout)
    return conn


@contextmanager
def readonly_store(
    path: Path, *, busy_timeout: float = DB_BUSY_TIMEOUT_SECONDS
) -> Iterator[sqlite3.Connection]:
    """Context manager: open read-only, translate errors, always close."""
    conn = open_readonly(path, busy_timeout=busy_timeout)
    try:
        yield conn
    except sqlite3.Error as exc:
        raise classify_store_error(exc, path) from exc
    finally:
        conn.close()
        logger.debug("Closed %s", path)


def list_tables(conn: sqlite3.Connection) -> list[str]:
    """Names of all tables in the database, alphabetically."""
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    return [row[0] for row in cursor.fetchall()]
