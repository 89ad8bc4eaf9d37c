# ABOUTME: Extraction of collections and book associations from the Kindle collections store.
# ABOUTME: Reads synced_collections.db read-only and recomputes per-collection book counts.

import logging
import sqlite3
import time
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

from kindlecat.config import BATCH_SIZE, DB_BUSY_TIMEOUT_SECONDS, MAX_DB_SIZE, SYNC_TARGET_MS
from kindlecat.core.validation import validate_source_file
from kindlecat.db.connection import list_tables, readonly_store
from kindlecat.db.mapping import (
    Association,
    CollectionRecord,
    row_to_association,
    row_to_collection,
)
from kindlecat.metadata.asin import is_valid_asin

logger = logging.getLogger(__name__)

COLLECTIONS_QUERY = (
    "SELECT collection_uuid AS id, collection_name AS name, last_modified AS last_updated "
    "FROM Collections "
    "WHERE is_archived = 0 "
    "ORDER BY collection_name"
)

ASSOCIATIONS_QUERY = (
    "SELECT collection_uuid AS collection_id, asin "
    "FROM Collection_Item_Association "
    "WHERE item_type = 'BOOK' "
    "ORDER BY collection_uuid, asin"
)

_PROGRESS_THRESHOLD = 1000
_PROGRESS_EVERY = 500


@dataclass
class CollectionParseStatistics:
    """Counts and timings for one collections-store extraction."""

    total_collections: int = 0
    total_associations: int = 0
    skipped_associations: int = 0
    processing_ms: float = 0.0
    file_size_bytes: int = 0


@dataclass
class CollectionParseResult:
    """Collections and associations read from the store."""

    collections: list[CollectionRecord]
    associations: list[Association]
    statistics: CollectionParseStatistics


def _is_missing_table(exc: sqlite3.OperationalError) -> bool:
    return "no such table" in str(exc).lower()


def _fetch_collections(conn: sqlite3.Connection) -> list[CollectionRecord]:
    """All non-archived collections ordered by name; empty if the table is absent."""
    try:
        rows = conn.execute(COLLECTIONS_QUERY).fetchall()
    except sqlite3.OperationalError as exc:
        if not _is_missing_table(exc):
            raise
        logger.warning(
            "Collections table not found; available tables: %s",
            ", ".join(list_tables(conn)) or "(none)",
        )
        return []

    collections: list[CollectionRecord] = []
    for row in rows:
        record = row_to_collection(row)
        if record is None:
            logger.debug("Skipping collection row without an id")
            continue
        collections.append(record)

    logger.info("Read %d collection(s)", len(collections))
    return collections


def _fetch_associations(
    conn: sqlite3.Connection,
    statistics: CollectionParseStatistics,
    batch_size: int,
) -> list[Association]:
    """All book associations with a valid ASIN and a collection id.

    Rows are pulled from the cursor in batches of batch_size. Invalid rows are
    dropped silently and only counted in statistics.
    """
    try:
        cursor = conn.execute(ASSOCIATIONS_QUERY)
    except sqlite3.OperationalError as exc:
        if not _is_missing_table(exc):
            raise
        logger.warning("Collection_Item_Association table not found; no associations")
        return []

    associations: list[Association] = []
    seen = 0
    while True:
        batch = cursor.fetchmany(batch_size)
        if not batch:
            break
        for row in batch:
            association = row_to_association(row)
            if association is None or not is_valid_asin(association.asin):
                statistics.skipped_associations += 1
                continue
            associations.append(association)

        seen += len(batch)
        if seen > _PROGRESS_THRESHOLD and seen % _PROGRESS_EVERY == 0:
            logger.info("Processed %d association rows", seen)

    logger.info("Read %d book association(s)", len(associations))
    return associations


def recompute_book_counts(
    collections: list[CollectionRecord], associations: list[Association]
) -> None:
    """Set every collection's book_count to the number of associations that reference it.

    Collections with no associations get zero. Associations naming unknown
    collections contribute to nothing.
    """
    counts = Counter(association.collection_id for association in associations)
    for collection in collections:
        collection.book_count = counts.get(collection.id, 0)


class CollectionStore:
    """Reads collection definitions and associations from synced_collections.db."""

    def __init__(
        self,
        expected_dir: Path,
        *,
        max_file_size: int = MAX_DB_SIZE,
        busy_timeout: float = DB_BUSY_TIMEOUT_SECONDS,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        self._expected_dir = expected_dir
        self._max_file_size = max_file_size
        self._busy_timeout = busy_timeout
        self._batch_size = batch_size

    def extract(self, path: Path) -> CollectionParseResult:
        """Validate the store file, then read collections and associations.

        The connection is opened read-only and closed before returning.

        Raises:
            FileValidationError: If the file fails pre-open checks.
            StoreLockedError: If the store stays locked past the busy timeout.
            InvalidStoreError: If the file is not a SQLite database.
            StoreError: For any other database failure.
        """
        start = time.perf_counter()
        logger.info("Reading Kindle collections store: %s", path)

        stats = validate_source_file(
            path,
            expected_dir=self._expected_dir,
            suffix=".db",
            max_size=self._max_file_size,
        )
        statistics = CollectionParseStatistics(file_size_bytes=stats.st_size)

        with readonly_store(path, busy_timeout=self._busy_timeout) as conn:
            collections = _fetch_collections(conn)
            associations = _fetch_associations(conn, statistics, self._batch_size)

        statistics.total_collections = len(collections)
        statistics.total_associations = len(associations)
        statistics.processing_ms = (time.perf_counter() - start) * 1000
        if statistics.processing_ms > SYNC_TARGET_MS:
            logger.warning(
                "Collections read exceeded target: %.0fms > %dms",
                statistics.processing_ms,
                SYNC_TARGET_MS,
            )

        return CollectionParseResult(
            collections=collections,
            associations=associations,
            statistics=statistics,
        )
