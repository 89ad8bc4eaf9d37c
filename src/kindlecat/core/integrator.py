# ABOUTME: Merges XML book metadata with collection data into validated catalog records.
# ABOUTME: First occurrence of an ASIN wins; bad records are counted and reported, never fatal.

import logging
import math
import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from kindlecat.db.mapping import Association, CollectionRecord
from kindlecat.errors import BookValidationError, KindlecatError
from kindlecat.metadata.types import UNKNOWN_AUTHOR, BookRecord, RawBookMetadata

logger = logging.getLogger(__name__)


@dataclass
class MergeOutcome:
    """Everything the integrator produces in one run."""

    books: list[BookRecord] = field(default_factory=list)
    collections: list[CollectionRecord] = field(default_factory=list)
    duplicate_count: int = 0
    invalid_count: int = 0
    errors: list[str] = field(default_factory=list)
    merge_ms: float = 0.0
    validation_ms: float = 0.0


def build_collection_lookup(
    collections: Iterable[CollectionRecord], associations: Iterable[Association]
) -> dict[str, list[str]]:
    """Map each ASIN to its collection names, in association order, without repeats.

    Associations whose collection id matches no collection are skipped.
    """
    names_by_id = {collection.id: collection.name for collection in collections}

    by_asin: dict[str, list[str]] = {}
    for association in associations:
        name = names_by_id.get(association.collection_id)
        if not name:
            continue
        names = by_asin.setdefault(association.asin, [])
        if name not in names:
            names.append(name)

    logger.info("Linked collections for %d book(s)", len(by_asin))
    return by_asin


def _coerce_count(value: object) -> int:
    """Book counts that are non-numeric, NaN, or negative become zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(0, int(value))


def normalize_collection(record: CollectionRecord) -> CollectionRecord:
    """Return the validated public form of a collection.

    Raises:
        BookValidationError: If the id or name is missing or blank.
    """
    collection_id = record.id.strip() if isinstance(record.id, str) else ""
    if not collection_id:
        raise BookValidationError("Collection id is required", field="id", value=record.id)

    name = record.name.strip() if isinstance(record.name, str) else ""
    if not name:
        raise BookValidationError("Collection name is required", field="name", value=record.name)

    last_updated = record.last_updated.strip() if isinstance(record.last_updated, str) else None
    return CollectionRecord(
        id=collection_id,
        name=name,
        book_count=_coerce_count(record.book_count),
        last_updated=last_updated or None,
    )


def merge_books(
    raw_books: Iterable[RawBookMetadata],
    lookup: dict[str, list[str]],
    outcome: MergeOutcome,
) -> None:
    """Build BookRecords in input order, skipping duplicate and invalid entries."""
    seen: set[str] = set()
    for raw in raw_books:
        if raw.asin in seen:
            outcome.duplicate_count += 1
            logger.debug("Skipping duplicate book %s", raw.asin)
            continue

        try:
            book = BookRecord.create(
                asin=raw.asin,
                title=raw.title,
                author=raw.author or UNKNOWN_AUTHOR,
                collections=lookup.get(raw.asin, []),
                publisher=raw.publisher,
                publication_date=raw.publication_date,
                purchase_date=raw.purchase_date,
            )
        except KindlecatError as exc:
            outcome.invalid_count += 1
            outcome.errors.append(f"Invalid book {raw.asin!r}: {exc}")
            logger.warning("Skipping invalid book %r: %s", raw.asin, exc)
            continue

        seen.add(raw.asin)
        outcome.books.append(book)


def validate_collections(collections: Iterable[CollectionRecord], outcome: MergeOutcome) -> None:
    """Normalize every collection, dropping the ones missing an id or name."""
    for record in collections:
        try:
            outcome.collections.append(normalize_collection(record))
        except BookValidationError as exc:
            outcome.errors.append(f"Invalid collection {record.id!r}: {exc}")
            logger.warning("Skipping invalid collection %r: %s", record.id, exc)


def integrate(
    raw_books: Iterable[RawBookMetadata],
    collections: list[CollectionRecord],
    associations: Iterable[Association],
) -> MergeOutcome:
    """Join extracted books and collections into validated catalog records.

    The merge is sequential and deterministic: for each ASIN the first
    occurrence in raw_books is kept and later ones count as duplicates.
    """
    outcome = MergeOutcome()

    merge_start = time.perf_counter()
    lookup = build_collection_lookup(collections, associations)
    merge_books(raw_books, lookup, outcome)
    outcome.merge_ms = (time.perf_counter() - merge_start) * 1000

    validation_start = time.perf_counter()
    validate_collections(collections, outcome)
    outcome.validation_ms = (time.perf_counter() - validation_start) * 1000

    if outcome.errors:
        logger.warning("%d record(s) failed validation", len(outcome.errors))
    logger.info(
        "Integrated %d book(s), %d collection(s); %d duplicate(s), %d invalid",
        len(outcome.books),
        len(outcome.collections),
        outcome.duplicate_count,
        outcome.invalid_count,
    )
    return outcome
