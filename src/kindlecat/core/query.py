# ABOUTME: Read-side helpers over an integrated catalog: search, lookup, and health checks.
# ABOUTME: Title search folds hiragana and katakana so either script matches.

import logging
import time
from dataclasses import dataclass, field

from kindlecat.core.paths import PathResolver
from kindlecat.metadata.asin import is_valid_asin
from kindlecat.metadata.types import BookRecord

logger = logging.getLogger(__name__)

SORT_TITLE_ASC = "title_asc"
SORT_TITLE_DESC = "title_desc"
SORT_CHOICES = (SORT_TITLE_ASC, SORT_TITLE_DESC)

DEFAULT_LIMIT = 1000
SEARCH_TARGET_MS = 100

# Hiragana U+3041..U+3096 and katakana U+30A1..U+30F6 are offset by 0x60.
_KANA_OFFSET = 0x60
_HIRAGANA_TO_KATAKANA = {cp: cp + _KANA_OFFSET for cp in range(0x3041, 0x3097)}
_KATAKANA_TO_HIRAGANA = {cp: cp - _KANA_OFFSET for cp in range(0x30A1, 0x30F7)}


def to_katakana(text: str) -> str:
    return text.translate(_HIRAGANA_TO_KATAKANA)


def to_hiragana(text: str) -> str:
    return text.translate(_KATAKANA_TO_HIRAGANA)


@dataclass
class BookQuery:
    """Filter, sort and paging options for search_books()."""

    search: str | None = None
    collection: str | None = None
    sort: str = SORT_TITLE_ASC
    limit: int = DEFAULT_LIMIT
    offset: int = 0


@dataclass
class BookPage:
    """One page of search results."""

    books: list[BookRecord]
    total_count: int
    has_more: bool


def _title_matches(title: str, needles: set[str]) -> bool:
    lowered = title.lower()
    return any(needle in lowered for needle in needles)


def search_books(books: list[BookRecord], query: BookQuery) -> BookPage:
    """Filter by title text and collection, sort by title, and slice a page.

    Title matching is a case-insensitive substring match; the search text is
    also tried in katakana and hiragana. Unknown sort keys fall back to
    ascending title order, and a limit below 1 means DEFAULT_LIMIT.
    """
    start = time.perf_counter()
    results = list(books)

    if query.search:
        lowered = query.search.lower()
        needles = {lowered, to_katakana(lowered), to_hiragana(lowered)}
        results = [book for book in results if _title_matches(book.title, needles)]
        logger.debug("Search %r matched %d book(s)", query.search, len(results))

    if query.collection:
        results = [book for book in results if query.collection in book.collections]
        logger.debug("Collection %r matched %d book(s)", query.collection, len(results))

    if query.sort not in SORT_CHOICES:
        logger.debug("Unknown sort %r, using %s", query.sort, SORT_TITLE_ASC)
    results.sort(key=lambda book: book.title.casefold(), reverse=query.sort == SORT_TITLE_DESC)

    offset = max(0, query.offset)
    limit = query.limit if query.limit > 0 else DEFAULT_LIMIT
    page = results[offset : offset + limit]

    elapsed = (time.perf_counter() - start) * 1000
    if elapsed > SEARCH_TARGET_MS:
        logger.warning("Search exceeded target: %.0fms > %dms", elapsed, SEARCH_TARGET_MS)

    return BookPage(books=page, total_count=len(results), has_more=offset + limit < len(results))


def find_book(books: list[BookRecord], asin: str) -> BookRecord | None:
    """Return the book with this ASIN, or None (also for malformed ASINs)."""
    if not is_valid_asin(asin):
        return None
    return next((book for book in books if book.asin == asin), None)


def collection_names(books: list[BookRecord]) -> list[str]:
    """Sorted unique collection names across all books."""
    names = {name for book in books for name in book.collections}
    return sorted(names, key=str.casefold)


@dataclass
class HealthReport:
    """Result of a quick check that the Kindle cache files can be located."""

    is_healthy: bool
    errors: list[str] = field(default_factory=list)
    path_detection_ms: float = 0.0
    total_ms: float = 0.0


def health_check(resolver: PathResolver) -> HealthReport:
    """Run path resolution only and report whether it succeeded."""
    start = time.perf_counter()
    resolution = resolver.resolve()
    detection_ms = (time.perf_counter() - start) * 1000

    if not resolution.success:
        return HealthReport(
            is_healthy=False,
            errors=[resolution.error or "Path detection failed"],
            total_ms=(time.perf_counter() - start) * 1000,
        )

    return HealthReport(
        is_healthy=True,
        path_detection_ms=detection_ms,
        total_ms=(time.perf_counter() - start) * 1000,
    )
