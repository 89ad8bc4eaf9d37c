# ABOUTME: End-to-end catalog build: resolve paths, extract XML and SQLite, integrate.
# ABOUTME: Phases run sequentially and are individually timed; file-level errors propagate.

import logging
import time
from dataclasses import dataclass, field

from kindlecat.config import SYNC_TARGET_MS
from kindlecat.core.integrator import integrate
from kindlecat.core.paths import PathResolver
from kindlecat.db.collections import CollectionStore, recompute_book_counts
from kindlecat.db.mapping import CollectionRecord
from kindlecat.formats.kindle_xml import KindleXmlParser
from kindlecat.metadata.types import BookRecord

logger = logging.getLogger(__name__)


@dataclass
class PhaseTimings:
    """Wall-clock milliseconds spent in each pipeline phase."""

    path_detection: float = 0.0
    xml_parsing: float = 0.0
    sqlite_parsing: float = 0.0
    data_integration: float = 0.0
    validation: float = 0.0


@dataclass
class IntegrationStatistics:
    """Accounting for one pipeline run.

    invalid_book_count covers both XML elements the extractor skipped and
    records the integrator rejected.
    """

    xml_book_count: int = 0
    sqlite_collection_count: int = 0
    association_count: int = 0
    final_book_count: int = 0
    final_collection_count: int = 0
    duplicate_book_count: int = 0
    invalid_book_count: int = 0
    total_processing_ms: float = 0.0
    phase_timings: PhaseTimings = field(default_factory=PhaseTimings)


@dataclass
class IntegrationResult:
    """The catalog produced by one pipeline run."""

    books: list[BookRecord]
    collections: list[CollectionRecord]
    statistics: IntegrationStatistics
    errors: list[str] = field(default_factory=list)
    path_source: str | None = None


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def run_pipeline(resolver: PathResolver, *, force_refresh: bool = False) -> IntegrationResult:
    """Build the catalog from the Kindle cache files.

    Raises:
        PathResolutionError: If the cache files cannot be located.
        FileValidationError, MalformedDocumentError: If the XML file is unusable.
        StoreError: If the collections database cannot be read.
    """
    started = time.perf_counter()
    timings = PhaseTimings()
    logger.info("Building Kindle catalog")

    phase = time.perf_counter()
    resolution = resolver.resolve(force_refresh=force_refresh)
    paths = resolution.raise_for_failure()
    timings.path_detection = _elapsed_ms(phase)
    logger.info("Using %s (%s) and %s", paths.xml_path, resolution.source, paths.db_path)

    phase = time.perf_counter()
    xml_result = KindleXmlParser(paths.base_dir).parse(paths.xml_path)
    timings.xml_parsing = _elapsed_ms(phase)

    phase = time.perf_counter()
    store_result = CollectionStore(paths.base_dir).extract(paths.db_path)
    recompute_book_counts(store_result.collections, store_result.associations)
    timings.sqlite_parsing = _elapsed_ms(phase)

    outcome = integrate(xml_result.books, store_result.collections, store_result.associations)
    timings.data_integration = outcome.merge_ms
    timings.validation = outcome.validation_ms

    statistics = IntegrationStatistics(
        xml_book_count=len(xml_result.books),
        sqlite_collection_count=len(store_result.collections),
        association_count=len(store_result.associations),
        final_book_count=len(outcome.books),
        final_collection_count=len(outcome.collections),
        duplicate_book_count=outcome.duplicate_count,
        invalid_book_count=xml_result.statistics.error_count + outcome.invalid_count,
        total_processing_ms=_elapsed_ms(started),
        phase_timings=timings,
    )

    if statistics.total_processing_ms > SYNC_TARGET_MS:
        logger.warning(
            "Catalog build exceeded target: %.0fms > %dms",
            statistics.total_processing_ms,
            SYNC_TARGET_MS,
        )
    logger.info(
        "Catalog built: %d book(s), %d collection(s) in %.0fms",
        statistics.final_book_count,
        statistics.final_collection_count,
        statistics.total_processing_ms,
    )

    return IntegrationResult(
        books=outcome.books,
        collections=outcome.collections,
        statistics=statistics,
        errors=xml_result.statistics.diagnostics + outcome.errors,
        path_source=resolution.source,
    )
