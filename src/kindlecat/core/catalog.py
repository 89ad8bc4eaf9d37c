# ABOUTME: Query-facing facade that owns the path resolver and the result cache.
# ABOUTME: Built once by the application and passed to whatever needs catalog data.

import logging

from kindlecat.config import RESULT_CACHE_TTL_SECONDS
from kindlecat.core.cache import ResultCache
from kindlecat.core.paths import PathResolver
from kindlecat.core.pipeline import IntegrationResult, run_pipeline
from kindlecat.core.query import BookPage, BookQuery, collection_names, find_book, search_books
from kindlecat.metadata.types import BookRecord

logger = logging.getLogger(__name__)


class KindleCatalog:
    """Serves catalog queries from a cached pipeline run."""

    def __init__(
        self,
        resolver: PathResolver,
        *,
        ttl: float = RESULT_CACHE_TTL_SECONDS,
        force_refresh: bool = False,
    ) -> None:
        self._resolver = resolver
        self._force_refresh = force_refresh
        self._cache: ResultCache[IntegrationResult] = ResultCache(self._load, ttl=ttl)

    @property
    def resolver(self) -> PathResolver:
        return self._resolver

    def _load(self) -> IntegrationResult:
        result = run_pipeline(self._resolver, force_refresh=self._force_refresh)
        # Only the first run after construction bypasses the persisted resolution.
        self._force_refresh = False
        return result

    def result(self) -> IntegrationResult:
        """The current integration result, rebuilding it if the cache expired."""
        return self._cache.get()

    def refresh(self) -> IntegrationResult:
        """Discard the cached result and rebuild immediately."""
        self._cache.invalidate()
        return self._cache.get()

    def invalidate(self) -> None:
        self._cache.invalidate()

    def books(self, query: BookQuery | None = None) -> BookPage:
        return search_books(self.result().books, query or BookQuery())

    def book(self, asin: str) -> BookRecord | None:
        return find_book(self.result().books, asin)

    def collection_names(self) -> list[str]:
        return collection_names(self.result().books)
