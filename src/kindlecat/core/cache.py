# ABOUTME: Time-bounded cache for the most recent catalog build.
# ABOUTME: Concurrent callers that miss together share a single pipeline run.

import logging
import threading
import time
from collections.abc import Callable
from typing import Generic, TypeVar

from kindlecat.config import RESULT_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultCache(Generic[T]):
    """Holds one loader result for up to ttl seconds.

    get() returns the same object for every caller inside the window. On a
    miss, the loader runs under a lock; callers that arrive while it runs wait
    and then receive its result instead of starting another run. A failing
    loader leaves the cache empty and the error propagates to the caller that
    triggered it.
    """

    def __init__(
        self,
        loader: Callable[[], T],
        *,
        ttl: float = RESULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl
        self._clock = clock
        # Reentrant: a loader may call invalidate() on its own thread.
        self._lock = threading.RLock()
        # (value, stored_at), replaced as a unit so readers never see half of it.
        self._slot: tuple[T, float] | None = None
        self._generation = 0

    @property
    def cached_at(self) -> float | None:
        """Clock reading when the current value was stored, if any."""
        slot = self._slot
        return slot[1] if slot is not None else None

    @property
    def is_fresh(self) -> bool:
        return self._fresh_value() is not None

    def _fresh_value(self) -> T | None:
        slot = self._slot
        if slot is None:
            return None
        value, stored_at = slot
        if self._clock() - stored_at >= self._ttl:
            return None
        return value

    def get(self) -> T:
        """Return the cached value, running the loader if it is missing or stale."""
        value = self._fresh_value()
        if value is not None:
            logger.debug("Serving cached result")
            return value

        with self._lock:
            # Another caller may have refreshed while this one waited.
            value = self._fresh_value()
            if value is not None:
                return value

            generation = self._generation
            logger.info("Result cache miss; running loader")
            value = self._loader()
            if generation == self._generation:
                self._slot = (value, self._clock())
            return value

    def invalidate(self) -> None:
        """Drop the cached value so the next get() runs the loader."""
        with self._lock:
            self._generation += 1
            self._slot = None
        logger.info("Result cache invalidated")
