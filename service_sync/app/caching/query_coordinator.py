"""
Query coordinator: cache-first reads with request collapsing.

At most one remote fetch per key is in flight at any instant. Callers that
arrive while a fetch is running attach to it. A caller that gives up
(cancellation) does not cancel the shared fetch; its result is still stored
for other waiters and later readers.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from shared.errors import classify_error
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..keys.registry import QueryKey
from .cache_store import CacheStore

T = TypeVar("T")
Fetcher = Callable[[], Awaitable[T]]


class QueryCoordinator:
    """Serves reads from the cache store and fetches on miss or staleness."""

    def __init__(self, store: CacheStore, *, metrics: Optional[MetricsCollector] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("sync.query_coordinator")
        self._in_flight: Dict[QueryKey, "asyncio.Task[Any]"] = {}

    async def read(self, key: QueryKey, fetcher: Fetcher) -> Any:
        """Return the cached value for ``key``, fetching it if absent or stale."""
        entry = self.store.get(key)
        if entry is not None and not entry.is_stale:
            self._record_read(key, "hit")
            return entry.value
        return await self._join_or_fetch(key, fetcher)

    async def refresh(self, key: QueryKey, fetcher: Fetcher) -> Any:
        """Fetch ``key`` regardless of staleness.

        If a fetch for the key is already running the caller joins it.
        """
        return await self._join_or_fetch(key, fetcher)

    def is_fetching(self, key: QueryKey) -> bool:
        return key in self._in_flight

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def cancel_all(self) -> None:
        """Cancel every in-flight fetch and wait for them to unwind."""
        tasks = list(self._in_flight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()

    async def _join_or_fetch(self, key: QueryKey, fetcher: Fetcher) -> Any:
        task = self._in_flight.get(key)
        if task is not None:
            self._record_read(key, "joined")
        else:
            self._record_read(key, "miss")
            task = asyncio.ensure_future(self._fetch(key, fetcher))
            task.add_done_callback(_consume_result)
            self._in_flight[key] = task
        # Shielded so an abandoned reader leaves the fetch running.
        return await asyncio.shield(task)

    async def _fetch(self, key: QueryKey, fetcher: Fetcher) -> Any:
        version = self.store.begin_fetch(key)
        start = time.perf_counter()
        try:
            value = await fetcher()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = classify_error(exc)
            self._record_fetch(key, "error", start)
            if self.metrics:
                self.metrics.record_error(error.code)
            self.logger.warning(
                "Query fetch failed",
                key=str(key),
                error_kind=error.code,
                error=error.message,
            )
            if error is exc:
                raise
            raise error from exc
        finally:
            self._in_flight.pop(key, None)
            self.store.end_fetch(key)

        # Invalidated while in flight: keep the value but do not trust it.
        invalidated = self.store.version(key) != version
        self.store.set(key, value, stale=invalidated)
        self._record_fetch(key, "ok", start)
        self.logger.debug("Query fetched", key=str(key), stale=invalidated)
        return value

    def _record_read(self, key: QueryKey, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache_read(key.domain, result)

    def _record_fetch(self, key: QueryKey, status: str, start: float) -> None:
        if self.metrics:
            self.metrics.record_fetch(key.domain, status, time.perf_counter() - start)


def _consume_result(task: "asyncio.Task[Any]") -> None:
    # Retrieve the exception so abandoned fetches do not log
    # "exception was never retrieved".
    if not task.cancelled():
        task.exception()
