"""
In-memory cache store for remote query results.

Entries are only ever marked stale by explicit invalidation (or, when
configured, by age). The key space is small and enumerable, so there is no
eviction policy.
"""

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..keys.registry import QueryKey


class EntryStatus(str, Enum):
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class CachedEntry:
    value: Any
    status: EntryStatus
    updated_at: float

    @property
    def is_stale(self) -> bool:
        return self.status == EntryStatus.STALE


Listener = Callable[[QueryKey, Optional[CachedEntry]], None]


class CacheStore:
    """Key-scoped, last-write-wins store of query results."""

    def __init__(
        self,
        *,
        max_age_seconds: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age_seconds = max_age_seconds
        self.metrics = metrics
        self.logger = get_logger("sync.cache_store")
        self._clock = clock
        self._entries: Dict[QueryKey, CachedEntry] = {}
        self._versions: Dict[QueryKey, int] = {}
        self._fetching: Dict[QueryKey, int] = {}
        self._listeners: List[Tuple[Optional[QueryKey], Listener]] = []

    def get(self, key: QueryKey) -> Optional[CachedEntry]:
        """Return the entry for ``key``, reporting aged-out entries as stale."""
        entry = self._entries.get(key)
        if entry is None or entry.is_stale or self.max_age_seconds is None:
            return entry
        if self._clock() - entry.updated_at >= self.max_age_seconds:
            return replace(entry, status=EntryStatus.STALE)
        return entry

    def set(self, key: QueryKey, value: Any, *, stale: bool = False) -> CachedEntry:
        entry = CachedEntry(
            value=value,
            status=EntryStatus.STALE if stale else EntryStatus.FRESH,
            updated_at=self._clock(),
        )
        self._entries[key] = entry
        self._notify(key, entry)
        return entry

    def invalidate(self, key: QueryKey) -> bool:
        """Mark ``key`` stale. Absent or already-stale keys are left untouched.

        Returns True if an entry changed state.
        """
        entry = self._entries.get(key)
        changed = entry is not None and not entry.is_stale
        # A fetch in flight must learn its result predates this call, even
        # when there is no fresh entry to mark.
        if changed or self._fetching.get(key):
            self._versions[key] = self._versions.get(key, 0) + 1
        if not changed:
            return False

        stale = replace(entry, status=EntryStatus.STALE)
        self._entries[key] = stale
        if self.metrics:
            self.metrics.record_invalidation(key.domain)
        self.logger.debug("Cache entry invalidated", key=str(key))
        self._notify(key, stale)
        return True

    def invalidate_all(self, keys: Iterable[QueryKey]) -> int:
        """Invalidate every key; returns how many entries changed state."""
        return sum(1 for key in keys if self.invalidate(key))

    def version(self, key: QueryKey) -> int:
        """Invalidation counter for ``key``.

        Advances only when an entry goes from fresh to stale or while a fetch
        of ``key`` is in flight, so repeated invalidation is idempotent.
        """
        return self._versions.get(key, 0)

    def begin_fetch(self, key: QueryKey) -> int:
        """Watch ``key`` for invalidation; returns the current version."""
        self._fetching[key] = self._fetching.get(key, 0) + 1
        return self.version(key)

    def end_fetch(self, key: QueryKey) -> None:
        remaining = self._fetching.get(key, 0) - 1
        if remaining > 0:
            self._fetching[key] = remaining
        else:
            self._fetching.pop(key, None)

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    def stale_keys(self) -> List[QueryKey]:
        return [key for key in self._entries if self.get(key).is_stale]

    def snapshot(self) -> Dict[QueryKey, CachedEntry]:
        """Shallow copy of every stored entry (entries are immutable)."""
        return dict(self._entries)

    def clear(self) -> None:
        """Drop every entry and notify listeners of each removal."""
        removed = list(self._entries)
        self._entries.clear()
        self._versions = {key: self._versions.get(key, 0) + 1 for key in self._fetching}
        for key in removed:
            self._notify(key, None)
        if removed:
            self.logger.info("Cache cleared", entries=len(removed))

    def subscribe(self, listener: Listener, key: Optional[QueryKey] = None) -> Callable[[], None]:
        """Call ``listener(key, entry)`` on every change; ``key=None`` watches all.

        Returns a callable that removes the subscription.
        """
        subscription = (key, listener)
        self._listeners.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._listeners:
                self._listeners.remove(subscription)

        return unsubscribe

    def _notify(self, key: QueryKey, entry: Optional[CachedEntry]) -> None:
        for watched, listener in list(self._listeners):
            if watched is not None and watched != key:
                continue
            try:
                listener(key, entry)
            except Exception as exc:
                self.logger.error("Cache listener failed", key=str(key), error=str(exc))

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
