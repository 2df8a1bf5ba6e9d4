"""
Sync client caching package.

- cache_store: key-scoped store of query results with explicit invalidation
- query_coordinator: cache-first reads with per-key request collapsing

Prefer explicit invalidation over time-based expiry.
"""

from .cache_store import CacheStore, CachedEntry, EntryStatus
from .query_coordinator import QueryCoordinator

__all__ = ["CacheStore", "CachedEntry", "EntryStatus", "QueryCoordinator"]
