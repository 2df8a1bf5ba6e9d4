"""
Query key registry package.

All cache keys are built here; call sites never assemble keys inline.
"""

from .registry import QueryDomain, QueryKey, key_for

__all__ = ["QueryDomain", "QueryKey", "key_for"]
