"""
Authentication helpers for the sync client.
"""

from .identity import CallerIdentity, require_identity

__all__ = [
    "CallerIdentity",
    "require_identity",
]
