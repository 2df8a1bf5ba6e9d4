"""
Mutations package.

- rules: the static table of keys each mutation kind invalidates
- coordinator: mutation state machine and rule application

Invalidation always happens after the remote call succeeds, never before.
"""

from .coordinator import MutationCoordinator, MutationRecord, MutationState
from .rules import INVALIDATION_RULES, MutationKind, keys_to_invalidate

__all__ = [
    "INVALIDATION_RULES",
    "MutationCoordinator",
    "MutationKind",
    "MutationRecord",
    "MutationState",
    "keys_to_invalidate",
]
