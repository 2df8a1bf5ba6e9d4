"""
Social graph sync client package.

Keeps a locally cached view of the remote social graph consistent with
server-side mutations using invalidate-and-refetch semantics:
- Reads go through the query coordinator (cache-first, request collapsing)
- Mutations go through the mutation coordinator, which applies the
  invalidation rule table after remote success

Structure:
- app.session: per-session context object wiring everything together.
- app.adapters: remote actor gateway.
- app.caching: cache store and query coordinator.
- app.mutations: invalidation rules and mutation coordinator.
- app.keys: query key registry.
- app.models: principals, blobs and domain models.
- app.domain: client-side validation and plan status.
- app.auth: caller identity.
"""

from .session import SyncSession

__all__ = ["SyncSession"]
