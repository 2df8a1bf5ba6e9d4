"""
Adapters package for the sync client.

Contains the remote actor gateway. Adapters encapsulate:

- Request shapes and the ok/err response envelope
- Mapping of transport failures and rejections onto shared errors
- Validation of responses into domain models

Keep adapters thin and free of cache state.
"""

from .actor_gateway import ActorGateway, HttpActorGateway

__all__ = [
    "ActorGateway",
    "HttpActorGateway",
]
