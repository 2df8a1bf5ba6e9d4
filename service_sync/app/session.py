"""
Sync session: the explicit context object for one authenticated session.

A session is built once per sign-in, owns the cache store and both
coordinators, and is torn down on sign-out. Teardown cancels in-flight
fetches, clears every cached entry and closes the gateway.
"""

import asyncio
import uuid
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from shared.config import SyncConfig, get_config
from shared.errors import GatewayUnavailable
from shared.logging import clear_context, configure_logging, get_logger, set_session_context
from shared.metrics import MetricsCollector, get_metrics_collector
from .adapters.actor_gateway import ActorGateway, HttpActorGateway
from .auth.identity import CallerIdentity, require_identity
from .caching.cache_store import CacheStore
from .caching.query_coordinator import QueryCoordinator
from .domain.plan import PlanLimits, PlanStatus
from .domain.validation import parse_post_id, parse_principal
from .keys import registry
from .keys.registry import QueryKey
from .models.domain import ConversationView, EmployeeView, Message, Post, PostComment, UserProfile
from .models.principal import Principal, PrincipalLike
from .mutations.coordinator import MutationCoordinator

GatewayFetch = Callable[[ActorGateway], Awaitable[Any]]


class SyncSession:
    """Typed, cache-backed reads plus the mutation coordinator for one caller."""

    def __init__(
        self,
        gateway: Optional[ActorGateway],
        identity: Optional[CallerIdentity],
        *,
        config: Optional[SyncConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or SyncConfig()
        self.gateway = gateway
        self.identity = identity
        self.metrics = metrics or get_metrics_collector(
            self.config.service_name,
            enabled=self.config.enable_metrics,
        )
        self.logger = get_logger("sync.session")
        self.session_id = str(uuid.uuid4())

        self.store = CacheStore(
            max_age_seconds=self.config.cache_max_age_seconds,
            metrics=self.metrics,
        )
        self.queries = QueryCoordinator(self.store, metrics=self.metrics)
        self.mutations = MutationCoordinator(
            gateway,
            identity,
            self.store,
            config=self.config,
            metrics=self.metrics,
        )
        self._closed = False

        set_session_context(self.session_id, identity.principal_text if identity else None)
        self.logger.info(
            "Sync session opened",
            authenticated=identity is not None,
            gateway=type(gateway).__name__ if gateway else None,
        )

    @classmethod
    def connect(
        cls,
        identity: Optional[CallerIdentity],
        config: Optional[SyncConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> "SyncSession":
        """Open a session against the HTTP actor bridge from ``config``."""
        config = config or get_config()
        configure_logging(config.service_name, config.log_level)
        gateway = HttpActorGateway(config.backend_url, identity, transport=transport)
        return cls(gateway, identity, config=config, metrics=metrics)

    async def __aenter__(self) -> "SyncSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def caller(self) -> Optional[Principal]:
        return self.identity.principal if self.identity else None

    async def close(self) -> None:
        """Tear the session down; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.mutations.gateway = None
        await self.queries.cancel_all()
        self.store.clear()
        if self.gateway is not None:
            await self.gateway.close()
        self.logger.info("Sync session closed")
        clear_context()

    # Profiles

    async def get_caller_user_profile(self, *, refresh: bool = False) -> Optional[UserProfile]:
        return await self._read(
            registry.caller_profile(),
            lambda gw: gw.get_caller_user_profile(),
            refresh=refresh,
        )

    async def get_user_profile(self, user_id: PrincipalLike, *, refresh: bool = False) -> Optional[UserProfile]:
        principal = parse_principal(user_id)
        return await self._read(
            registry.user_profile(principal),
            lambda gw: gw.get_user_profile(principal),
            refresh=refresh,
        )

    async def get_plan_status(self, today: Optional[int] = None) -> Optional[PlanStatus]:
        profile = await self.get_caller_user_profile()
        if profile is None:
            return None
        limits = PlanLimits(
            daily_posts=self.config.free_daily_post_limit,
            daily_messages=self.config.free_daily_message_limit,
        )
        return PlanStatus.from_profile(profile, today, limits)

    # Follows

    async def get_followers(self, user_id: PrincipalLike, *, refresh: bool = False) -> List[Principal]:
        principal = parse_principal(user_id)
        return await self._read(
            registry.followers(principal),
            lambda gw: gw.get_followers(principal),
            refresh=refresh,
        )

    async def is_following(self, target: PrincipalLike) -> bool:
        """Whether the caller is in ``target``'s follower set."""
        if self.identity is None:
            return False
        followers = await self.get_followers(target)
        return self.identity.principal in followers

    # Posts

    async def get_feed(self, *, refresh: bool = False) -> List[Post]:
        return await self._read(registry.feed(), lambda gw: gw.get_feed(), refresh=refresh)

    async def get_posts_by_user(self, user_id: PrincipalLike, *, refresh: bool = False) -> List[Post]:
        principal = parse_principal(user_id)
        return await self._read(
            registry.posts_by_user(principal),
            lambda gw: gw.get_posts_by_user(principal),
            refresh=refresh,
        )

    async def get_post_comments(self, post_id: Any, *, refresh: bool = False) -> List[PostComment]:
        pid = parse_post_id(post_id)
        return await self._read(
            registry.post_comments(pid),
            lambda gw: gw.get_post_comments(pid),
            refresh=refresh,
        )

    # Messages

    async def get_all_conversations(self, *, refresh: bool = False) -> List[ConversationView]:
        return await self._read(
            registry.conversations(),
            lambda gw: gw.get_all_conversations(),
            needs_identity="view conversations",
            refresh=refresh,
        )

    async def get_conversation(self, partner: PrincipalLike, *, refresh: bool = False) -> Optional[List[Message]]:
        identity = require_identity(self.identity, "view conversations")
        principal = parse_principal(partner)
        return await self._read(
            registry.conversation(identity.principal, principal),
            lambda gw: gw.get_conversation(principal),
            refresh=refresh,
        )

    # Discovery

    async def get_discovery_users(self, *, refresh: bool = False) -> List[UserProfile]:
        """Profiles of feed authors, in order of first appearance."""
        return await self._read(registry.discovery_users(), self._fetch_discovery_users, refresh=refresh)

    async def _fetch_discovery_users(self, gateway: ActorGateway) -> List[UserProfile]:
        posts = await gateway.get_feed()
        authors = list(dict.fromkeys(post.author for post in posts))
        profiles = await asyncio.gather(*(gateway.get_user_profile(author) for author in authors))
        return [profile for profile in profiles if profile is not None]

    # Admin

    async def is_caller_admin(self, *, refresh: bool = False) -> bool:
        return await self._read(
            registry.is_admin(),
            lambda gw: gw.is_caller_admin(),
            needs_identity="check admin status",
            refresh=refresh,
        )

    async def get_employees(self, *, refresh: bool = False) -> List[EmployeeView]:
        return await self._read(registry.employees(), lambda gw: gw.get_employees(), refresh=refresh)

    async def _read(
        self,
        key: QueryKey,
        fetch: GatewayFetch,
        *,
        needs_identity: Optional[str] = None,
        refresh: bool = False,
    ) -> Any:
        if needs_identity:
            require_identity(self.identity, needs_identity)
        gateway = self._require_gateway(key)

        async def fetcher() -> Any:
            return await fetch(gateway)

        if refresh:
            return await self.queries.refresh(key, fetcher)
        return await self.queries.read(key, fetcher)

    def _require_gateway(self, key: QueryKey) -> ActorGateway:
        if self._closed:
            raise GatewayUnavailable("Session closed", details={"key": str(key)})
        if self.gateway is None:
            raise GatewayUnavailable(details={"key": str(key)})
        return self.gateway
