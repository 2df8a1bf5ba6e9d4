"""
Mutation coordinator.

Runs each mutation through ``idle -> pending -> succeeded|failed``. Nothing
is written to the cache while a mutation is pending; on success the
invalidation rule for the mutation kind is applied, on failure the cache is
left exactly as it was. Identical concurrent mutations are not collapsed:
the backend decides whether a repeat is a duplicate.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from shared.config import SyncConfig
from shared.errors import GatewayUnavailable, SyncLayerError, ValidationError, classify_error
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..adapters.actor_gateway import ActorGateway
from ..auth.identity import CallerIdentity, require_identity
from ..caching.cache_store import CacheStore
from ..domain.validation import (
    optional_text,
    parse_post_id,
    parse_principal,
    require_text,
    validate_photo,
    validate_profile,
)
from ..keys.registry import QueryKey
from ..models.blob import ExternalBlob
from ..models.domain import UserProfile, UserRole
from ..models.principal import PrincipalLike
from .rules import MutationKind, keys_to_invalidate


class MutationState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class MutationRecord:
    """Outcome and state history of one mutation."""

    kind: MutationKind
    params: Dict[str, Any] = field(default_factory=dict)
    state: MutationState = MutationState.IDLE
    history: List[MutationState] = field(default_factory=lambda: [MutationState.IDLE])
    invalidated: Tuple[QueryKey, ...] = ()
    result: Any = None
    error: Optional[SyncLayerError] = None

    @property
    def succeeded(self) -> bool:
        return MutationState.SUCCEEDED in self.history and self.error is None


GatewayCall = Callable[[ActorGateway], Awaitable[Any]]
Prepared = Tuple[GatewayCall, Dict[str, Any]]
Listener = Callable[[MutationRecord], None]


class MutationCoordinator:
    """Executes mutations against the gateway and applies invalidation rules."""

    def __init__(
        self,
        gateway: Optional[ActorGateway],
        identity: Optional[CallerIdentity],
        store: CacheStore,
        *,
        config: Optional[SyncConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.gateway = gateway
        self.identity = identity
        self.store = store
        self.config = config or SyncConfig()
        self.metrics = metrics
        self.logger = get_logger("sync.mutation_coordinator")
        self._listeners: List[Listener] = []
        self._pending = 0

    @property
    def pending_count(self) -> int:
        return self._pending

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Observe every state transition; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def execute(
        self,
        kind: MutationKind,
        prepare: Callable[[CallerIdentity], Prepared],
    ) -> MutationRecord:
        """Run a mutation.

        ``prepare`` validates input and returns the gateway call plus the
        parameters the invalidation rule needs. Authentication, gateway
        availability and validation all fail before any remote call.
        """
        try:
            identity = require_identity(self.identity, kind.value)
            gateway = self._require_gateway(kind)
            call, params = prepare(identity)
        except SyncLayerError as error:
            self._record_outcome(kind, "rejected", error)
            self.logger.info(
                "Mutation rejected before dispatch",
                kind=kind.value,
                error_kind=error.code,
                error=error.message,
            )
            raise

        record = MutationRecord(kind=kind, params=params)
        await self._run(record, identity, gateway, call)
        return record

    async def _run(
        self,
        record: MutationRecord,
        identity: CallerIdentity,
        gateway: ActorGateway,
        call: GatewayCall,
    ) -> None:
        self._transition(record, MutationState.PENDING)
        self._pending += 1
        try:
            record.result = await call(gateway)
        except asyncio.CancelledError:
            # Outcome unknown; the cache is left alone and the record ends in FAILED.
            self._transition(record, MutationState.FAILED)
            self._record_outcome(record.kind, "cancelled")
            self.logger.warning("Mutation cancelled", kind=record.kind.value)
            raise
        except Exception as exc:
            error = classify_error(exc)
            record.error = error
            self._transition(record, MutationState.FAILED)
            self._record_outcome(record.kind, "failed", error)
            self.logger.warning(
                "Mutation failed",
                kind=record.kind.value,
                error_kind=error.code,
                error=error.message,
            )
            if error is exc:
                raise
            raise error from exc
        finally:
            self._pending -= 1

        self._transition(record, MutationState.SUCCEEDED)
        keys = keys_to_invalidate(record.kind, identity.principal, record.params)
        changed = self.store.invalidate_all(keys)
        record.invalidated = keys
        self._transition(record, MutationState.IDLE)
        self._record_outcome(record.kind, "succeeded")
        self.logger.info(
            "Mutation succeeded",
            kind=record.kind.value,
            invalidated=[str(key) for key in keys],
            entries_marked_stale=changed,
        )

    def _require_gateway(self, kind: MutationKind) -> ActorGateway:
        if self.gateway is None:
            raise GatewayUnavailable(details={"action": kind.value})
        return self.gateway

    def _transition(self, record: MutationRecord, state: MutationState) -> None:
        record.state = state
        record.history.append(state)
        for listener in list(self._listeners):
            try:
                listener(record)
            except Exception as exc:
                self.logger.error("Mutation listener failed", kind=record.kind.value, error=str(exc))

    def _record_outcome(self, kind: MutationKind, outcome: str, error: Optional[SyncLayerError] = None) -> None:
        if not self.metrics:
            return
        self.metrics.record_mutation(kind.value, outcome)
        if error is not None:
            self.metrics.record_error(error.code)

    # Posts

    async def create_post(self, text: str) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            content = require_text(text, "Please enter some content", "content")
            return (lambda gw: gw.create_post(content)), {}

        return await self.execute(MutationKind.CREATE_POST, prepare)

    async def create_photo_post(self, photo: ExternalBlob, caption: Optional[str] = None) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            blob = validate_photo(photo, self.config.max_photo_bytes)
            text = optional_text(caption)
            return (lambda gw: gw.create_photo_post(blob, text)), {}

        return await self.execute(MutationKind.CREATE_PHOTO_POST, prepare)

    async def delete_post(self, post_id: Any) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            pid = parse_post_id(post_id)
            return (lambda gw: gw.delete_post(pid)), {"post_id": pid}

        return await self.execute(MutationKind.DELETE_POST, prepare)

    async def like_post(self, post_id: Any) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            pid = parse_post_id(post_id)
            return (lambda gw: gw.like_post(pid)), {"post_id": pid}

        return await self.execute(MutationKind.LIKE_POST, prepare)

    async def comment_post(self, post_id: Any, text: str) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            pid = parse_post_id(post_id)
            content = require_text(text, "Please enter a comment", "content")
            return (lambda gw: gw.comment_post(pid, content)), {"post_id": pid}

        return await self.execute(MutationKind.COMMENT_POST, prepare)

    # Follows

    async def follow_user(self, target: PrincipalLike) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            principal = parse_principal(target)
            if principal == identity.principal:
                raise ValidationError("You cannot follow yourself", details={"field": "target"})
            return (lambda gw: gw.follow_user(principal)), {"target": principal}

        return await self.execute(MutationKind.FOLLOW_USER, prepare)

    async def unfollow_user(self, target: PrincipalLike) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            principal = parse_principal(target)
            return (lambda gw: gw.unfollow_user(principal)), {"target": principal}

        return await self.execute(MutationKind.UNFOLLOW_USER, prepare)

    # Profile

    async def save_caller_user_profile(self, profile: UserProfile) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            cleaned = validate_profile(profile)
            return (lambda gw: gw.save_caller_user_profile(cleaned)), {}

        return await self.execute(MutationKind.SAVE_CALLER_USER_PROFILE, prepare)

    async def upload_photo(self, photo: ExternalBlob) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            blob = validate_photo(photo, self.config.max_photo_bytes)
            return (lambda gw: gw.upload_photo(blob, True)), {}

        return await self.execute(MutationKind.UPLOAD_PHOTO, prepare)

    # Messages

    async def send_message(self, to: PrincipalLike, text: str) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            recipient = parse_principal(to)
            content = require_text(text, "Please enter a message", "content")
            return (lambda gw: gw.send_message(recipient, content)), {"to": recipient}

        return await self.execute(MutationKind.SEND_MESSAGE, prepare)

    # Admin

    async def add_admin(self, new_admin: PrincipalLike) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            principal = parse_principal(new_admin)
            return (lambda gw: gw.add_admin(principal)), {"new_admin": principal}

        return await self.execute(MutationKind.ADD_ADMIN, prepare)

    async def assign_caller_user_role(self, user: PrincipalLike, role: Any) -> MutationRecord:
        def prepare(identity: CallerIdentity) -> Prepared:
            principal = parse_principal(user)
            try:
                user_role = UserRole(role)
            except ValueError:
                raise ValidationError(f"Unknown role: {role}", details={"field": "role"})
            return (lambda gw: gw.assign_caller_user_role(principal, user_role)), {"user": principal}

        return await self.execute(MutationKind.ASSIGN_CALLER_USER_ROLE, prepare)
