"""
Remote actor gateway.

One async method per backend capability. The gateway owns no cache state;
it is also the only place where raw rejection text is turned into the
closed error taxonomy.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Type, TypeVar

import httpx
import pydantic

from shared.errors import GatewayUnavailable, RemoteFailure, SyncLayerError, classify_rejection
from shared.logging import get_logger
from ..auth.identity import CallerIdentity
from ..models.blob import ExternalBlob
from ..models.domain import (
    ConversationView,
    EmployeeView,
    Message,
    Post,
    PostComment,
    UserProfile,
    UserRole,
    WireModel,
)
from ..models.principal import Principal

M = TypeVar("M", bound=WireModel)


class ActorGateway(ABC):
    """Contract of the authoritative backend, as seen by the sync layer."""

    # Profiles
    @abstractmethod
    async def get_caller_user_profile(self) -> Optional[UserProfile]: ...

    @abstractmethod
    async def get_user_profile(self, user_id: Principal) -> Optional[UserProfile]: ...

    @abstractmethod
    async def save_caller_user_profile(self, profile: UserProfile) -> None: ...

    @abstractmethod
    async def upload_photo(self, photo: ExternalBlob, flag: bool) -> None: ...

    # Follows
    @abstractmethod
    async def get_followers(self, user_id: Principal) -> List[Principal]: ...

    @abstractmethod
    async def follow_user(self, target: Principal) -> None: ...

    @abstractmethod
    async def unfollow_user(self, target: Principal) -> None: ...

    # Posts
    @abstractmethod
    async def get_feed(self) -> List[Post]: ...

    @abstractmethod
    async def get_posts_by_user(self, user_id: Principal) -> List[Post]: ...

    @abstractmethod
    async def create_post(self, content: str) -> None: ...

    @abstractmethod
    async def create_photo_post(self, photo: ExternalBlob, caption: Optional[str]) -> None: ...

    @abstractmethod
    async def delete_post(self, post_id: int) -> None: ...

    @abstractmethod
    async def like_post(self, post_id: int) -> None: ...

    @abstractmethod
    async def get_post_comments(self, post_id: int) -> List[PostComment]: ...

    @abstractmethod
    async def comment_post(self, post_id: int, content: str) -> None: ...

    # Messages
    @abstractmethod
    async def get_all_conversations(self) -> List[ConversationView]: ...

    @abstractmethod
    async def get_conversation(self, partner: Principal) -> Optional[List[Message]]: ...

    @abstractmethod
    async def send_message(self, to: Principal, content: str) -> None: ...

    # Admin
    @abstractmethod
    async def get_employees(self) -> List[EmployeeView]: ...

    @abstractmethod
    async def add_admin(self, new_admin: Principal) -> None: ...

    @abstractmethod
    async def is_caller_admin(self) -> bool: ...

    @abstractmethod
    async def assign_caller_user_role(self, user: Principal, role: UserRole) -> None: ...

    async def close(self) -> None:
        """Release transport resources."""


class HttpActorGateway(ActorGateway):
    """Gateway speaking JSON to an HTTP bridge in front of the backend actor.

    ``POST {backend_url}/call/{method}`` with ``{"args": [...]}``; the bridge
    answers ``{"ok": value}`` or ``{"err": "rejection text"}``. There is no
    client-side deadline: a call resolves or rejects.
    """

    def __init__(
        self,
        backend_url: str,
        identity: Optional[CallerIdentity] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = backend_url.rstrip('/')
        self.logger = get_logger("sync.actor_gateway")

        headers = {}
        if identity is not None:
            headers["X-Caller-Principal"] = identity.principal_text
            if identity.token:
                headers["Authorization"] = f"Bearer {identity.token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=None,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def get_caller_user_profile(self) -> Optional[UserProfile]:
        data = await self._call("getCallerUserProfile")
        return self._parse_optional(UserProfile, data, "getCallerUserProfile")

    async def get_user_profile(self, user_id: Principal) -> Optional[UserProfile]:
        data = await self._call("getUserProfile", user_id.to_text())
        return self._parse_optional(UserProfile, data, "getUserProfile")

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        await self._call("saveCallerUserProfile", profile.to_wire())

    async def upload_photo(self, photo: ExternalBlob, flag: bool) -> None:
        photo.report_progress(0)
        await self._call("uploadPhoto", photo.to_wire(), flag)
        photo.report_progress(100)

    async def get_followers(self, user_id: Principal) -> List[Principal]:
        data = await self._call("getFollowers", user_id.to_text())
        try:
            return [Principal.coerce(item) for item in data or []]
        except SyncLayerError as e:
            raise RemoteFailure(
                "Malformed response from getFollowers",
                details={"method": "getFollowers", "error": e.message},
            )

    async def follow_user(self, target: Principal) -> None:
        await self._call("followUser", target.to_text())

    async def unfollow_user(self, target: Principal) -> None:
        await self._call("unfollowUser", target.to_text())

    async def get_feed(self) -> List[Post]:
        data = await self._call("getFeed")
        return self._parse_list(Post, data, "getFeed")

    async def get_posts_by_user(self, user_id: Principal) -> List[Post]:
        data = await self._call("getPostsByUser", user_id.to_text())
        return self._parse_list(Post, data, "getPostsByUser")

    async def create_post(self, content: str) -> None:
        await self._call("createPost", content)

    async def create_photo_post(self, photo: ExternalBlob, caption: Optional[str]) -> None:
        photo.report_progress(0)
        await self._call("createPhotoPost", photo.to_wire(), caption)
        photo.report_progress(100)

    async def delete_post(self, post_id: int) -> None:
        await self._call("deletePost", post_id)

    async def like_post(self, post_id: int) -> None:
        await self._call("likePost", post_id)

    async def get_post_comments(self, post_id: int) -> List[PostComment]:
        data = await self._call("getPostComments", post_id)
        return self._parse_list(PostComment, data, "getPostComments")

    async def comment_post(self, post_id: int, content: str) -> None:
        await self._call("commentPost", post_id, content)

    async def get_all_conversations(self) -> List[ConversationView]:
        data = await self._call("getAllConversations")
        return self._parse_list(ConversationView, data, "getAllConversations")

    async def get_conversation(self, partner: Principal) -> Optional[List[Message]]:
        data = await self._call("getConversation", partner.to_text())
        if data is None:
            return None
        messages = self._parse_list(Message, data, "getConversation")
        return sorted(messages, key=lambda m: m.timestamp)

    async def send_message(self, to: Principal, content: str) -> None:
        await self._call("sendMessage", to.to_text(), content)

    async def get_employees(self) -> List[EmployeeView]:
        data = await self._call("getEmployees")
        return self._parse_list(EmployeeView, data, "getEmployees")

    async def add_admin(self, new_admin: Principal) -> None:
        await self._call("addAdmin", new_admin.to_text())

    async def is_caller_admin(self) -> bool:
        data = await self._call("isCallerAdmin")
        return bool(data)

    async def assign_caller_user_role(self, user: Principal, role: UserRole) -> None:
        await self._call("assignCallerUserRole", user.to_text(), role.value)

    async def _call(self, method: str, *args: Any) -> Any:
        """Invoke ``method`` on the bridge and unwrap the ok/err envelope."""
        try:
            response = await self._client.post(f"/call/{method}", json={"args": list(args)})
        except httpx.HTTPError as e:
            self.logger.error("Actor bridge unreachable", method=method, error=str(e))
            raise GatewayUnavailable(
                f"Actor bridge unreachable: {e}",
                details={"method": method},
            )

        if response.status_code != 200:
            self.logger.error(
                "Actor call failed",
                method=method,
                status_code=response.status_code,
                response=response.text,
            )
            raise RemoteFailure(
                f"Unexpected status {response.status_code}",
                details={"method": method, "status_code": response.status_code, "body": response.text},
            )

        try:
            payload = response.json()
        except ValueError:
            raise RemoteFailure(
                f"Malformed response from {method}",
                details={"method": method, "body": response.text},
            )

        if isinstance(payload, dict) and "err" in payload:
            error = classify_rejection(str(payload["err"]), details={"method": method})
            self.logger.info(
                "Actor call rejected",
                method=method,
                error_kind=error.code,
                error=error.message,
            )
            raise error

        if not isinstance(payload, dict) or "ok" not in payload:
            raise RemoteFailure(
                f"Malformed response from {method}",
                details={"method": method, "body": response.text},
            )

        self.logger.debug("Actor call succeeded", method=method)
        return payload["ok"]

    def _parse_optional(self, model: Type[M], data: Any, method: str) -> Optional[M]:
        if data is None:
            return None
        return self._parse_list(model, [data], method)[0]

    def _parse_list(self, model: Type[M], data: Any, method: str) -> List[M]:
        if not isinstance(data, list):
            raise RemoteFailure(
                f"Malformed response from {method}: expected a list",
                details={"method": method},
            )
        try:
            return [model.model_validate(item) for item in data]
        except (pydantic.ValidationError, SyncLayerError) as e:
            self.logger.error("Actor response failed validation", method=method, error=str(e))
            raise RemoteFailure(
                f"Malformed response from {method}",
                details={"method": method, "error": str(e)},
            )
