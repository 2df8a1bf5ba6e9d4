"""
Shared fixtures for sync client unit tests.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest
from prometheus_client import CollectorRegistry

from shared.config import SyncConfig
from shared.metrics import MetricsCollector
from service_sync.app.adapters.actor_gateway import ActorGateway
from service_sync.app.auth.identity import CallerIdentity
from service_sync.app.models.blob import ExternalBlob
from service_sync.app.models.domain import (
    ConversationView,
    EmployeeView,
    Gender,
    Message,
    Orientation,
    Post,
    PostComment,
    RelationshipStatus,
    UserProfile,
    UserRole,
)
from service_sync.app.models.principal import Principal
from service_sync.app.session import SyncSession


def make_principal(seed: int) -> Principal:
    return Principal.from_bytes(bytes([seed]) * 10)


def make_profile(principal: Principal, **overrides: Any) -> UserProfile:
    data = {
        "id": principal,
        "username": f"user-{principal.to_text()[:5]}",
        "bio": "hello",
        "gender": Gender.OTHER,
        "city": "Pune",
        "state": "MH",
        "interests": Orientation.VERSATILE,
        "looking_for": RelationshipStatus.CASUAL,
    }
    data.update(overrides)
    return UserProfile(**data)


def make_post(post_id: int, author: Principal, text: str = "hello world", timestamp: int = 1) -> Post:
    return Post.model_validate({
        "id": post_id,
        "author": author.to_text(),
        "content": {"text": {"content": text}},
        "timestamp": timestamp,
        "likeCount": 0,
        "commentCount": 0,
    })


class FakeActorGateway(ActorGateway):
    """In-memory backend that records every call.

    ``fail_with[method]`` makes the next calls of ``method`` reject with the
    given text; ``gates[method]`` holds calls until the event is set.
    """

    def __init__(self, caller: Principal):
        self.caller = caller
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail_with: Dict[str, str] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.closed = False

        self.profiles: Dict[Principal, UserProfile] = {}
        self.followers: Dict[Principal, List[Principal]] = {}
        self.posts: List[Post] = []
        self.comments: Dict[int, List[PostComment]] = {}
        self.likes: set = set()
        self.messages: Dict[Principal, List[Message]] = {}
        self.employees: List[EmployeeView] = []
        self.admins: set = set()
        self.roles: Dict[Principal, UserRole] = {}
        self._next_id = 100

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def _enter(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()
        error = self.fail_with.get(method)
        if error is not None:
            raise RuntimeError(error)

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def get_caller_user_profile(self) -> Optional[UserProfile]:
        await self._enter("getCallerUserProfile")
        return self.profiles.get(self.caller)

    async def get_user_profile(self, user_id: Principal) -> Optional[UserProfile]:
        await self._enter("getUserProfile", user_id)
        return self.profiles.get(user_id)

    async def save_caller_user_profile(self, profile: UserProfile) -> None:
        await self._enter("saveCallerUserProfile", profile)
        self.profiles[self.caller] = profile

    async def upload_photo(self, photo: ExternalBlob, flag: bool) -> None:
        await self._enter("uploadPhoto", photo, flag)
        profile = self.profiles.get(self.caller)
        if profile is not None:
            self.profiles[self.caller] = profile.model_copy(update={"photo": photo})

    async def get_followers(self, user_id: Principal) -> List[Principal]:
        await self._enter("getFollowers", user_id)
        return list(self.followers.get(user_id, []))

    async def follow_user(self, target: Principal) -> None:
        await self._enter("followUser", target)
        followers = self.followers.setdefault(target, [])
        if self.caller not in followers:
            followers.append(self.caller)

    async def unfollow_user(self, target: Principal) -> None:
        await self._enter("unfollowUser", target)
        followers = self.followers.get(target, [])
        if self.caller in followers:
            followers.remove(self.caller)

    async def get_feed(self) -> List[Post]:
        await self._enter("getFeed")
        return list(self.posts)

    async def get_posts_by_user(self, user_id: Principal) -> List[Post]:
        await self._enter("getPostsByUser", user_id)
        return [post for post in self.posts if post.author == user_id]

    async def create_post(self, content: str) -> None:
        await self._enter("createPost", content)
        self.posts.insert(0, make_post(self._new_id(), self.caller, content))

    async def create_photo_post(self, photo: ExternalBlob, caption: Optional[str]) -> None:
        await self._enter("createPhotoPost", photo, caption)

    async def delete_post(self, post_id: int) -> None:
        await self._enter("deletePost", post_id)
        self.posts = [post for post in self.posts if post.id != post_id]

    async def like_post(self, post_id: int) -> None:
        await self._enter("likePost", post_id)
        if (self.caller, post_id) in self.likes:
            raise RuntimeError("Already liked")
        self.likes.add((self.caller, post_id))

    async def get_post_comments(self, post_id: int) -> List[PostComment]:
        await self._enter("getPostComments", post_id)
        return list(self.comments.get(post_id, []))

    async def comment_post(self, post_id: int, content: str) -> None:
        await self._enter("commentPost", post_id, content)
        self.comments.setdefault(post_id, []).append(PostComment(
            id=self._new_id(), post_id=post_id, author=self.caller, content=content, timestamp=self._next_id,
        ))

    async def get_all_conversations(self) -> List[ConversationView]:
        await self._enter("getAllConversations")
        return [
            ConversationView(id=index, participant1=self.caller, participant2=partner, messages=messages)
            for index, (partner, messages) in enumerate(self.messages.items())
        ]

    async def get_conversation(self, partner: Principal) -> Optional[List[Message]]:
        await self._enter("getConversation", partner)
        messages = self.messages.get(partner)
        return list(messages) if messages is not None else None

    async def send_message(self, to: Principal, content: str) -> None:
        await self._enter("sendMessage", to, content)
        self.messages.setdefault(to, []).append(Message(
            id=self._new_id(), sender=self.caller, content=content, timestamp=self._next_id,
        ))

    async def get_employees(self) -> List[EmployeeView]:
        await self._enter("getEmployees")
        return list(self.employees)

    async def add_admin(self, new_admin: Principal) -> None:
        await self._enter("addAdmin", new_admin)
        self.admins.add(new_admin)

    async def is_caller_admin(self) -> bool:
        await self._enter("isCallerAdmin")
        return self.caller in self.admins

    async def assign_caller_user_role(self, user: Principal, role: UserRole) -> None:
        await self._enter("assignCallerUserRole", user, role)
        self.roles[user] = role

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def caller() -> Principal:
    return make_principal(1)


@pytest.fixture
def partner() -> Principal:
    return make_principal(2)


@pytest.fixture
def identity(caller) -> CallerIdentity:
    return CallerIdentity(principal=caller)


@pytest.fixture
def fake_gateway(caller) -> FakeActorGateway:
    gateway = FakeActorGateway(caller)
    gateway.profiles[caller] = make_profile(caller)
    return gateway


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector("service_sync_test", registry=CollectorRegistry())


@pytest.fixture
def config() -> SyncConfig:
    return SyncConfig(backend_url="http://bridge.test")


@pytest.fixture
def session(fake_gateway, identity, config, metrics) -> SyncSession:
    return SyncSession(fake_gateway, identity, config=config, metrics=metrics)
