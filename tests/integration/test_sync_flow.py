"""
Integration tests for the sync layer against an in-process actor bridge.

The bridge speaks the real HTTP envelope through ``httpx.MockTransport`` and
keeps its own authoritative state, so these tests exercise the whole path:
session -> coordinators -> HttpActorGateway -> bridge and back.
"""

import json
from typing import Any, Dict, List

import httpx
import pytest
from prometheus_client import CollectorRegistry

from shared.config import SyncConfig
from shared.errors import DuplicateAction, GatewayUnavailable, PlanRestricted, QuotaExceeded
from shared.metrics import MetricsCollector
from service_sync.app.auth.identity import CallerIdentity
from service_sync.app.keys import registry
from service_sync.app.models.blob import ExternalBlob
from service_sync.app.models.principal import Principal
from service_sync.app.session import SyncSession

ALICE = Principal.from_bytes(b"\x0a" * 10)
BOB = Principal.from_bytes(b"\x0b" * 10)
DAY = 20_000


def profile_wire(principal: Principal, username: str, **extra: Any) -> Dict[str, Any]:
    data = {
        "id": principal.to_text(),
        "username": username,
        "bio": "",
        "gender": "other",
        "city": "Pune",
        "state": "MH",
        "interests": ["versatile"],
        "lookingFor": ["casual"],
        "subscription": "free",
        "isAdmin": False,
        "photo": None,
        "postCountDaily": 0,
        "messageCountDaily": 0,
        "lastActivityDay": DAY,
    }
    data.update(extra)
    return data


class ActorBridge:
    """Minimal authoritative backend behind the HTTP bridge envelope."""

    def __init__(self):
        self.profiles: Dict[str, Dict[str, Any]] = {
            ALICE.to_text(): profile_wire(ALICE, "alice"),
            BOB.to_text(): profile_wire(BOB, "bob"),
        }
        self.followers: Dict[str, List[str]] = {}
        self.posts: List[Dict[str, Any]] = []
        self.likes = set()
        self.messages: Dict[tuple, List[Dict[str, Any]]] = {}
        self.calls: List[str] = []
        self.down = False
        self._clock = 0

    def _tick(self) -> int:
        self._clock += 1
        return self._clock

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            raise httpx.ConnectError("bridge down", request=request)
        method = request.url.path.rsplit("/", 1)[-1]
        caller = request.headers.get("x-caller-principal")
        args = json.loads(request.content)["args"]
        self.calls.append(method)
        try:
            result = getattr(self, f"_{method}")(caller, *args)
        except RuntimeError as e:
            return httpx.Response(200, json={"err": str(e)})
        return httpx.Response(200, json={"ok": result})

    def _getCallerUserProfile(self, caller):
        return self.profiles.get(caller)

    def _getUserProfile(self, caller, user):
        return self.profiles.get(user)

    def _saveCallerUserProfile(self, caller, profile):
        self.profiles[caller] = profile

    def _getFollowers(self, caller, user):
        return self.followers.get(user, [])

    def _followUser(self, caller, target):
        self.followers.setdefault(target, [])
        if caller not in self.followers[target]:
            self.followers[target].append(caller)

    def _getFeed(self, caller):
        return list(self.posts)

    def _createPost(self, caller, content):
        profile = self.profiles[caller]
        if profile["subscription"] == "free" and profile["postCountDaily"] >= 3:
            raise RuntimeError("Daily post limit reached")
        profile["postCountDaily"] += 1
        self.posts.insert(0, {
            "id": len(self.posts) + 1,
            "author": caller,
            "content": {"text": {"content": content}},
            "timestamp": self._tick(),
            "likeCount": 0,
            "commentCount": 0,
        })

    def _createPhotoPost(self, caller, photo, caption):
        if self.profiles[caller]["subscription"] != "pro":
            raise RuntimeError("Only Pro users can create photo posts")

    def _likePost(self, caller, post_id):
        if (caller, post_id) in self.likes:
            raise RuntimeError("Already liked")
        self.likes.add((caller, post_id))
        for post in self.posts:
            if post["id"] == post_id:
                post["likeCount"] += 1

    def _getConversation(self, caller, partner):
        return self.messages.get(tuple(sorted((caller, partner))))

    def _getAllConversations(self, caller):
        views = []
        for index, (pair, messages) in enumerate(self.messages.items()):
            if caller in pair:
                views.append({"id": index, "participant1": pair[0], "participant2": pair[1], "messages": messages})
        return views

    def _sendMessage(self, caller, to, content):
        thread = self.messages.setdefault(tuple(sorted((caller, to))), [])
        thread.append({"id": len(thread), "sender": caller, "content": content, "timestamp": self._tick()})
        self.profiles[caller]["messageCountDaily"] += 1


@pytest.fixture
def bridge():
    return ActorBridge()


@pytest.fixture
def config():
    return SyncConfig(backend_url="http://bridge.test")


def open_session(bridge, config, principal):
    return SyncSession.connect(
        CallerIdentity(principal),
        config,
        transport=httpx.MockTransport(bridge),
        metrics=MetricsCollector("service_sync_it", registry=CollectorRegistry()),
    )


class TestSyncFlow:
    """End-to-end flows over the HTTP bridge."""

    @pytest.mark.asyncio
    async def test_post_and_like_flow(self, bridge, config):
        async with open_session(bridge, config, ALICE) as session:
            assert await session.get_feed() == []

            await session.mutations.create_post("  first post  ")
            feed = await session.get_feed()
            assert [post.content.text.content for post in feed] == ["first post"]

            await session.mutations.like_post(feed[0].id)
            feed = await session.get_feed()
            assert feed[0].like_count == 1

            before = session.store.snapshot()
            with pytest.raises(DuplicateAction) as exc_info:
                await session.mutations.like_post(feed[0].id)

            assert exc_info.value.notification == "You already liked this post"
            assert session.store.snapshot() == before
            assert bridge.calls.count("getFeed") == 3

    @pytest.mark.asyncio
    async def test_quota_reported_from_backend(self, bridge, config):
        async with open_session(bridge, config, ALICE) as session:
            for n in range(3):
                await session.mutations.create_post(f"post {n}")

            with pytest.raises(QuotaExceeded) as exc_info:
                await session.mutations.create_post("one too many")

            assert exc_info.value.details["quota"] == "post"
            status = await session.get_plan_status(today=DAY)
            assert status.posts_remaining == 0
            assert not status.can_post

    @pytest.mark.asyncio
    async def test_photo_post_needs_pro(self, bridge, config):
        photo = ExternalBlob.from_bytes(b"\x89PNG", content_type="image/png")

        async with open_session(bridge, config, ALICE) as session:
            with pytest.raises(PlanRestricted):
                await session.mutations.create_photo_post(photo, "sunset")

            bridge.profiles[ALICE.to_text()]["subscription"] = "pro"
            record = await session.mutations.create_photo_post(photo, "sunset")
            assert record.succeeded

    @pytest.mark.asyncio
    async def test_message_flow(self, bridge, config):
        async with open_session(bridge, config, ALICE) as session:
            assert await session.get_conversation(BOB) is None
            assert await session.get_all_conversations() == []
            await session.get_caller_user_profile()

            await session.mutations.send_message(BOB.to_text(), "hello bob")

            stale = set(session.store.stale_keys())
            assert stale == {
                registry.conversation(ALICE, BOB),
                registry.conversations(),
                registry.caller_profile(),
            }
            messages = await session.get_conversation(BOB)
            assert [m.content for m in messages] == ["hello bob"]
            views = await session.get_all_conversations()
            assert views[0].partner_of(ALICE) == BOB
            profile = await session.get_caller_user_profile()
            assert profile.message_count_daily == 1

        async with open_session(bridge, config, BOB) as other:
            messages = await other.get_conversation(ALICE)
            assert messages[0].sender == ALICE

    @pytest.mark.asyncio
    async def test_follow_flow(self, bridge, config):
        async with open_session(bridge, config, ALICE) as session:
            assert not await session.is_following(BOB)
            await session.mutations.follow_user(BOB)
            assert await session.is_following(BOB)
            assert await session.get_followers(BOB) == [ALICE]

    @pytest.mark.asyncio
    async def test_profile_update_flow(self, bridge, config):
        async with open_session(bridge, config, ALICE) as session:
            profile = await session.get_caller_user_profile()

            await session.mutations.save_caller_user_profile(profile.model_copy(update={"bio": " likes hiking "}))

            updated = await session.get_caller_user_profile()
            assert updated.bio == "likes hiking"
            assert bridge.calls.count("getCallerUserProfile") == 2

    @pytest.mark.asyncio
    async def test_bridge_down_is_gateway_unavailable(self, bridge, config):
        async with open_session(bridge, config, ALICE) as session:
            await session.get_feed()
            bridge.down = True

            with pytest.raises(GatewayUnavailable):
                await session.get_feed(refresh=True)
            with pytest.raises(GatewayUnavailable):
                await session.mutations.create_post("offline")

            assert session.store.get(registry.feed()).value == []
            assert not session.store.get(registry.feed()).is_stale

    @pytest.mark.asyncio
    async def test_discovery_users(self, bridge, config):
        async with open_session(bridge, config, BOB) as bob:
            await bob.mutations.create_post("hi from bob")

        async with open_session(bridge, config, ALICE) as session:
            await session.mutations.create_post("hi from alice")
            users = await session.get_discovery_users()

        assert [user.username for user in users] == ["alice", "bob"]
