"""
Invalidation rule table.

Maps each mutation kind to the exact keys that become stale when the
mutation succeeds. Missing a key leaves stale data on screen; an extra key
costs a needless remote fetch. Followers are cached per followee only, so a
follow change only touches the target's follower set.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..keys import registry
from ..keys.registry import QueryKey
from ..models.principal import Principal


class MutationKind(str, Enum):
    CREATE_POST = "createPost"
    CREATE_PHOTO_POST = "createPhotoPost"
    DELETE_POST = "deletePost"
    LIKE_POST = "likePost"
    COMMENT_POST = "commentPost"
    FOLLOW_USER = "followUser"
    UNFOLLOW_USER = "unfollowUser"
    SAVE_CALLER_USER_PROFILE = "saveCallerUserProfile"
    UPLOAD_PHOTO = "uploadPhoto"
    SEND_MESSAGE = "sendMessage"
    ADD_ADMIN = "addAdmin"
    ASSIGN_CALLER_USER_ROLE = "assignCallerUserRole"


@dataclass(frozen=True)
class InvalidationContext:
    """Runtime arguments a rule may need to build its keys."""

    caller: Principal
    params: Mapping[str, Any] = field(default_factory=dict)

    def param(self, name: str) -> Any:
        try:
            return self.params[name]
        except KeyError:
            raise KeyError(f"invalidation rule needs parameter {name!r}")


Rule = Callable[[InvalidationContext], Tuple[QueryKey, ...]]


def _new_post(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return (
        registry.feed(),
        registry.caller_profile(),
        registry.posts_by_user(ctx.caller),
    )


def _delete_post(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return (registry.feed(), registry.caller_profile())


def _like_post(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return (registry.feed(), registry.post_liked(ctx.param("post_id")))


def _comment_post(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return (registry.post_comments(ctx.param("post_id")), registry.feed())


def _follow_change(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return (registry.followers(ctx.param("target")),)


def _caller_profile(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return (registry.caller_profile(),)


def _send_message(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return (
        registry.conversations(),
        registry.conversation(ctx.caller, ctx.param("to")),
        registry.caller_profile(),
    )


def _add_admin(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return (registry.employees(),)


def _nothing(ctx: InvalidationContext) -> Tuple[QueryKey, ...]:
    return ()


INVALIDATION_RULES: Dict[MutationKind, Rule] = {
    MutationKind.CREATE_POST: _new_post,
    MutationKind.CREATE_PHOTO_POST: _new_post,
    MutationKind.DELETE_POST: _delete_post,
    MutationKind.LIKE_POST: _like_post,
    MutationKind.COMMENT_POST: _comment_post,
    MutationKind.FOLLOW_USER: _follow_change,
    MutationKind.UNFOLLOW_USER: _follow_change,
    MutationKind.SAVE_CALLER_USER_PROFILE: _caller_profile,
    MutationKind.UPLOAD_PHOTO: _caller_profile,
    MutationKind.SEND_MESSAGE: _send_message,
    MutationKind.ADD_ADMIN: _add_admin,
    MutationKind.ASSIGN_CALLER_USER_ROLE: _nothing,
}


def keys_to_invalidate(
    kind: MutationKind,
    caller: Principal,
    params: Optional[Mapping[str, Any]] = None,
) -> Tuple[QueryKey, ...]:
    """Keys that ``kind`` makes stale on success, without duplicates."""
    rule = INVALIDATION_RULES[kind]
    keys = rule(InvalidationContext(caller=caller, params=params or {}))
    return tuple(dict.fromkeys(keys))
