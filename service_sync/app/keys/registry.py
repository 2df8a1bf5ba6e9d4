"""
Query key registry.

The single source of truth for cache keys. Every key is a frozen
``(domain, scope)`` pair of strings, so structurally equal inputs always
produce equal, hashable keys regardless of how an id was represented.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple, Union

from shared.errors import ValidationError
from ..models.principal import Principal, PrincipalLike

CALLER = "caller"

PostIdLike = Union[int, str]


@dataclass(frozen=True)
class QueryKey:
    """Opaque, structurally comparable cache key."""

    domain: str
    scope: Tuple[str, ...] = ()

    def __str__(self) -> str:
        if not self.scope:
            return self.domain
        return f"{self.domain}:{':'.join(self.scope)}"


class QueryDomain:
    PROFILE = "profile"
    FOLLOWERS = "followers"
    FEED = "feed"
    POSTS_BY_USER = "postsByUser"
    POST_COMMENTS = "postComments"
    POST_LIKED = "postLiked"
    CONVERSATIONS = "conversations"
    CONVERSATION = "conversation"
    DISCOVERY_USERS = "discoveryUsers"
    IS_ADMIN = "isAdmin"
    EMPLOYEES = "employees"


def principal_text(value: PrincipalLike) -> str:
    """Stable text form of a principal in any supported representation."""
    return Principal.coerce(value).to_text()


def post_id_text(value: PostIdLike) -> str:
    """Stable text form of a post id (``42``, ``"42"`` and ``"042"`` collide).

    Only integers and decimal digit strings are accepted; floats and
    booleans are rejected rather than coerced.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        post_id = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        post_id = int(value.strip())
    else:
        raise ValidationError("Invalid post id", details={"value": repr(value)})
    if post_id < 0:
        raise ValidationError("Invalid post id", details={"value": repr(value)})
    return str(post_id)


def caller_profile() -> QueryKey:
    return QueryKey(QueryDomain.PROFILE, (CALLER,))


def user_profile(user_id: PrincipalLike) -> QueryKey:
    return QueryKey(QueryDomain.PROFILE, ("user", principal_text(user_id)))


def followers(user_id: PrincipalLike) -> QueryKey:
    return QueryKey(QueryDomain.FOLLOWERS, (principal_text(user_id),))


def feed() -> QueryKey:
    return QueryKey(QueryDomain.FEED)


def posts_by_user(user_id: PrincipalLike) -> QueryKey:
    return QueryKey(QueryDomain.POSTS_BY_USER, (principal_text(user_id),))


def post_comments(post_id: PostIdLike) -> QueryKey:
    return QueryKey(QueryDomain.POST_COMMENTS, (post_id_text(post_id),))


def post_liked(post_id: PostIdLike) -> QueryKey:
    return QueryKey(QueryDomain.POST_LIKED, (CALLER, post_id_text(post_id)))


def conversations() -> QueryKey:
    return QueryKey(QueryDomain.CONVERSATIONS, (CALLER,))


def conversation(a: PrincipalLike, b: PrincipalLike) -> QueryKey:
    """Key for the thread between two participants; argument order is irrelevant."""
    pair = sorted((principal_text(a), principal_text(b)))
    return QueryKey(QueryDomain.CONVERSATION, tuple(pair))


def discovery_users() -> QueryKey:
    return QueryKey(QueryDomain.DISCOVERY_USERS)


def is_admin() -> QueryKey:
    return QueryKey(QueryDomain.IS_ADMIN)


def employees() -> QueryKey:
    return QueryKey(QueryDomain.EMPLOYEES)


def _profile(*args: Any) -> QueryKey:
    if not args or args == (CALLER,):
        return caller_profile()
    if len(args) == 1:
        return user_profile(args[0])
    raise TypeError("profile takes at most one id")


def _post_liked(*args: Any) -> QueryKey:
    # Accept both postLiked(postId) and postLiked(caller, postId).
    return post_liked(args[-1]) if 1 <= len(args) <= 2 else post_liked(*args)


_BUILDERS: Dict[str, Callable[..., QueryKey]] = {
    QueryDomain.PROFILE: _profile,
    QueryDomain.FOLLOWERS: followers,
    QueryDomain.FEED: feed,
    QueryDomain.POSTS_BY_USER: posts_by_user,
    QueryDomain.POST_COMMENTS: post_comments,
    QueryDomain.POST_LIKED: _post_liked,
    QueryDomain.CONVERSATIONS: conversations,
    QueryDomain.CONVERSATION: conversation,
    QueryDomain.DISCOVERY_USERS: discovery_users,
    QueryDomain.IS_ADMIN: is_admin,
    QueryDomain.EMPLOYEES: employees,
}


def key_for(domain: str, *args: Any) -> QueryKey:
    """Build the key for ``domain`` from its scope arguments."""
    builder = _BUILDERS.get(domain)
    if builder is None:
        raise ValidationError(f"Unknown query domain: {domain}", details={"domain": domain})
    try:
        return builder(*args)
    except TypeError as e:
        raise ValidationError(
            f"Wrong arguments for query domain {domain}",
            details={"domain": domain, "args": len(args), "error": str(e)},
        )


def known_domains() -> Tuple[str, ...]:
    return tuple(_BUILDERS)
