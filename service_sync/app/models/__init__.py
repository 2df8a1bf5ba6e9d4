"""
Data models for the sync client.

- principal: checksummed principal ids and their stable text form
- blob: external blob references consumed by uploads
- domain: pydantic models for profiles, posts, comments and conversations
"""

from .blob import ExternalBlob
from .domain import (
    ConversationView,
    EmployeeView,
    Gender,
    Message,
    Orientation,
    PhotoPost,
    Post,
    PostComment,
    PostContent,
    RelationshipStatus,
    Subscription,
    TextPost,
    UserProfile,
    UserRole,
)
from .principal import Principal, PrincipalLike

__all__ = [
    "ConversationView",
    "EmployeeView",
    "ExternalBlob",
    "Gender",
    "Message",
    "Orientation",
    "PhotoPost",
    "Post",
    "PostComment",
    "PostContent",
    "Principal",
    "PrincipalLike",
    "RelationshipStatus",
    "Subscription",
    "TextPost",
    "UserProfile",
    "UserRole",
]
