"""
Domain models for cached social graph entities.

These are client-side copies only: the remote actor owns every entity.
Models use camelCase wire aliases and snake_case attributes.
"""

from enum import Enum
from typing import Annotated, Any, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, model_validator
from pydantic.alias_generators import to_camel

from .blob import ExternalBlob
from .principal import Principal


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Orientation(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    VERSATILE = "versatile"
    LESBIAN = "lesbian"


class RelationshipStatus(str, Enum):
    FUN = "fun"
    LOOKING = "looking"
    CASUAL = "casual"


class Subscription(str, Enum):
    FREE = "free"
    PRO = "pro"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


def _single_selection(value: Any) -> Any:
    # Wire form is a list of at most one element.
    if isinstance(value, (list, tuple)):
        if len(value) > 1:
            raise ValueError("at most one selection is allowed")
        return value[0] if value else None
    return value


def _selection_to_wire(value: Optional[Enum]) -> List[str]:
    return [value.value] if value is not None else []


PrincipalField = Annotated[
    Principal,
    BeforeValidator(Principal.coerce),
    PlainSerializer(lambda p: p.to_text(), return_type=str),
]

BlobField = Annotated[
    ExternalBlob,
    BeforeValidator(ExternalBlob.coerce),
    PlainSerializer(lambda b: b.get_direct_url(), return_type=str),
]

OptionalBlobField = Annotated[
    Optional[ExternalBlob],
    BeforeValidator(ExternalBlob.coerce),
    PlainSerializer(lambda b: b.get_direct_url() if b is not None else None, return_type=Optional[str]),
]

OrientationSelection = Annotated[
    Optional[Orientation],
    BeforeValidator(_single_selection),
    PlainSerializer(_selection_to_wire, return_type=List[str]),
]

RelationshipSelection = Annotated[
    Optional[RelationshipStatus],
    BeforeValidator(_single_selection),
    PlainSerializer(_selection_to_wire, return_type=List[str]),
]


class WireModel(BaseModel):
    """Base for immutable cached copies of remote entities."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
        frozen=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class UserProfile(WireModel):
    id: PrincipalField
    username: str
    bio: str = ""
    gender: Gender
    city: str
    state: str
    interests: OrientationSelection = None
    looking_for: RelationshipSelection = None
    subscription: Subscription = Subscription.FREE
    is_admin: bool = False
    photo: OptionalBlobField = None
    post_count_daily: int = Field(default=0, ge=0)
    message_count_daily: int = Field(default=0, ge=0)
    last_activity_day: int = Field(default=0, ge=0)

    @property
    def is_pro(self) -> bool:
        return self.subscription == Subscription.PRO


class TextPost(WireModel):
    content: str


class PhotoPost(WireModel):
    photo: BlobField
    caption: str = ""


class PostContent(WireModel):
    """Exactly one of ``text`` or ``photo``."""

    text: Optional[TextPost] = None
    photo: Optional[PhotoPost] = None

    @model_validator(mode="after")
    def _one_variant(self) -> "PostContent":
        if (self.text is None) == (self.photo is None):
            raise ValueError("post content must be either text or photo")
        return self

    @property
    def is_photo(self) -> bool:
        return self.photo is not None


class Post(WireModel):
    id: int = Field(ge=0)
    author: PrincipalField
    content: PostContent
    timestamp: int
    like_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)


class PostComment(WireModel):
    id: int = Field(ge=0)
    post_id: int = Field(ge=0)
    author: PrincipalField
    content: str
    timestamp: int


class Message(WireModel):
    id: int = Field(ge=0)
    sender: PrincipalField
    content: str
    timestamp: int


def _timestamp_of(message: Any) -> int:
    """Sort key for raw or parsed messages; bad timestamps sort first and
    are reported by field validation."""
    raw = message.get("timestamp") if isinstance(message, dict) else getattr(message, "timestamp", None)
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        return 0


class ConversationView(WireModel):
    id: int = Field(ge=0)
    participant1: PrincipalField
    participant2: PrincipalField
    messages: List[Message] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _order_messages(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("messages"), list):
            data = dict(data)
            data["messages"] = sorted(data["messages"], key=_timestamp_of)
        return data

    def partner_of(self, me: Principal) -> Principal:
        return self.participant2 if self.participant1 == me else self.participant1

    @property
    def last_message(self) -> Optional[Message]:
        return self.messages[-1] if self.messages else None


class EmployeeView(WireModel):
    id: PrincipalField
    username: str
    city: str
    state: str
    photo: OptionalBlobField = None
