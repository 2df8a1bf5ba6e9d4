"""
Client-side input validation.

Everything here runs before a remote call is attempted, so malformed input
never costs a network round-trip. Validators return the normalized value
that should be sent.
"""

from typing import Any, Optional

from shared.errors import ValidationError
from ..keys.registry import post_id_text
from ..models.blob import ExternalBlob
from ..models.domain import UserProfile
from ..models.principal import Principal


def require_text(value: Optional[str], message: str, field: str) -> str:
    """Return ``value`` stripped, rejecting blank input."""
    text = (value or "").strip()
    if not text:
        raise ValidationError(message, details={"field": field})
    return text


def optional_text(value: Optional[str]) -> Optional[str]:
    text = (value or "").strip()
    return text or None


def parse_principal(value: Any) -> Principal:
    """Parse a principal from user input (text is stripped first)."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValidationError("Please enter a principal ID", details={"field": "principal"})
    return Principal.coerce(value)


def parse_post_id(value: Any) -> int:
    return int(post_id_text(value))


def validate_profile(profile: UserProfile) -> UserProfile:
    """Check required profile fields and return a trimmed copy."""
    username = require_text(profile.username, "Please enter a username", "username")
    city = require_text(profile.city, "Please enter your city", "city")
    state = require_text(profile.state, "Please enter your state", "state")
    if profile.interests is None:
        raise ValidationError("Please select your interests", details={"field": "interests"})
    if profile.looking_for is None:
        raise ValidationError("Please select what you are looking for", details={"field": "lookingFor"})

    return profile.model_copy(update={
        "username": username,
        "bio": profile.bio.strip(),
        "city": city,
        "state": state,
    })


def validate_photo(photo: ExternalBlob, max_bytes: int) -> ExternalBlob:
    """Reject non-image or oversized byte blobs; URL blobs are not inspected."""
    if photo.size is None:
        return photo
    if not photo.content_type.startswith("image/"):
        raise ValidationError(
            "Please select an image file",
            details={"field": "photo", "content_type": photo.content_type},
        )
    if photo.size > max_bytes:
        raise ValidationError(
            f"Image size must be less than {max_bytes // (1024 * 1024)}MB",
            details={"field": "photo", "size": photo.size, "max_bytes": max_bytes},
        )
    return photo
