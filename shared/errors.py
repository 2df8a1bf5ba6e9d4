"""
Shared error handling for the social graph sync layer.

Every failure that leaves the sync layer is one of the closed ``ErrorKind``
variants below. Remote rejections arrive as plain text; they are classified
exactly once, at the gateway boundary, by ``classify_rejection``.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    DUPLICATE_ACTION = "DUPLICATE_ACTION"
    PLAN_RESTRICTED = "PLAN_RESTRICTED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    REMOTE_FAILURE = "REMOTE_FAILURE"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    notification: str
    details: Dict[str, Any] = {}


class SyncLayerError(Exception):
    """Base exception for the sync layer."""

    kind: ErrorKind = ErrorKind.REMOTE_FAILURE

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        notification: Optional[str] = None,
    ):
        self.code = self.kind.value
        self.message = message
        self.details = details or {}
        self.notification = notification or message
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            notification=self.notification,
            details=self.details,
        )


class NotAuthenticated(SyncLayerError):
    """No identity is present for an operation that needs one."""

    kind = ErrorKind.NOT_AUTHENTICATED

    def __init__(self, message: str = "Not authenticated", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, notification="Please sign in to continue")


class GatewayUnavailable(SyncLayerError):
    """No remote connection is established, or the transport failed."""

    kind = ErrorKind.GATEWAY_UNAVAILABLE

    def __init__(self, message: str = "Actor not available", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, notification="Service unavailable, please try again")


class QuotaExceeded(SyncLayerError):
    """A free-tier daily limit was hit."""

    kind = ErrorKind.QUOTA_EXCEEDED

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        quota: Optional[str] = None,
    ):
        details = dict(details or {})
        quota = quota or details.get("quota") or "post"
        details["quota"] = quota
        super().__init__(
            message,
            details,
            notification=f"Daily {quota} limit reached. Check your plan for details.",
        )


class DuplicateAction(SyncLayerError):
    """The remote side rejected a repeated action."""

    kind = ErrorKind.DUPLICATE_ACTION

    def __init__(self, message: str = "Already liked", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, notification="You already liked this post")


class PlanRestricted(SyncLayerError):
    """The action needs the Pro subscription tier."""

    kind = ErrorKind.PLAN_RESTRICTED

    def __init__(self, message: str = "Only Pro users", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message,
            details,
            notification="This feature is available for Pro users only.",
        )


class ValidationError(SyncLayerError):
    """Malformed input, detected client-side or reported by the backend."""

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class RemoteFailure(SyncLayerError):
    """Any other remote rejection; carries the raw message."""

    kind = ErrorKind.REMOTE_FAILURE

    def __init__(self, message: str = "Remote call failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


# Order matters: the first matching substring wins. The third element holds
# extra constructor arguments for the matched kind.
REJECTION_PATTERNS = (
    ("Daily message limit reached", QuotaExceeded, {"quota": "message"}),
    ("Daily post limit reached", QuotaExceeded, {"quota": "post"}),
    ("Already liked", DuplicateAction, {}),
    ("Only Pro users", PlanRestricted, {}),
    ("Invalid principal", ValidationError, {}),
)


def classify_rejection(text: Optional[str], details: Optional[Dict[str, Any]] = None) -> SyncLayerError:
    """Map a raw remote rejection message onto a tagged error."""
    raw = text or "Remote call failed"
    for needle, error_cls, extra in REJECTION_PATTERNS:
        if needle in raw:
            return error_cls(raw, details, **extra)
    return RemoteFailure(raw, details)


def classify_error(exc: BaseException) -> SyncLayerError:
    """Return ``exc`` if already classified, otherwise classify its text."""
    if isinstance(exc, SyncLayerError):
        return exc
    return classify_rejection(str(exc), {"exception": type(exc).__name__})
