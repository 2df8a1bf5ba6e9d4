"""
External blob reference.

Blob storage and upload transport live outside the sync layer. This value
object only carries either inline bytes or a URL, and an optional progress
callback the transport may report to.
"""

import base64
from typing import Any, Callable, Dict, Optional

import httpx

from shared.errors import GatewayUnavailable, ValidationError

ProgressCallback = Callable[[float], None]


class ExternalBlob:
    """Bytes or URL, plus an upload-progress channel."""

    def __init__(
        self,
        *,
        data: Optional[bytes] = None,
        url: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        content_type: str = "application/octet-stream",
    ):
        if (data is None) == (url is None):
            raise ValidationError("Blob needs exactly one of bytes or URL")
        self._data = data
        self._url = url
        self._on_progress = on_progress
        self.content_type = content_type

    @classmethod
    def from_bytes(cls, data: bytes, content_type: str = "application/octet-stream") -> "ExternalBlob":
        return cls(data=bytes(data), content_type=content_type)

    @classmethod
    def from_url(cls, url: str) -> "ExternalBlob":
        return cls(url=url)

    @classmethod
    def coerce(cls, value: Any) -> Optional["ExternalBlob"]:
        """Build a blob from its wire form (a URL or ``{"url": ...}``)."""
        if value is None or isinstance(value, ExternalBlob):
            return value
        if isinstance(value, str):
            return cls.from_url(value)
        if isinstance(value, dict) and value.get("url"):
            return cls.from_url(value["url"])
        raise ValidationError("Unsupported blob representation", details={"type": type(value).__name__})

    def with_upload_progress(self, on_progress: ProgressCallback) -> "ExternalBlob":
        return ExternalBlob(
            data=self._data,
            url=self._url,
            on_progress=on_progress,
            content_type=self.content_type,
        )

    @property
    def size(self) -> Optional[int]:
        """Byte size when known locally."""
        return len(self._data) if self._data is not None else None

    def report_progress(self, percentage: float) -> None:
        if self._on_progress is not None:
            self._on_progress(max(0.0, min(100.0, percentage)))

    async def get_bytes(self) -> bytes:
        if self._data is not None:
            return self._data
        try:
            async with httpx.AsyncClient(timeout=None) as client:
                response = await client.get(self._url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise GatewayUnavailable(f"Blob download failed: {e}", details={"url": self._url})
        return response.content

    def get_direct_url(self) -> str:
        if self._url is not None:
            return self._url
        encoded = base64.b64encode(self._data).decode("ascii")
        return f"data:{self.content_type};base64,{encoded}"

    def to_wire(self) -> Dict[str, Any]:
        if self._url is not None:
            return {"url": self._url}
        return {
            "bytes": base64.b64encode(self._data).decode("ascii"),
            "contentType": self.content_type,
        }

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ExternalBlob):
            return (self._data, self._url) == (other._data, other._url)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self._data, self._url))

    def __repr__(self) -> str:
        if self._url is not None:
            return f"ExternalBlob(url={self._url!r})"
        return f"ExternalBlob(bytes={len(self._data)})"
