"""
Principal identifiers.

A principal is an opaque byte string rendered in a checksummed, grouped
base32 text form (``aaaaa-aa``, ``2vxsx-fae``, ...). The text form is the
stable representation used for cache keys and on the wire.
"""

import base64
import zlib
from typing import Any, Union

from shared.errors import ValidationError

MAX_PRINCIPAL_BYTES = 29
_GROUP = 5
_ALPHABET = set("abcdefghijklmnopqrstuvwxyz234567")


class Principal:
    """Immutable principal id; equal and hashable by raw bytes."""

    __slots__ = ("_raw",)

    def __init__(self, raw: bytes):
        if len(raw) > MAX_PRINCIPAL_BYTES:
            raise ValidationError(
                "Invalid principal: too long",
                details={"length": len(raw)},
            )
        self._raw = bytes(raw)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Principal":
        return cls(raw)

    @classmethod
    def from_text(cls, text: str) -> "Principal":
        """Parse and verify the textual form."""
        if not isinstance(text, str):
            raise ValidationError("Invalid principal: expected text", details={"value": repr(text)})

        candidate = text.strip().lower()
        compact = candidate.replace("-", "")
        if not compact or not set(compact) <= _ALPHABET:
            raise ValidationError("Invalid principal ID format", details={"value": text})

        padded = compact.upper() + "=" * (-len(compact) % 8)
        try:
            decoded = base64.b32decode(padded)
        except ValueError:
            raise ValidationError("Invalid principal ID format", details={"value": text})

        if len(decoded) < 4:
            raise ValidationError("Invalid principal ID format", details={"value": text})

        checksum, raw = decoded[:4], decoded[4:]
        if zlib.crc32(raw).to_bytes(4, "big") != checksum:
            raise ValidationError("Invalid principal: checksum mismatch", details={"value": text})

        principal = cls(raw)
        if principal.to_text() != candidate:
            raise ValidationError("Invalid principal: not in canonical form", details={"value": text})
        return principal

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(b"\x04")

    @classmethod
    def coerce(cls, value: Any) -> "Principal":
        """Accept a Principal, its text form or its raw bytes."""
        if isinstance(value, Principal):
            return value
        if isinstance(value, (bytes, bytearray)):
            return cls(bytes(value))
        if isinstance(value, str):
            return cls.from_text(value)
        raise ValidationError(
            "Invalid principal: unsupported representation",
            details={"type": type(value).__name__},
        )

    @property
    def raw(self) -> bytes:
        return self._raw

    @property
    def is_anonymous(self) -> bool:
        return self._raw == b"\x04"

    def to_text(self) -> str:
        checksum = zlib.crc32(self._raw).to_bytes(4, "big")
        encoded = base64.b32encode(checksum + self._raw).decode("ascii").lower().rstrip("=")
        return "-".join(encoded[i:i + _GROUP] for i in range(0, len(encoded), _GROUP))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Principal):
            return self._raw == other._raw
        return NotImplemented

    def __lt__(self, other: "Principal") -> bool:
        return self.to_text() < other.to_text()

    def __hash__(self) -> int:
        return hash(self._raw)

    def __str__(self) -> str:
        return self.to_text()

    def __repr__(self) -> str:
        return f"Principal({self.to_text()!r})"


PrincipalLike = Union[Principal, str, bytes]
