"""
Caller identity for an authenticated session.

Identity provisioning happens elsewhere; the sync layer only needs the
caller's principal and, when the bridge requires it, a bearer token.
"""

from dataclasses import dataclass
from typing import Optional

from shared.errors import NotAuthenticated
from ..models.principal import Principal, PrincipalLike


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller context."""

    principal: Principal
    token: Optional[str] = None

    @classmethod
    def of(cls, principal: PrincipalLike, token: Optional[str] = None) -> "CallerIdentity":
        return cls(principal=Principal.coerce(principal), token=token)

    @property
    def principal_text(self) -> str:
        return self.principal.to_text()


def require_identity(identity: Optional[CallerIdentity], action: str) -> CallerIdentity:
    """Fail fast when ``action`` needs a signed-in caller."""
    if identity is None or identity.principal.is_anonymous:
        raise NotAuthenticated(
            f"Sign-in required to {action}",
            details={"action": action},
        )
    return identity
