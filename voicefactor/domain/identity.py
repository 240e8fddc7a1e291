"""Authenticated identity passed into enrollment and verification.

The engine never trusts a user id taken from a request payload. Callers must
hand over an ``AuthenticatedIdentity`` built by the session/credential layer
after the username+password step succeeded.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from voicefactor.domain.exceptions import MissingIdentityError


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """User identity vouched for by the authenticated session."""

    user_id: str
    session_id: str | None = None
    authenticated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def require_identity(identity: AuthenticatedIdentity | None) -> str:
    """Return the user id of an authenticated identity.

    Raises:
        MissingIdentityError: If no authenticated identity was provided.
    """
    if not isinstance(identity, AuthenticatedIdentity):
        raise MissingIdentityError("An authenticated identity is required")
    if not identity.user_id or not identity.user_id.strip():
        raise MissingIdentityError("Authenticated identity has an empty user id")
    return identity.user_id
