"""
Domain: buyer and staff identity.

A cart belongs to exactly one identity: an authenticated user or an anonymous
session. The two are modelled as separate types and resolved once per request;
the user id wins when both are present.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from uuid import UUID


@dataclass(frozen=True, slots=True)
class UserIdentity:
    user_id: UUID

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True, slots=True)
class SessionIdentity:
    session_token: str

    def __post_init__(self) -> None:
        if not self.session_token or not self.session_token.strip():
            raise ValueError("session_token must be a non-empty string")

    @property
    def key(self) -> str:
        return f"session:{self.session_token}"


Identity = Union[UserIdentity, SessionIdentity]


def resolve_identity(user_id: Optional[UUID], session_token: Optional[str]) -> Optional[Identity]:
    """
    Resolve the calling identity. Prefers the user id when present.

    Returns None when the request carries neither.
    """

    if user_id is not None:
        return UserIdentity(user_id=user_id)
    if session_token:
        return SessionIdentity(session_token=session_token)
    return None


def identity_from_key(key: str) -> Identity:
    """Inverse of `Identity.key`, used when identities are stored as text."""

    kind, _, value = key.partition(":")
    if kind == "user":
        return UserIdentity(user_id=UUID(value))
    if kind == "session":
        return SessionIdentity(session_token=value)
    raise ValueError(f"Unrecognized identity key: {key!r}")


class StaffRole(str, Enum):
    CUSTOMER = "customer"
    CLUB_OWNER = "clubowner"
    BOUNCER = "bouncer"
    WAITER = "waiter"
    ADMIN = "admin"


@dataclass(frozen=True, slots=True)
class StaffContext:
    """
    Who is scanning a QR code.

    venue_id is the single venue a bouncer or waiter works for. Owners are
    matched against Venue.owner_id instead.
    """

    user_id: UUID
    role: StaffRole
    venue_id: Optional[UUID] = None

    def can_access(self, venue_id: UUID, venue_owner_id: UUID) -> bool:
        if self.role in (StaffRole.BOUNCER, StaffRole.WAITER):
            return self.venue_id is not None and self.venue_id == venue_id
        if self.role == StaffRole.CLUB_OWNER:
            return venue_owner_id == self.user_id
        return False


__all__ = [
    "UserIdentity",
    "SessionIdentity",
    "Identity",
    "resolve_identity",
    "identity_from_key",
    "StaffRole",
    "StaffContext",
]
