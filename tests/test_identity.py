"""
Tests for `domain/identity.py`.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from domain.identity import (
    SessionIdentity,
    StaffContext,
    StaffRole,
    UserIdentity,
    identity_from_key,
    resolve_identity,
)


def test_user_id_wins_over_session() -> None:
    user_id = uuid4()

    assert resolve_identity(user_id, "session-1") == UserIdentity(user_id)


def test_session_used_when_anonymous() -> None:
    assert resolve_identity(None, "session-1") == SessionIdentity("session-1")


def test_no_identity() -> None:
    assert resolve_identity(None, None) is None
    assert resolve_identity(None, "") is None


@pytest.mark.parametrize("token", ["", "   "])
def test_session_token_must_not_be_blank(token) -> None:
    with pytest.raises(ValueError):
        SessionIdentity(token)


def test_identity_key_roundtrip() -> None:
    user = UserIdentity(uuid4())
    session = SessionIdentity("abc:def")

    assert identity_from_key(user.key) == user
    assert identity_from_key(session.key) == session
    assert user.key != SessionIdentity(str(user.user_id)).key


def test_unknown_identity_key() -> None:
    with pytest.raises(ValueError):
        identity_from_key("robot:1")


def test_venue_staff_access_only_their_venue() -> None:
    venue_id, owner_id = uuid4(), uuid4()

    for role in (StaffRole.BOUNCER, StaffRole.WAITER):
        assert StaffContext(uuid4(), role, venue_id).can_access(venue_id, owner_id)
        assert not StaffContext(uuid4(), role, uuid4()).can_access(venue_id, owner_id)
        assert not StaffContext(uuid4(), role).can_access(venue_id, owner_id)


def test_owner_access_follows_venue_ownership() -> None:
    venue_id, owner_id = uuid4(), uuid4()

    assert StaffContext(owner_id, StaffRole.CLUB_OWNER).can_access(venue_id, owner_id)
    assert not StaffContext(uuid4(), StaffRole.CLUB_OWNER, venue_id).can_access(venue_id, owner_id)


@pytest.mark.parametrize("role", [StaffRole.ADMIN, StaffRole.CUSTOMER])
def test_other_roles_have_no_venue_access(role) -> None:
    venue_id = uuid4()

    assert not StaffContext(uuid4(), role, venue_id).can_access(venue_id, uuid4())
