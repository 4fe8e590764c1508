"""
Tests for `services/purchase_history_service.py`.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from conftest import FRIDAY, OTHER_OWNER_ID
from domain.catalog import ItemKind
from domain.errors import AccessDeniedError, NotFoundError
from domain.identity import SessionIdentity, StaffContext, StaffRole


def _buy(cart_service, checkout_service, identity, item, kind=ItemKind.TICKET, quantity=1, **kwargs):
    cart_service.add(identity, kind, item.item_id, quantity, **kwargs)
    reference = checkout_service.initiate(identity, kind, "buyer@example.com").reference
    return checkout_service.confirm(identity, reference).settlement


@pytest.fixture
def purchases(cart_service, checkout_service, clock, seed, buyer, guest):
    tickets = _buy(cart_service, checkout_service, buyer, seed.general, quantity=2, target_date=FRIDAY)
    clock.advance(minutes=1)
    menu = _buy(cart_service, checkout_service, buyer, seed.bottle, kind=ItemKind.MENU)
    clock.advance(minutes=1)
    theirs = _buy(
        cart_service,
        checkout_service,
        guest,
        seed.cocktail,
        kind=ItemKind.MENU,
        variant_id=seed.cocktail.variants[0].variant_id,
    )
    return tickets, menu, theirs


def test_lists_own_purchases_newest_first(purchase_history_service, purchases, buyer) -> None:
    tickets, menu, _ = purchases

    listed = purchase_history_service.list_for(buyer)

    assert [s.transaction.transaction_id for s in listed] == [
        menu.transaction.transaction_id,
        tickets.transaction.transaction_id,
    ]
    assert [r.qr_token for r in listed[1].records] == [r.qr_token for r in tickets.records]


def test_list_filters_by_kind(purchase_history_service, purchases, buyer) -> None:
    tickets, _, _ = purchases

    [only] = purchase_history_service.list_for(buyer, ItemKind.TICKET)

    assert only.transaction.transaction_id == tickets.transaction.transaction_id


def test_no_purchases(purchase_history_service) -> None:
    assert purchase_history_service.list_for(SessionIdentity("nobody")) == []


def test_get_own_purchase(purchase_history_service, purchases, buyer) -> None:
    tickets, _, _ = purchases

    settlement = purchase_history_service.get_for(buyer, tickets.transaction.transaction_id)

    assert settlement == tickets


def test_someone_elses_purchase_is_not_found(purchase_history_service, purchases, buyer, guest) -> None:
    _, _, theirs = purchases

    with pytest.raises(NotFoundError):
        purchase_history_service.get_for(buyer, theirs.transaction.transaction_id)
    with pytest.raises(NotFoundError):
        purchase_history_service.get_for(buyer, uuid4())


def test_used_flags_show_in_history(purchase_history_service, redemption_service, purchases, bouncer, buyer) -> None:
    tickets, _, _ = purchases
    redemption_service.consume(tickets.records[0].qr_token, bouncer)

    settlement = purchase_history_service.get_for(buyer, tickets.transaction.transaction_id)

    assert [r.is_used for r in settlement.records] == [True, False]


# ============================================================================
# Venue owners
# ============================================================================

def test_owner_lists_venue_sales(purchase_history_service, purchases, owner, seed) -> None:
    listed = purchase_history_service.list_for_venue(owner, seed.venue.venue_id)

    assert len(listed) == 3
    assert len(purchase_history_service.list_for_venue(owner, seed.venue.venue_id, ItemKind.MENU)) == 2


def test_owner_gets_one_sale(purchase_history_service, purchases, owner, seed) -> None:
    _, _, theirs = purchases

    settlement = purchase_history_service.get_for_venue(owner, seed.venue.venue_id, theirs.transaction.transaction_id)

    assert settlement.transaction.buyer_email == "buyer@example.com"
    with pytest.raises(NotFoundError):
        purchase_history_service.get_for_venue(owner, seed.venue.venue_id, uuid4())


def test_sale_of_another_venue_is_not_found(purchase_history_service, purchases, seed) -> None:
    tickets, _, _ = purchases
    other_owner = StaffContext(user_id=OTHER_OWNER_ID, role=StaffRole.CLUB_OWNER)

    with pytest.raises(NotFoundError):
        purchase_history_service.get_for_venue(
            other_owner, seed.other_venue.venue_id, tickets.transaction.transaction_id
        )


@pytest.mark.parametrize("staff_fixture", ["bouncer", "waiter"])
def test_door_and_bar_staff_cannot_list_sales(purchase_history_service, purchases, seed, request, staff_fixture) -> None:
    staff = request.getfixturevalue(staff_fixture)

    with pytest.raises(AccessDeniedError):
        purchase_history_service.list_for_venue(staff, seed.venue.venue_id)


def test_other_owner_cannot_list_sales(purchase_history_service, purchases, seed) -> None:
    other_owner = StaffContext(user_id=OTHER_OWNER_ID, role=StaffRole.CLUB_OWNER)

    with pytest.raises(AccessDeniedError):
        purchase_history_service.list_for_venue(other_owner, seed.venue.venue_id)


def test_unknown_venue(purchase_history_service, owner) -> None:
    with pytest.raises(NotFoundError):
        purchase_history_service.list_for_venue(owner, uuid4())
