"""
Tests for `domain/cart.py`.

Covers the pure cart rules:
- A/B exclusivity, C venue/date consistency, D inventory, E per-person cap,
  F the 30 minute TTL.
- Ticket date rules and menu variant rules applied on add.
- CartLine invariants.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from uuid import uuid4

import pytest

from conftest import FRIDAY, NOW, SATURDAY, THURSDAY
from domain.cart import (
    CartLine,
    check_cart_consistency,
    check_cart_exclusivity,
    check_event_exclusivity,
    check_inventory,
    check_menu_variant,
    check_per_person_limit,
    check_ticket_date,
    is_cart_expired,
    require_quantity,
)
from domain.catalog import ItemKind, TicketCategory
from domain.errors import (
    CartConsistencyError,
    CartExclusivityError,
    ErrorCode,
    InsufficientInventoryError,
    PerPersonLimitError,
    ValidationError,
)
from domain.identity import SessionIdentity


def _line(
    kind=ItemKind.TICKET,
    category=TicketCategory.GENERAL,
    venue_id=None,
    target_date=FRIDAY,
    created_at=NOW,
    quantity=1,
):
    return CartLine(
        line_id=uuid4(),
        identity=SessionIdentity("s-1"),
        kind=kind,
        item_id=uuid4(),
        venue_id=venue_id or uuid4(),
        quantity=quantity,
        created_at=created_at,
        target_date=target_date if kind == ItemKind.TICKET else None,
        category=category if kind == ItemKind.TICKET else None,
    )


def test_cart_line_requires_positive_quantity() -> None:
    with pytest.raises(ValueError):
        _line(quantity=0)


def test_ticket_line_requires_date() -> None:
    with pytest.raises(ValueError):
        _line(target_date=None)


@pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
def test_require_quantity_rejects_non_positive_integers(quantity) -> None:
    with pytest.raises(ValidationError):
        require_quantity(quantity)


# ============================================================================
# A / B
# ============================================================================

def test_ticket_blocked_by_non_empty_menu_cart() -> None:
    with pytest.raises(CartExclusivityError) as exc:
        check_cart_exclusivity(ItemKind.TICKET, [_line(kind=ItemKind.MENU)])

    assert exc.value.blocking == "menu"
    assert exc.value.code == ErrorCode.CART_EXCLUSIVITY


def test_empty_other_cart_allows_add() -> None:
    check_cart_exclusivity(ItemKind.MENU, [])


def test_general_ticket_rejected_next_to_event_ticket() -> None:
    with pytest.raises(CartExclusivityError) as exc:
        check_event_exclusivity(TicketCategory.GENERAL, [_line(category=TicketCategory.EVENT)])

    assert exc.value.blocking == "event"


def test_event_ticket_rejected_next_to_general_ticket() -> None:
    with pytest.raises(CartExclusivityError) as exc:
        check_event_exclusivity(TicketCategory.EVENT, [_line(category=TicketCategory.FREE)])

    assert exc.value.blocking == "free"


def test_event_tickets_can_share_a_cart() -> None:
    check_event_exclusivity(TicketCategory.EVENT, [_line(category=TicketCategory.EVENT)])


# ============================================================================
# C
# ============================================================================

def test_other_venue_is_inconsistent() -> None:
    with pytest.raises(CartConsistencyError) as exc:
        check_cart_consistency(uuid4(), FRIDAY, [_line()])

    assert exc.value.field == "venue_id"


def test_other_date_is_inconsistent() -> None:
    venue_id = uuid4()

    with pytest.raises(CartConsistencyError) as exc:
        check_cart_consistency(venue_id, SATURDAY, [_line(venue_id=venue_id, target_date=FRIDAY)])

    assert exc.value.field == "date"


def test_menu_cart_checks_venue_only() -> None:
    venue_id = uuid4()

    check_cart_consistency(venue_id, None, [_line(kind=ItemKind.MENU, venue_id=venue_id)])


# ============================================================================
# D / E
# ============================================================================

def test_inventory_counts_other_reservations(seed) -> None:
    item = replace(seed.general, inventory_remaining=5)

    check_inventory(item, 3, 2)
    with pytest.raises(InsufficientInventoryError) as exc:
        check_inventory(item, 4, 2)

    assert exc.value.available == 3


def test_inventory_available_never_reported_negative(seed) -> None:
    item = replace(seed.general, inventory_remaining=2)

    with pytest.raises(InsufficientInventoryError) as exc:
        check_inventory(item, 1, 5)

    assert exc.value.available == 0


def test_unlimited_inventory(seed) -> None:
    check_inventory(seed.flat_general, 10_000, 10_000)


def test_per_person_limit(seed) -> None:
    check_per_person_limit(seed.general, 10)
    with pytest.raises(PerPersonLimitError) as exc:
        check_per_person_limit(seed.general, 11)

    assert exc.value.limit == 10


# ============================================================================
# F
# ============================================================================

def test_cart_expires_after_thirty_minutes_from_oldest_line() -> None:
    cart = [_line(created_at=NOW), _line(created_at=NOW + timedelta(minutes=20))]

    assert not is_cart_expired(cart, NOW + timedelta(minutes=30))
    assert is_cart_expired(cart, NOW + timedelta(minutes=30, seconds=1))


def test_empty_cart_never_expires() -> None:
    assert not is_cart_expired([], NOW + timedelta(days=1))


# ============================================================================
# Dates and variants
# ============================================================================

def test_past_date_rejected(seed) -> None:
    with pytest.raises(ValidationError) as exc:
        check_ticket_date(seed.general, THURSDAY - timedelta(days=1), seed.venue, THURSDAY)

    assert exc.value.code == ErrorCode.INVALID_DATE


def test_missing_date_rejected(seed) -> None:
    with pytest.raises(ValidationError):
        check_ticket_date(seed.general, None, seed.venue, THURSDAY)


def test_general_ticket_only_on_open_days(seed) -> None:
    check_ticket_date(seed.general, FRIDAY, seed.venue, THURSDAY)
    with pytest.raises(ValidationError):
        check_ticket_date(seed.general, THURSDAY, seed.venue, THURSDAY)


def test_general_ticket_booking_window(seed) -> None:
    # 2025-07-04 is a Friday, 22 days ahead
    with pytest.raises(ValidationError):
        check_ticket_date(seed.general, date(2025, 7, 4), seed.venue, THURSDAY)
    check_ticket_date(seed.general, date(2025, 6, 28), seed.venue, THURSDAY)


def test_general_ticket_not_on_event_night(seed) -> None:
    with pytest.raises(ValidationError):
        check_ticket_date(seed.general, SATURDAY, seed.venue, THURSDAY, frozenset({SATURDAY}))


def test_event_ticket_only_on_event_date(seed) -> None:
    check_ticket_date(seed.event_ticket, SATURDAY, seed.venue, THURSDAY)
    with pytest.raises(ValidationError):
        check_ticket_date(seed.event_ticket, FRIDAY, seed.venue, THURSDAY)


def test_free_ticket_only_on_available_date(seed) -> None:
    check_ticket_date(seed.free_ticket, FRIDAY, seed.venue, THURSDAY)
    with pytest.raises(ValidationError):
        check_ticket_date(seed.free_ticket, SATURDAY, seed.venue, THURSDAY)


def test_menu_item_with_variants_requires_one(seed) -> None:
    with pytest.raises(ValidationError):
        check_menu_variant(seed.cocktail, None)
    check_menu_variant(seed.cocktail, seed.cocktail.variants[0].variant_id)


def test_menu_item_without_variants_rejects_one(seed) -> None:
    with pytest.raises(ValidationError):
        check_menu_variant(seed.bottle, uuid4())


def test_unknown_variant_rejected(seed) -> None:
    with pytest.raises(ValidationError) as exc:
        check_menu_variant(seed.cocktail, uuid4())

    assert exc.value.code == ErrorCode.ITEM_UNAVAILABLE
