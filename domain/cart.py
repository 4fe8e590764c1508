"""
Domain: cart lines and the cart consistency rules.

Every rule is a pure function over the latest persisted state the caller
loaded; the cart service re-reads that state on every mutation, so rules never
see a client-supplied snapshot.

Rules:
- A  exclusivity between the ticket cart and the menu cart of one identity
- B  event tickets occupy the whole ticket cart
- C  one venue (and, for tickets, one target date) per cart
- D  inventory minus quantities reserved in other carts
- E  max per person, after merging with an identical line
- F  a cart older than CART_TTL (age of its oldest line) is expired
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence
from uuid import UUID

from .catalog import CatalogItem, ItemKind, TicketCategory, Venue
from .errors import (
    CartConsistencyError,
    CartExclusivityError,
    ErrorCode,
    InsufficientInventoryError,
    PerPersonLimitError,
    ValidationError,
)
from .identity import Identity
from .time import require_utc_timestamp

CART_TTL = timedelta(minutes=30)
GENERAL_TICKET_BOOKING_WINDOW_DAYS = 21


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One pending selection in a ticket or menu cart.

    Invariants:
    - quantity >= 1
    - created_at is UTC
    - target_date is set for ticket lines only
    - category is a snapshot of the ticket category when the line was added
    """

    line_id: UUID
    identity: Identity
    kind: ItemKind
    item_id: UUID
    venue_id: UUID
    quantity: int
    created_at: datetime
    target_date: Optional[date] = None
    variant_id: Optional[UUID] = None
    category: Optional[TicketCategory] = None

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValueError("quantity must be a positive integer")
        require_utc_timestamp("created_at", self.created_at)
        if self.kind == ItemKind.TICKET and self.target_date is None:
            raise ValueError("ticket lines require a target_date")

    def matches(self, item_id: UUID, variant_id: Optional[UUID], target_date: Optional[date]) -> bool:
        """True when an add for (item, variant, date) merges into this line."""

        return (
            self.item_id == item_id
            and self.variant_id == variant_id
            and self.target_date == target_date
        )

    def with_quantity(self, quantity: int) -> "CartLine":
        return replace(self, quantity=quantity)


def require_quantity(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be a positive whole number")
    return quantity


def other_kind(kind: ItemKind) -> ItemKind:
    return ItemKind.MENU if kind == ItemKind.TICKET else ItemKind.TICKET


# ============================================================================
# Rule A / B: exclusivity
# ============================================================================

def check_cart_exclusivity(kind: ItemKind, other_cart: Sequence[CartLine]) -> None:
    """Rule A. `other_cart` is the identity's cart of the opposite kind."""

    if not other_cart:
        return
    blocking = other_kind(kind)
    raise CartExclusivityError(
        f"You already have {blocking.value} items in your cart. "
        f"Complete or clear that purchase before adding {kind.value} items.",
        blocking=blocking.value,
    )


def check_event_exclusivity(
    category: Optional[TicketCategory], ticket_cart: Sequence[CartLine]
) -> None:
    """Rule B. Event tickets never share a cart with other ticket categories."""

    adding_event = category == TicketCategory.EVENT
    for line in ticket_cart:
        line_is_event = line.category == TicketCategory.EVENT
        if line_is_event and not adding_event:
            raise CartExclusivityError(
                "Your cart contains an event ticket. Event tickets must be purchased on their own.",
                blocking=TicketCategory.EVENT.value,
            )
        if adding_event and not line_is_event:
            blocking = line.category.value if line.category is not None else TicketCategory.GENERAL.value
            raise CartExclusivityError(
                f"Your cart contains {blocking} tickets. Event tickets must be purchased on their own.",
                blocking=blocking,
            )


# ============================================================================
# Rule C: consistency
# ============================================================================

def check_cart_consistency(
    venue_id: UUID, target_date: Optional[date], cart: Iterable[CartLine]
) -> None:
    for line in cart:
        if line.venue_id != venue_id:
            raise CartConsistencyError(
                "All items in your cart must be from the same venue",
                field="venue_id",
            )
        if target_date is not None and line.target_date != target_date:
            raise CartConsistencyError(
                f"All tickets in your cart must be for the same date ({line.target_date})",
                field="date",
            )


# ============================================================================
# Rule D / E: quantities
# ============================================================================

def check_inventory(item: CatalogItem, requested: int, reserved_elsewhere: int) -> None:
    """
    Rule D. `reserved_elsewhere` is the quantity held by every other active
    cart line for the same item and date.
    """

    if item.inventory_remaining is None:
        return
    available = item.inventory_remaining - reserved_elsewhere
    if requested > available:
        raise InsufficientInventoryError(item.name, available)


def check_per_person_limit(item: CatalogItem, quantity: int) -> None:
    """Rule E. `quantity` is the line total after merging."""

    if item.max_per_person is None:
        return
    if quantity > item.max_per_person:
        raise PerPersonLimitError(item.name, item.max_per_person)


# ============================================================================
# Rule F: TTL
# ============================================================================

def cart_age(cart: Sequence[CartLine], now: datetime) -> timedelta:
    """Age of the oldest line; zero for an empty cart."""

    if not cart:
        return timedelta(0)
    oldest = min(line.created_at for line in cart)
    return now - oldest


def is_cart_expired(cart: Sequence[CartLine], now: datetime, ttl: timedelta = CART_TTL) -> bool:
    return bool(cart) and cart_age(cart, now) > ttl


# ============================================================================
# Item / date checks applied on add
# ============================================================================

def check_item_available(item: CatalogItem) -> None:
    if not item.is_purchasable:
        raise ValidationError(f"{item.name} is no longer available", code=ErrorCode.ITEM_UNAVAILABLE)


def check_ticket_date(
    item: CatalogItem,
    target_date: Optional[date],
    venue: Venue,
    today: date,
    event_dates: frozenset[date] = frozenset(),
) -> None:
    """
    Which dates a ticket can be bought for.

    Event and free tickets are valid only on their fixed date. General tickets
    are valid on an open day of the venue, at most
    GENERAL_TICKET_BOOKING_WINDOW_DAYS ahead, and not on a date the venue has
    an active event (`event_dates`).
    """

    if target_date is None:
        raise ValidationError("Tickets require a date", code=ErrorCode.INVALID_DATE)
    if target_date < today:
        raise ValidationError("Cannot select a past date", code=ErrorCode.INVALID_DATE)

    if item.category in (TicketCategory.EVENT, TicketCategory.FREE):
        fixed = item.fixed_date()
        if fixed is None or fixed != target_date:
            raise ValidationError(
                f"{item.name} is only valid on {fixed}", code=ErrorCode.INVALID_DATE
            )
        return

    if (target_date - today).days > GENERAL_TICKET_BOOKING_WINDOW_DAYS:
        raise ValidationError(
            f"Tickets can be bought at most {GENERAL_TICKET_BOOKING_WINDOW_DAYS} days ahead",
            code=ErrorCode.INVALID_DATE,
        )
    if not venue.window.is_open_on(target_date):
        raise ValidationError(
            f"{venue.name} is closed on {target_date}", code=ErrorCode.INVALID_DATE
        )
    if target_date in event_dates:
        raise ValidationError(
            f"{venue.name} has an event on {target_date}; only event tickets are sold that day",
            code=ErrorCode.INVALID_DATE,
        )


def check_menu_variant(item: CatalogItem, variant_id: Optional[UUID]) -> None:
    if item.has_variants:
        if variant_id is None:
            raise ValidationError(f"Choose an option for {item.name}")
        chosen = item.variant(variant_id)
        if chosen is None or not chosen.is_active:
            raise ValidationError(f"Option not available for {item.name}", code=ErrorCode.ITEM_UNAVAILABLE)
    elif variant_id is not None:
        raise ValidationError(f"{item.name} has no options")


__all__ = [
    "CART_TTL",
    "GENERAL_TICKET_BOOKING_WINDOW_DAYS",
    "CartLine",
    "require_quantity",
    "other_kind",
    "check_cart_exclusivity",
    "check_event_exclusivity",
    "check_cart_consistency",
    "check_inventory",
    "check_per_person_limit",
    "cart_age",
    "is_cart_expired",
    "check_item_available",
    "check_ticket_date",
    "check_menu_variant",
]
