"""
Cart service: the ticket cart and the menu cart of one identity.

Every mutation re-reads the identity's carts and the item from storage and
re-validates the cart rules against that state; clients never submit cart
snapshots. Concurrent mutations from two devices are last-write-wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional
from uuid import UUID, uuid4

from domain.cart import (
    CART_TTL,
    CartLine,
    check_cart_consistency,
    check_cart_exclusivity,
    check_event_exclusivity,
    check_inventory,
    check_item_available,
    check_menu_variant,
    check_per_person_limit,
    check_ticket_date,
    is_cart_expired,
    other_kind,
    require_quantity,
)
from domain.catalog import ItemKind, TicketCategory
from domain.errors import (
    ErrorCode,
    EventClosedError,
    NotFoundError,
    OwnershipError,
    ValidationError,
)
from domain.identity import Identity
from domain.pricing import PricingReason
from domain.settlement import PricedLine
from domain.time import local_today, utc_now
from repositories.interfaces import CartRepository, CatalogRepository
from services.pricing_service import CartSummary, PricingService, summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CartLineView:
    """
    A cart line decorated with its price at the moment of listing.

    available=False (with a message) when the item was removed, deactivated
    or its event has closed; such lines are excluded from the summary.
    """

    line: CartLine
    item_name: str
    available: bool
    base_price: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    unit_total: Optional[Decimal] = None
    line_total: Optional[Decimal] = None
    pricing_reason: Optional[PricingReason] = None
    message: Optional[str] = None

    @property
    def dynamic_pricing_applied(self) -> bool:
        return self.pricing_reason is not None


@dataclass(frozen=True, slots=True)
class CartView:
    kind: ItemKind
    lines: List[CartLineView]
    summary: CartSummary
    expires_at: Optional[datetime]

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartService:
    def __init__(
        self,
        catalog: CatalogRepository,
        carts: CartRepository,
        pricing: PricingService,
        clock: Callable[[], datetime] = utc_now,
        ttl: timedelta = CART_TTL,
    ) -> None:
        self._catalog = catalog
        self._carts = carts
        self._pricing = pricing
        self._clock = clock
        self._ttl = ttl

    def _current_lines(self, identity: Identity, kind: ItemKind, now: datetime) -> List[CartLine]:
        """Lines of a cart, purging it first if its TTL elapsed."""

        lines = self._carts.list_lines(identity, kind)
        if is_cart_expired(lines, now, self._ttl):
            removed = self._carts.clear(identity, kind)
            logger.info(
                "Purged expired cart",
                extra={"identity": identity.key, "kind": kind.value, "lines": removed},
            )
            return []
        return lines

    def _owned_line(self, identity: Identity, line_id: UUID) -> CartLine:
        line = self._carts.get_line(line_id)
        if line is None:
            raise NotFoundError("Cart item")
        if line.identity != identity:
            raise OwnershipError()
        return line

    def add(
        self,
        identity: Identity,
        kind: ItemKind,
        item_id: UUID,
        quantity: int,
        target_date: Optional[date] = None,
        variant_id: Optional[UUID] = None,
    ) -> CartLine:
        """
        Add an item, merging into an identical (item, variant, date) line.

        Raises:
            ValidationError (or a subclass): any cart rule is violated.
            EventClosedError: the event is past its grace period.
            InternalError: the item's stored price is unusable.
        """

        quantity = require_quantity(quantity)
        now = self._clock()
        item, venue = self._pricing.load(item_id)
        if item.kind != kind:
            raise ValidationError(f"{item.name} cannot be added to the {kind.value} cart")
        check_item_available(item)

        check_cart_exclusivity(kind, self._current_lines(identity, other_kind(kind), now))
        cart = self._current_lines(identity, kind, now)

        if kind == ItemKind.TICKET:
            if variant_id is not None:
                raise ValidationError("Tickets have no options")
            event_dates = (
                self._catalog.list_event_dates(venue.venue_id)
                if item.category == TicketCategory.GENERAL
                else frozenset()
            )
            check_ticket_date(item, target_date, venue, local_today(now, self._pricing.tz), event_dates)
            check_event_exclusivity(item.category, cart)
            check_cart_consistency(venue.venue_id, target_date, cart)
        else:
            target_date = None
            if not venue.menu_ordering_enabled:
                raise ValidationError(
                    f"{venue.name} is not taking menu orders", code=ErrorCode.ITEM_UNAVAILABLE
                )
            check_menu_variant(item, variant_id)
            check_cart_consistency(venue.venue_id, None, cart)

        if self._pricing.quote(item, venue, now, variant_id).is_blocked:
            raise EventClosedError(item.name)

        existing = next((line for line in cart if line.matches(item_id, variant_id, target_date)), None)
        new_quantity = quantity + (existing.quantity if existing is not None else 0)
        check_per_person_limit(item, new_quantity)
        reserved = self._carts.reserved_quantity(
            item_id,
            target_date,
            now - self._ttl,
            exclude_line_id=existing.line_id if existing is not None else None,
        )
        check_inventory(item, new_quantity, reserved)

        if existing is not None:
            line = existing.with_quantity(new_quantity)
        else:
            line = CartLine(
                line_id=uuid4(),
                identity=identity,
                kind=kind,
                item_id=item.item_id,
                venue_id=venue.venue_id,
                quantity=new_quantity,
                created_at=now,
                target_date=target_date,
                variant_id=variant_id,
                category=item.category,
            )
        return self._carts.save_line(line)

    def update_quantity(self, identity: Identity, line_id: UUID, quantity: int) -> CartLine:
        """Set a line's quantity, re-checking exclusivity, inventory and the per-person cap."""

        quantity = require_quantity(quantity)
        now = self._clock()
        line = self._owned_line(identity, line_id)
        if not any(current.line_id == line.line_id for current in self._current_lines(identity, line.kind, now)):
            raise NotFoundError("Cart item")
        check_cart_exclusivity(line.kind, self._current_lines(identity, other_kind(line.kind), now))

        item, venue = self._pricing.load(line.item_id)
        check_item_available(item)
        if self._pricing.quote(item, venue, now, line.variant_id).is_blocked:
            raise EventClosedError(item.name)

        check_per_person_limit(item, quantity)
        reserved = self._carts.reserved_quantity(
            line.item_id, line.target_date, now - self._ttl, exclude_line_id=line.line_id
        )
        check_inventory(item, quantity, reserved)
        return self._carts.save_line(line.with_quantity(quantity))

    def remove(self, identity: Identity, line_id: UUID) -> None:
        line = self._owned_line(identity, line_id)
        self._carts.delete_line(line.line_id)

    def clear(self, identity: Identity, kind: ItemKind) -> int:
        return self._carts.clear(identity, kind)

    def list(self, identity: Identity, kind: ItemKind) -> CartView:
        """Read-only view with every line priced as of now."""

        now = self._clock()
        lines = self._carts.list_lines(identity, kind)
        views: List[CartLineView] = []
        priced: List[PricedLine] = []

        for line in lines:
            try:
                item, venue = self._pricing.load(line.item_id)
            except NotFoundError as e:
                views.append(CartLineView(line=line, item_name="", available=False, message=e.message))
                continue
            try:
                check_item_available(item)
                priced_line = self._pricing.price_line(
                    line_id=line.line_id,
                    item=item,
                    venue=venue,
                    quantity=line.quantity,
                    now=now,
                    variant_id=line.variant_id,
                    target_date=line.target_date,
                )
            except (ValidationError, EventClosedError) as e:
                views.append(CartLineView(line=line, item_name=item.name, available=False, message=e.message))
                continue

            priced.append(priced_line)
            views.append(
                CartLineView(
                    line=line,
                    item_name=priced_line.item_name,
                    available=True,
                    base_price=priced_line.base_price,
                    unit_price=priced_line.unit_price,
                    unit_total=priced_line.fees.total,
                    line_total=priced_line.line_total,
                    pricing_reason=priced_line.pricing_reason,
                )
            )

        expires_at = min(line.created_at for line in lines) + self._ttl if lines else None
        return CartView(
            kind=kind,
            lines=views,
            summary=CartSummary.from_totals(summarize(priced)),
            expires_at=expires_at,
        )


__all__ = ["CartLineView", "CartView", "CartService"]
