"""
Domain: venue catalog (tickets and menu items).

Catalog administration is not part of this service; these types are the read
model the pricing, cart and checkout rules need. Prices are kept exactly as
stored (possibly missing) so the pricing rules can decide how to treat bad data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from .time import local_datetime, weekday_name


class ItemKind(str, Enum):
    TICKET = "ticket"
    MENU = "menu"


class TicketCategory(str, Enum):
    GENERAL = "general"
    EVENT = "event"
    FREE = "free"


@dataclass(frozen=True, slots=True)
class OpenHours:
    """
    Open/close wall-clock times. `day=None` applies to every open day.

    A close time at or before the open time means the venue closes after
    midnight (21:00-03:00).
    """

    open: time
    close: time
    day: Optional[str] = None

    def interval_on(self, day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
        opens_at = local_datetime(day, self.open, tz)
        close_day = day + timedelta(days=1) if self.close <= self.open else day
        closes_at = local_datetime(close_day, self.close, tz)
        return opens_at, closes_at


@dataclass(frozen=True, slots=True)
class RecurringWindow:
    """Weekly open days ("Friday", "Saturday") plus their open hours."""

    open_days: frozenset[str]
    hours: tuple[OpenHours, ...] = ()

    def hours_for(self, day: date) -> Optional[OpenHours]:
        name = weekday_name(day)
        if name not in self.open_days:
            return None
        generic: Optional[OpenHours] = None
        for entry in self.hours:
            if entry.day == name:
                return entry
            if entry.day is None and generic is None:
                generic = entry
        return generic

    def is_open_on(self, day: date) -> bool:
        return weekday_name(day) in self.open_days


@dataclass(frozen=True, slots=True)
class Venue:
    venue_id: UUID
    name: str
    owner_id: UUID
    window: RecurringWindow
    menu_ordering_enabled: bool = True


@dataclass(frozen=True, slots=True)
class Event:
    """A single-date event with an optional door window."""

    event_id: UUID
    venue_id: UUID
    name: str
    event_date: date
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    is_active: bool = True
    is_deleted: bool = False


@dataclass(frozen=True, slots=True)
class MenuVariant:
    variant_id: UUID
    name: str
    price: Optional[Decimal]
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class IncludedMenuItem:
    """A menu item bundled with a ticket, redeemed with its own QR code."""

    menu_item_id: UUID
    quantity: int
    variant_id: Optional[UUID] = None


@dataclass(frozen=True, slots=True)
class CatalogItem:
    """
    A ticket or a menu item as currently stored.

    Identity (item_id, venue_id, kind, category) never changes; price, flags
    and inventory may change between reads, which is why the cart and checkout
    rules always re-read items instead of trusting earlier snapshots.
    inventory_remaining None means unlimited.
    """

    item_id: UUID
    venue_id: UUID
    name: str
    kind: ItemKind
    base_price: Optional[Decimal]
    dynamic_pricing_enabled: bool = False
    inventory_remaining: Optional[int] = None
    max_per_person: Optional[int] = None
    is_active: bool = True
    is_deleted: bool = False
    category: Optional[TicketCategory] = None
    event: Optional[Event] = None
    available_date: Optional[date] = None
    variants: tuple[MenuVariant, ...] = ()
    included_menu_items: tuple[IncludedMenuItem, ...] = field(default_factory=tuple)

    @property
    def is_purchasable(self) -> bool:
        return self.is_active and not self.is_deleted

    @property
    def is_event_ticket(self) -> bool:
        return self.kind == ItemKind.TICKET and self.category == TicketCategory.EVENT

    @property
    def has_variants(self) -> bool:
        return bool(self.variants)

    def variant(self, variant_id: Optional[UUID]) -> Optional[MenuVariant]:
        if variant_id is None:
            return None
        for candidate in self.variants:
            if candidate.variant_id == variant_id:
                return candidate
        return None

    def base_price_for(self, variant_id: Optional[UUID]) -> Optional[Decimal]:
        """Variant price when a variant is selected, otherwise the item price."""

        chosen = self.variant(variant_id)
        if chosen is not None:
            return chosen.price
        return self.base_price

    def fixed_date(self) -> Optional[date]:
        """The one date an event or free ticket is valid on (None for general tickets)."""

        if self.event is not None:
            return self.event.event_date
        return self.available_date


__all__ = [
    "ItemKind",
    "TicketCategory",
    "OpenHours",
    "RecurringWindow",
    "Venue",
    "Event",
    "MenuVariant",
    "IncludedMenuItem",
    "CatalogItem",
]
