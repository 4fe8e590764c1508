"""
Domain: dynamic pricing.

Two time references drive the price of a catalog item:

- Recurring window (general tickets, menu items): the next open/close interval
  at or after `now`, scanning up to LOOKAHEAD_DAYS ahead.
    inside the interval            -> base price
    opens in more than 180 minutes -> 30% off (closed_day)
    opens within 0-180 minutes     -> 10% off (early)
    no interval in the lookahead   -> 30% off (closed_day)
  Result clamped to [0, base] and rounded to 2 decimals.

- Event start (event tickets): whole hours until the event starts.
    >= 48h          -> 30% off (event_advance)
    24h to 48h      -> base price
    0h to 24h       -> 20% surcharge (event_last_minute)
    started <= 1h   -> 30% surcharge (event_grace_period)
    started > 1h    -> purchase blocked (price None, distinct from 0)

Price and reason come out of the same computation so they can never disagree.
Invalid prices or naive timestamps fail open: the base price comes back
unchanged. The grace/expiry check is never skipped for event tickets.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from .catalog import CatalogItem, RecurringWindow, Venue
from .errors import InternalError
from .money import ZERO, round_money, to_decimal
from .time import local_datetime, local_today, weekday_name

CLOSED_DAY_MULTIPLIER = Decimal("0.7")
EARLY_MULTIPLIER = Decimal("0.9")
EARLY_WINDOW_MINUTES = 180
LOOKAHEAD_DAYS = 7

EVENT_ADVANCE_HOURS = 48
EVENT_LAST_MINUTE_HOURS = 24
EVENT_ADVANCE_MULTIPLIER = Decimal("0.7")
EVENT_LAST_MINUTE_MULTIPLIER = Decimal("1.2")
EVENT_GRACE_MULTIPLIER = Decimal("1.3")
EVENT_GRACE_PERIOD = timedelta(hours=1)


class PricingReason(str, Enum):
    CLOSED_DAY = "closed_day"
    EARLY = "early"
    EVENT_ADVANCE = "event_advance"
    EVENT_LAST_MINUTE = "event_last_minute"
    EVENT_GRACE_PERIOD = "event_grace_period"
    EVENT_CLOSED = "event_closed"


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """Effective unit price plus why it differs from the base (None = unchanged)."""

    price: Optional[Decimal]
    reason: Optional[PricingReason] = None

    @property
    def is_blocked(self) -> bool:
        return self.price is None

    @property
    def dynamic_pricing_applied(self) -> bool:
        return self.reason is not None and not self.is_blocked


PURCHASE_BLOCKED = PriceQuote(price=None, reason=PricingReason.EVENT_CLOSED)


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.utcoffset() is not None


def next_open_interval(
    window: RecurringWindow, now: datetime, tz: ZoneInfo
) -> Optional[tuple[datetime, datetime]]:
    """
    First open/close interval whose close is after `now`.

    Starts from yesterday so an overnight interval that is still running
    (opened 21:00 yesterday, closes 03:00 today) is found.
    """

    today = local_today(now, tz)
    for offset in range(-1, LOOKAHEAD_DAYS + 1):
        day = today + timedelta(days=offset)
        hours = window.hours_for(day)
        if hours is None:
            continue
        opens_at, closes_at = hours.interval_on(day, tz)
        if closes_at > now:
            return opens_at, closes_at
    return None


def compute_recurring_price(
    base_price: Decimal, window: RecurringWindow, now: datetime, tz: ZoneInfo
) -> PriceQuote:
    amount = to_decimal(base_price)
    if amount is None or not _is_aware(now):
        return PriceQuote(price=base_price)
    if amount <= 0:
        return PriceQuote(price=ZERO)

    interval = next_open_interval(window, now, tz)
    if interval is None:
        multiplier, reason = CLOSED_DAY_MULTIPLIER, PricingReason.CLOSED_DAY
    else:
        opens_at, _ = interval
        if opens_at <= now:
            return PriceQuote(price=amount)
        minutes_until_open = int((opens_at - now).total_seconds() // 60)
        if minutes_until_open > EARLY_WINDOW_MINUTES:
            multiplier, reason = CLOSED_DAY_MULTIPLIER, PricingReason.CLOSED_DAY
        else:
            multiplier, reason = EARLY_MULTIPLIER, PricingReason.EARLY

    price = round_money(amount * multiplier)
    price = min(max(price, ZERO), amount)
    return PriceQuote(price=price, reason=reason)


def compute_event_price(base_price: Decimal, starts_at: datetime, now: datetime) -> PriceQuote:
    if not _is_aware(now) or not _is_aware(starts_at):
        return PriceQuote(price=base_price)

    until_start = starts_at - now
    if until_start < timedelta(0):
        if -until_start > EVENT_GRACE_PERIOD:
            return PURCHASE_BLOCKED
        multiplier, reason = EVENT_GRACE_MULTIPLIER, PricingReason.EVENT_GRACE_PERIOD
    else:
        hours_until = int(until_start.total_seconds() // 3600)
        if hours_until >= EVENT_ADVANCE_HOURS:
            multiplier, reason = EVENT_ADVANCE_MULTIPLIER, PricingReason.EVENT_ADVANCE
        elif hours_until >= EVENT_LAST_MINUTE_HOURS:
            multiplier, reason = Decimal("1"), None
        else:
            multiplier, reason = EVENT_LAST_MINUTE_MULTIPLIER, PricingReason.EVENT_LAST_MINUTE

    amount = to_decimal(base_price)
    if amount is None:
        return PriceQuote(price=base_price)
    if amount <= 0:
        return PriceQuote(price=ZERO)
    if reason is None:
        return PriceQuote(price=amount)
    return PriceQuote(price=round_money(amount * multiplier), reason=reason)


def _fallback_open_time(window: RecurringWindow, day: date) -> Optional[time]:
    name = weekday_name(day)
    for entry in window.hours:
        if entry.day == name:
            return entry.open
    for entry in window.hours:
        if entry.day is None:
            return entry.open
    return window.hours[0].open if window.hours else None


def event_start(item: CatalogItem, venue: Venue, tz: ZoneInfo) -> Optional[datetime]:
    """
    Start instant of an event ticket.

    Event date + event open time, falling back to the venue's usual open time
    for that day, then to midnight. None when the ticket has no date at all.
    """

    event_date = item.fixed_date()
    if event_date is None:
        return None
    opens = item.event.open_time if item.event is not None else None
    if opens is None:
        opens = _fallback_open_time(venue.window, event_date)
    return local_datetime(event_date, opens or time(0, 0), tz)


def quote_item(
    item: CatalogItem,
    venue: Venue,
    now: datetime,
    tz: ZoneInfo,
    variant_id=None,
) -> PriceQuote:
    """
    Effective unit price of a catalog item right now.

    Raises InternalError when the stored price is missing or not a number;
    that is a data bug, not something a buyer can fix.
    """

    amount = to_decimal(item.base_price_for(variant_id))
    if amount is None:
        raise InternalError(f"catalog item {item.item_id} has no valid price")

    if item.is_event_ticket:
        starts_at = event_start(item, venue, tz)
        if starts_at is None:
            return PriceQuote(price=amount)
        quote = compute_event_price(amount, starts_at, now)
        if item.dynamic_pricing_enabled or quote.is_blocked:
            return quote
        return PriceQuote(price=amount)

    if item.dynamic_pricing_enabled:
        return compute_recurring_price(amount, venue.window, now, tz)
    return PriceQuote(price=amount)


__all__ = [
    "PricingReason",
    "PriceQuote",
    "PURCHASE_BLOCKED",
    "next_open_interval",
    "compute_recurring_price",
    "compute_event_price",
    "event_start",
    "quote_item",
]
