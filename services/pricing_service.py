"""
Pricing service for cart lines.

Combines the dynamic price of an item with its fee waterfall. Everything is
recomputed from the current catalog state on every call; nothing is cached,
so what the buyer sees always reflects the present moment.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from domain.catalog import CatalogItem, TicketCategory, Venue
from domain.errors import EventClosedError, NotFoundError
from domain.fees import FeeTotals, commission_rate_for, compute_unit_fees, total_fees
from domain.money import to_decimal
from domain.pricing import PriceQuote, quote_item
from domain.settlement import PricedLine
from repositories.interfaces import CatalogRepository


@dataclass(frozen=True, slots=True)
class CartSummary:
    """Buyer-facing totals for a list of priced lines."""

    subtotal: Decimal
    operational_costs: Decimal
    total: Decimal

    @classmethod
    def from_totals(cls, totals: FeeTotals) -> "CartSummary":
        return cls(
            subtotal=totals.subtotal,
            operational_costs=totals.operational_costs,
            total=totals.total,
        )


class PricingService:
    def __init__(self, catalog: CatalogRepository, tz: ZoneInfo) -> None:
        self._catalog = catalog
        self._tz = tz

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def quote(
        self, item: CatalogItem, venue: Venue, now: datetime, variant_id: Optional[UUID] = None
    ) -> PriceQuote:
        return quote_item(item, venue, now, self._tz, variant_id=variant_id)

    def price_line(
        self,
        *,
        line_id: UUID,
        item: CatalogItem,
        venue: Venue,
        quantity: int,
        now: datetime,
        variant_id: Optional[UUID] = None,
        target_date: Optional[date] = None,
    ) -> PricedLine:
        """
        Price `quantity` units of an item right now.

        Raises:
            EventClosedError: the event started more than the grace period ago.
            InternalError: the stored price is missing or not numeric.
        """

        quote = self.quote(item, venue, now, variant_id)
        if quote.is_blocked:
            raise EventClosedError(item.name)

        rate = commission_rate_for(item)
        fees = compute_unit_fees(quote.price, rate, is_free=item.category == TicketCategory.FREE)
        return PricedLine(
            line_id=line_id,
            item_id=item.item_id,
            item_name=item.name,
            kind=item.kind,
            venue_id=item.venue_id,
            quantity=quantity,
            base_price=to_decimal(item.base_price_for(variant_id)),
            fees=fees,
            commission_rate=rate,
            target_date=target_date,
            variant_id=variant_id,
            category=item.category,
            pricing_reason=quote.reason,
            included_menu_items=item.included_menu_items,
        )

    def load(self, item_id: UUID) -> tuple[CatalogItem, Venue]:
        """Current item and its venue. Raises NotFoundError if either is gone."""

        item = self._catalog.get_item(item_id)
        if item is None:
            raise NotFoundError("Item")
        venue = self._catalog.get_venue(item.venue_id)
        if venue is None:
            raise NotFoundError("Venue")
        return item, venue


def summarize(lines: Iterable[PricedLine]) -> FeeTotals:
    """Checkout totals: sums of rounded per-unit components times quantity."""

    return total_fees((line.fees, line.quantity) for line in lines)


__all__ = ["CartSummary", "PricingService", "summarize"]
