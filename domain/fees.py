"""
Domain: fee waterfall.

Per unit, on top of the effective (post dynamic pricing) price:

    platform_fee     = round(price * commission_rate)
    gateway_fixed    = GATEWAY_FIXED_FEE
    gateway_variable = round((price + platform_fee) * GATEWAY_VARIABLE_RATE)
    gateway_tax      = round((gateway_fixed + gateway_variable) * GATEWAY_TAX_RATE)
    total            = price + platform_fee + gateway_fixed + gateway_variable + gateway_tax

Each component is rounded on its own; totals are sums of rounded components and
are never re-derived from an aggregate. Free units carry no fees at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from .catalog import CatalogItem, ItemKind, TicketCategory
from .money import ZERO, round_money, sum_money

GENERAL_TICKET_COMMISSION = Decimal("0.05")
EVENT_TICKET_COMMISSION = Decimal("0.10")
MENU_COMMISSION = Decimal("0.025")

GATEWAY_FIXED_FEE = Decimal("700.00")
GATEWAY_VARIABLE_RATE = Decimal("0.0265")
GATEWAY_TAX_RATE = Decimal("0.19")


def commission_rate(kind: ItemKind, category: Optional[TicketCategory]) -> Decimal:
    if kind == ItemKind.MENU:
        return MENU_COMMISSION
    if category == TicketCategory.EVENT:
        return EVENT_TICKET_COMMISSION
    return GENERAL_TICKET_COMMISSION


def commission_rate_for(item: CatalogItem) -> Decimal:
    return commission_rate(item.kind, item.category)


@dataclass(frozen=True, slots=True)
class FeeBreakdown:
    """Fee components for one unit. `price` is the effective unit price."""

    price: Decimal
    platform_fee: Decimal
    gateway_fixed_fee: Decimal
    gateway_variable_fee: Decimal
    gateway_tax: Decimal

    @property
    def gateway_fee(self) -> Decimal:
        return self.gateway_fixed_fee + self.gateway_variable_fee

    @property
    def operational_costs(self) -> Decimal:
        """Everything the buyer pays beyond the price itself."""

        return self.platform_fee + self.gateway_fixed_fee + self.gateway_variable_fee + self.gateway_tax

    @property
    def total(self) -> Decimal:
        return self.price + self.operational_costs

    @property
    def is_free(self) -> bool:
        return self.total == ZERO


FREE_UNIT = FeeBreakdown(
    price=ZERO,
    platform_fee=ZERO,
    gateway_fixed_fee=ZERO,
    gateway_variable_fee=ZERO,
    gateway_tax=ZERO,
)


def compute_unit_fees(price: Decimal, rate: Decimal, is_free: bool = False) -> FeeBreakdown:
    """
    Fee waterfall for one unit.

    Args:
        price: Effective unit price.
        rate: Commission rate for the item class (see commission_rate).
        is_free: Free-category tickets skip the gateway even if priced.

    Returns:
        FeeBreakdown with every component rounded independently.

    Example:
        >>> compute_unit_fees(Decimal("14000"), GENERAL_TICKET_COMMISSION).total
        Decimal('15996.56')
    """

    price = round_money(price)
    if is_free or price <= ZERO:
        return FREE_UNIT

    platform_fee = round_money(price * rate)
    gateway_fixed = GATEWAY_FIXED_FEE
    gateway_variable = round_money((price + platform_fee) * GATEWAY_VARIABLE_RATE)
    gateway_tax = round_money((gateway_fixed + gateway_variable) * GATEWAY_TAX_RATE)
    return FeeBreakdown(
        price=price,
        platform_fee=platform_fee,
        gateway_fixed_fee=gateway_fixed,
        gateway_variable_fee=gateway_variable,
        gateway_tax=gateway_tax,
    )


@dataclass(frozen=True, slots=True)
class FeeTotals:
    """Sums of per-unit components for a whole checkout."""

    subtotal: Decimal
    platform_fee: Decimal
    gateway_fee: Decimal
    gateway_tax: Decimal
    total: Decimal

    @property
    def operational_costs(self) -> Decimal:
        return self.total - self.subtotal

    @property
    def venue_receives(self) -> Decimal:
        return self.subtotal


def total_fees(units: Iterable[tuple[FeeBreakdown, int]]) -> FeeTotals:
    """Aggregate (breakdown, quantity) pairs by summing rounded components."""

    subtotal, platform, gateway, tax, total = [], [], [], [], []
    for breakdown, quantity in units:
        subtotal.append(breakdown.price * quantity)
        platform.append(breakdown.platform_fee * quantity)
        gateway.append(breakdown.gateway_fee * quantity)
        tax.append(breakdown.gateway_tax * quantity)
        total.append(breakdown.total * quantity)
    return FeeTotals(
        subtotal=sum_money(subtotal),
        platform_fee=sum_money(platform),
        gateway_fee=sum_money(gateway),
        gateway_tax=sum_money(tax),
        total=sum_money(total),
    )


__all__ = [
    "GENERAL_TICKET_COMMISSION",
    "EVENT_TICKET_COMMISSION",
    "MENU_COMMISSION",
    "GATEWAY_FIXED_FEE",
    "GATEWAY_VARIABLE_RATE",
    "GATEWAY_TAX_RATE",
    "commission_rate",
    "commission_rate_for",
    "FeeBreakdown",
    "FREE_UNIT",
    "compute_unit_fees",
    "FeeTotals",
    "total_fees",
]
