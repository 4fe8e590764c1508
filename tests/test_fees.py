"""
Tests for `domain/fees.py` and `domain/money.py`.

Covers:
- Commission rate per item class.
- The per-unit waterfall with independently rounded components.
- Totals are sums of rounded components times quantity.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.catalog import ItemKind, TicketCategory
from domain.fees import (
    EVENT_TICKET_COMMISSION,
    GENERAL_TICKET_COMMISSION,
    MENU_COMMISSION,
    commission_rate,
    compute_unit_fees,
    total_fees,
)
from domain.money import round_money, to_decimal


@pytest.mark.parametrize(
    "kind, category, expected",
    [
        (ItemKind.TICKET, TicketCategory.GENERAL, Decimal("0.05")),
        (ItemKind.TICKET, TicketCategory.FREE, Decimal("0.05")),
        (ItemKind.TICKET, TicketCategory.EVENT, Decimal("0.10")),
        (ItemKind.MENU, None, Decimal("0.025")),
    ],
)
def test_commission_rate_by_item_class(kind, category, expected) -> None:
    assert commission_rate(kind, category) == expected


def test_general_ticket_waterfall() -> None:
    """14000 general ticket: the discounted price from a closed-day quote."""

    fees = compute_unit_fees(Decimal("14000"), GENERAL_TICKET_COMMISSION)

    assert fees.price == Decimal("14000.00")
    assert fees.platform_fee == Decimal("700.00")
    assert fees.gateway_fixed_fee == Decimal("700.00")
    assert fees.gateway_variable_fee == Decimal("389.55")
    assert fees.gateway_tax == Decimal("207.01")
    assert fees.gateway_fee == Decimal("1089.55")
    assert fees.operational_costs == Decimal("1996.56")
    assert fees.total == Decimal("15996.56")


def test_event_ticket_waterfall() -> None:
    fees = compute_unit_fees(Decimal("60000"), EVENT_TICKET_COMMISSION)

    assert fees.platform_fee == Decimal("6000.00")
    assert fees.gateway_variable_fee == Decimal("1749.00")
    assert fees.gateway_tax == Decimal("465.31")
    assert fees.total == Decimal("68914.31")


def test_menu_waterfall_rounds_tax_half_up() -> None:
    """(700 + 3259.50) * 0.19 = 752.305 -> 752.31."""

    fees = compute_unit_fees(Decimal("120000"), MENU_COMMISSION)

    assert fees.platform_fee == Decimal("3000.00")
    assert fees.gateway_variable_fee == Decimal("3259.50")
    assert fees.gateway_tax == Decimal("752.31")
    assert fees.total == Decimal("127711.81")


def test_platform_fee_rounds_half_up() -> None:
    assert compute_unit_fees(Decimal("10.10"), GENERAL_TICKET_COMMISSION).platform_fee == Decimal("0.51")


@pytest.mark.parametrize("price", [Decimal("0"), Decimal("-1")])
def test_zero_price_has_no_fees(price) -> None:
    fees = compute_unit_fees(price, GENERAL_TICKET_COMMISSION)

    assert fees.total == Decimal("0.00")
    assert fees.is_free


def test_free_category_skips_fees_even_when_priced() -> None:
    assert compute_unit_fees(Decimal("5000"), GENERAL_TICKET_COMMISSION, is_free=True).total == Decimal("0.00")


def test_total_fees_sums_rounded_components_times_quantity() -> None:
    ticket = compute_unit_fees(Decimal("14000"), GENERAL_TICKET_COMMISSION)
    menu = compute_unit_fees(Decimal("120000"), MENU_COMMISSION)

    totals = total_fees([(ticket, 2), (menu, 1)])

    assert totals.subtotal == Decimal("148000.00")
    assert totals.platform_fee == Decimal("4400.00")
    assert totals.gateway_fee == Decimal("2179.10") + Decimal("3959.50")
    assert totals.gateway_tax == Decimal("414.02") + Decimal("752.31")
    assert totals.total == Decimal("31993.12") + Decimal("127711.81")
    assert totals.venue_receives == totals.subtotal
    assert totals.operational_costs == totals.total - totals.subtotal


def test_total_fees_of_nothing_is_zero() -> None:
    totals = total_fees([])

    assert totals.total == Decimal("0.00")
    assert totals.subtotal == Decimal("0.00")


def test_round_money_is_half_away_from_zero() -> None:
    assert round_money(Decimal("0.005")) == Decimal("0.01")
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("-2.345")) == Decimal("-2.35")


@pytest.mark.parametrize("value", [None, True, "abc", "NaN", "Infinity", float("nan")])
def test_to_decimal_rejects_non_numbers(value) -> None:
    assert to_decimal(value) is None


def test_to_decimal_keeps_float_text() -> None:
    assert to_decimal(0.1) == Decimal("0.1")
