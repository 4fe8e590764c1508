"""
Domain: money arithmetic.

Every amount in the system is a Decimal rounded half away from zero to two
decimal places at each step. Totals are sums of already-rounded components.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimals, half away from zero (ROUND_HALF_UP on Decimal)."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a stored price into a finite Decimal.

    Returns None for anything that is not a finite number (None, "abc", NaN,
    Infinity). Floats go through str() so 0.1 stays 0.1.
    """

    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def sum_money(values: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for value in values:
        total += value
    return round_money(total)


__all__ = ["CENT", "ZERO", "round_money", "to_decimal", "sum_money"]
