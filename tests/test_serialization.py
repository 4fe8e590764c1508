"""
Tests for `repositories/serialization.py`.

Rows must survive a trip through JSON (what PostgREST actually sends) with
Decimal precision, timezones and enums intact.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from conftest import FRIDAY
from domain.catalog import ItemKind
from repositories.serialization import (
    pending_checkout_from_json,
    pending_checkout_to_json,
    parse_utc_datetime,
    record_to_row,
    row_to_record,
    row_to_transaction,
    transaction_to_row,
)


def _through_json(data):
    return json.loads(json.dumps(data))


def test_pending_checkout_survives_json(cart_service, checkout_service, pending, seed, buyer) -> None:
    cart_service.add(buyer, ItemKind.TICKET, seed.vip.item_id, 2, target_date=FRIDAY)
    reference = checkout_service.initiate(buyer, ItemKind.TICKET, "buyer@example.com").reference
    checkout = pending.get(reference)

    restored = pending_checkout_from_json(_through_json(pending_checkout_to_json(checkout)))

    assert restored == checkout
    assert restored.lines[0].included_menu_items == checkout.lines[0].included_menu_items
    assert str(restored.totals.total) == str(checkout.totals.total)


def test_settlement_rows_survive_json(cart_service, checkout_service, settlements, redemption_service, seed, buyer, bouncer) -> None:
    cart_service.add(buyer, ItemKind.TICKET, seed.vip.item_id, 1, target_date=FRIDAY)
    reference = checkout_service.initiate(buyer, ItemKind.TICKET, "buyer@example.com").reference
    settlement = checkout_service.confirm(buyer, reference).settlement
    redemption_service.consume(settlement.records[0].qr_token, bouncer)
    record = settlements.get_record(settlement.records[0].record_id)

    assert row_to_transaction(_through_json(transaction_to_row(settlement.transaction))) == settlement.transaction
    restored = row_to_record(_through_json(record_to_row(record)))
    assert restored == record
    assert restored.is_used and not restored.menu_is_used


@pytest.mark.parametrize(
    "value",
    [
        "2025-06-12T19:00:00Z",
        "2025-06-12T19:00:00+00:00",
        "2025-06-12T14:00:00-05:00",
        "2025-06-12T19:00:00",
        datetime(2025, 6, 12, 19, 0),
    ],
)
def test_parse_utc_datetime(value) -> None:
    parsed = parse_utc_datetime(value)

    assert parsed == datetime(2025, 6, 12, 19, 0, tzinfo=timezone.utc)
    assert parsed.utcoffset().total_seconds() == 0


def test_parse_utc_datetime_rejects_other_types() -> None:
    with pytest.raises(TypeError):
        parse_utc_datetime(1718218800)
