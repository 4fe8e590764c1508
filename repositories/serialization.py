"""
Row <-> domain conversion shared by the Supabase repositories.

Money travels as strings so Decimal precision survives JSON. Timestamps are
ISO-8601 UTC; Supabase sometimes returns a trailing 'Z'.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID

from domain.cart import CartLine
from domain.catalog import IncludedMenuItem, ItemKind, TicketCategory
from domain.fees import FeeBreakdown, FeeTotals
from domain.identity import identity_from_key
from domain.pricing import PricingReason
from domain.settlement import (
    PaymentStatus,
    PendingCheckout,
    PricedLine,
    PurchaseRecord,
    SettlementTransaction,
)
from domain.time import require_utc_timestamp


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """Parse a Supabase timestamp into a timezone-aware UTC datetime."""

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_optional_datetime(value: Any) -> Optional[datetime]:
    return parse_utc_datetime(value) if value else None


def parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_uuid(value: Any) -> Optional[UUID]:
    return UUID(str(value)) if value else None


def money(value: Any) -> Decimal:
    return Decimal(str(value))


def optional_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def included_to_json(items: tuple[IncludedMenuItem, ...]) -> list[dict[str, Any]]:
    return [
        {
            "menu_item_id": str(item.menu_item_id),
            "quantity": item.quantity,
            "variant_id": optional_str(item.variant_id),
        }
        for item in items
    ]


def included_from_json(rows: Any) -> tuple[IncludedMenuItem, ...]:
    return tuple(
        IncludedMenuItem(
            menu_item_id=UUID(str(row["menu_item_id"])),
            quantity=int(row["quantity"]),
            variant_id=parse_uuid(row.get("variant_id")),
        )
        for row in rows or []
    )


# ============================================================================
# Cart lines
# ============================================================================

def cart_line_to_row(line: CartLine) -> dict[str, Any]:
    return {
        "line_id": str(line.line_id),
        "identity_key": line.identity.key,
        "kind": line.kind.value,
        "item_id": str(line.item_id),
        "venue_id": str(line.venue_id),
        "quantity": line.quantity,
        "target_date": line.target_date.isoformat() if line.target_date else None,
        "variant_id": optional_str(line.variant_id),
        "category": line.category.value if line.category else None,
        "created_at_utc": to_iso_utc(line.created_at, name="created_at"),
    }


def row_to_cart_line(row: Mapping[str, Any]) -> CartLine:
    return CartLine(
        line_id=UUID(str(row["line_id"])),
        identity=identity_from_key(str(row["identity_key"])),
        kind=ItemKind(str(row["kind"])),
        item_id=UUID(str(row["item_id"])),
        venue_id=UUID(str(row["venue_id"])),
        quantity=int(row["quantity"]),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        target_date=parse_date(row.get("target_date")),
        variant_id=parse_uuid(row.get("variant_id")),
        category=TicketCategory(row["category"]) if row.get("category") else None,
    )


# ============================================================================
# Pending checkouts
# ============================================================================

def _fees_to_json(fees: FeeBreakdown) -> dict[str, str]:
    return {
        "price": str(fees.price),
        "platform_fee": str(fees.platform_fee),
        "gateway_fixed_fee": str(fees.gateway_fixed_fee),
        "gateway_variable_fee": str(fees.gateway_variable_fee),
        "gateway_tax": str(fees.gateway_tax),
    }


def _fees_from_json(data: Mapping[str, Any]) -> FeeBreakdown:
    return FeeBreakdown(
        price=money(data["price"]),
        platform_fee=money(data["platform_fee"]),
        gateway_fixed_fee=money(data["gateway_fixed_fee"]),
        gateway_variable_fee=money(data["gateway_variable_fee"]),
        gateway_tax=money(data["gateway_tax"]),
    )


def priced_line_to_json(line: PricedLine) -> dict[str, Any]:
    return {
        "line_id": str(line.line_id),
        "item_id": str(line.item_id),
        "item_name": line.item_name,
        "kind": line.kind.value,
        "venue_id": str(line.venue_id),
        "quantity": line.quantity,
        "base_price": str(line.base_price),
        "fees": _fees_to_json(line.fees),
        "commission_rate": str(line.commission_rate),
        "target_date": line.target_date.isoformat() if line.target_date else None,
        "variant_id": optional_str(line.variant_id),
        "category": line.category.value if line.category else None,
        "pricing_reason": line.pricing_reason.value if line.pricing_reason else None,
        "included_menu_items": included_to_json(line.included_menu_items),
    }


def priced_line_from_json(data: Mapping[str, Any]) -> PricedLine:
    return PricedLine(
        line_id=UUID(str(data["line_id"])),
        item_id=UUID(str(data["item_id"])),
        item_name=str(data["item_name"]),
        kind=ItemKind(str(data["kind"])),
        venue_id=UUID(str(data["venue_id"])),
        quantity=int(data["quantity"]),
        base_price=money(data["base_price"]),
        fees=_fees_from_json(data["fees"]),
        commission_rate=money(data["commission_rate"]),
        target_date=parse_date(data.get("target_date")),
        variant_id=parse_uuid(data.get("variant_id")),
        category=TicketCategory(data["category"]) if data.get("category") else None,
        pricing_reason=PricingReason(data["pricing_reason"]) if data.get("pricing_reason") else None,
        included_menu_items=included_from_json(data.get("included_menu_items")),
    )


def pending_checkout_to_json(checkout: PendingCheckout) -> dict[str, Any]:
    totals = checkout.totals
    return {
        "reference": checkout.reference,
        "identity_key": checkout.identity.key,
        "kind": checkout.kind.value,
        "buyer_email": checkout.buyer_email,
        "venue_id": str(checkout.venue_id),
        "target_date": checkout.target_date.isoformat() if checkout.target_date else None,
        "created_at_utc": to_iso_utc(checkout.created_at, name="created_at"),
        "lines": [priced_line_to_json(line) for line in checkout.lines],
        "totals": {
            "subtotal": str(totals.subtotal),
            "platform_fee": str(totals.platform_fee),
            "gateway_fee": str(totals.gateway_fee),
            "gateway_tax": str(totals.gateway_tax),
            "total": str(totals.total),
        },
    }


def pending_checkout_from_json(data: Mapping[str, Any]) -> PendingCheckout:
    totals = data["totals"]
    return PendingCheckout(
        reference=str(data["reference"]),
        identity=identity_from_key(str(data["identity_key"])),
        kind=ItemKind(str(data["kind"])),
        buyer_email=str(data["buyer_email"]),
        venue_id=UUID(str(data["venue_id"])),
        target_date=parse_date(data.get("target_date")),
        created_at=parse_utc_datetime(data["created_at_utc"]),
        lines=tuple(priced_line_from_json(line) for line in data["lines"]),
        totals=FeeTotals(
            subtotal=money(totals["subtotal"]),
            platform_fee=money(totals["platform_fee"]),
            gateway_fee=money(totals["gateway_fee"]),
            gateway_tax=money(totals["gateway_tax"]),
            total=money(totals["total"]),
        ),
    )


# ============================================================================
# Settlements
# ============================================================================

def transaction_to_row(transaction: SettlementTransaction) -> dict[str, Any]:
    return {
        "transaction_id": str(transaction.transaction_id),
        "identity_key": transaction.identity.key,
        "kind": transaction.kind.value,
        "venue_id": str(transaction.venue_id),
        "buyer_email": transaction.buyer_email,
        "provider": transaction.provider,
        "provider_reference": transaction.provider_reference,
        "payment_status": transaction.payment_status.value,
        "total_paid": str(transaction.total_paid),
        "venue_receives": str(transaction.venue_receives),
        "platform_receives": str(transaction.platform_receives),
        "gateway_fee": str(transaction.gateway_fee),
        "gateway_tax": str(transaction.gateway_tax),
        "target_date": transaction.target_date.isoformat() if transaction.target_date else None,
        "qr_token": transaction.qr_token,
        "is_used": transaction.is_used,
        "used_at_utc": to_iso_utc(transaction.used_at, name="used_at") if transaction.used_at else None,
        "created_at_utc": to_iso_utc(transaction.created_at, name="created_at"),
    }


def row_to_transaction(row: Mapping[str, Any]) -> SettlementTransaction:
    return SettlementTransaction(
        transaction_id=UUID(str(row["transaction_id"])),
        identity=identity_from_key(str(row["identity_key"])),
        kind=ItemKind(str(row["kind"])),
        venue_id=UUID(str(row["venue_id"])),
        buyer_email=str(row["buyer_email"]),
        provider=str(row["provider"]),
        provider_reference=str(row["provider_reference"]),
        payment_status=PaymentStatus(str(row["payment_status"])),
        total_paid=money(row["total_paid"]),
        venue_receives=money(row["venue_receives"]),
        platform_receives=money(row["platform_receives"]),
        gateway_fee=money(row["gateway_fee"]),
        gateway_tax=money(row["gateway_tax"]),
        target_date=parse_date(row.get("target_date")),
        qr_token=row.get("qr_token"),
        is_used=bool(row.get("is_used", False)),
        used_at=parse_optional_datetime(row.get("used_at_utc")),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


def record_to_row(record: PurchaseRecord) -> dict[str, Any]:
    return {
        "record_id": str(record.record_id),
        "transaction_id": str(record.transaction_id),
        "kind": record.kind.value,
        "item_id": str(record.item_id),
        "item_name": record.item_name,
        "venue_id": str(record.venue_id),
        "quantity": record.quantity,
        "original_base_price": str(record.original_base_price),
        "price_at_checkout": str(record.price_at_checkout),
        "dynamic_pricing_applied": record.dynamic_pricing_applied,
        "dynamic_pricing_reason": record.dynamic_pricing_reason.value if record.dynamic_pricing_reason else None,
        "platform_fee": str(record.platform_fee),
        "gateway_fee": str(record.gateway_fee),
        "gateway_tax": str(record.gateway_tax),
        "total_paid": str(record.total_paid),
        "target_date": record.target_date.isoformat() if record.target_date else None,
        "variant_id": optional_str(record.variant_id),
        "category": record.category.value if record.category else None,
        "qr_token": record.qr_token,
        "is_used": record.is_used,
        "used_at_utc": to_iso_utc(record.used_at, name="used_at") if record.used_at else None,
        "included_menu_items": included_to_json(record.included_menu_items),
        "menu_qr_token": record.menu_qr_token,
        "menu_is_used": record.menu_is_used,
        "menu_used_at_utc": to_iso_utc(record.menu_used_at, name="menu_used_at") if record.menu_used_at else None,
        "created_at_utc": to_iso_utc(record.created_at, name="created_at"),
    }


def row_to_record(row: Mapping[str, Any]) -> PurchaseRecord:
    reason = row.get("dynamic_pricing_reason")
    return PurchaseRecord(
        record_id=UUID(str(row["record_id"])),
        transaction_id=UUID(str(row["transaction_id"])),
        kind=ItemKind(str(row["kind"])),
        item_id=UUID(str(row["item_id"])),
        item_name=str(row["item_name"]),
        venue_id=UUID(str(row["venue_id"])),
        quantity=int(row["quantity"]),
        original_base_price=money(row["original_base_price"]),
        price_at_checkout=money(row["price_at_checkout"]),
        dynamic_pricing_applied=bool(row["dynamic_pricing_applied"]),
        dynamic_pricing_reason=PricingReason(reason) if reason else None,
        platform_fee=money(row["platform_fee"]),
        gateway_fee=money(row["gateway_fee"]),
        gateway_tax=money(row["gateway_tax"]),
        total_paid=money(row["total_paid"]),
        target_date=parse_date(row.get("target_date")),
        variant_id=parse_uuid(row.get("variant_id")),
        category=TicketCategory(row["category"]) if row.get("category") else None,
        qr_token=row.get("qr_token"),
        is_used=bool(row.get("is_used", False)),
        used_at=parse_optional_datetime(row.get("used_at_utc")),
        included_menu_items=included_from_json(row.get("included_menu_items")),
        menu_qr_token=row.get("menu_qr_token"),
        menu_is_used=bool(row.get("menu_is_used", False)),
        menu_used_at=parse_optional_datetime(row.get("menu_used_at_utc")),
        created_at=parse_utc_datetime(row["created_at_utc"]),
    )


__all__ = [
    "to_iso_utc",
    "parse_utc_datetime",
    "parse_date",
    "parse_uuid",
    "money",
    "included_from_json",
    "cart_line_to_row",
    "row_to_cart_line",
    "pending_checkout_to_json",
    "pending_checkout_from_json",
    "transaction_to_row",
    "row_to_transaction",
    "record_to_row",
    "row_to_record",
]
