"""
Domain: checkout snapshots, settlement transactions and purchase records.

A PendingCheckout is what initiate froze: the priced lines and totals the
buyer was quoted. Confirm settles from that snapshot, so the persisted amounts
are exactly what the gateway charged and can be audited without recomputing.

PurchaseRecord.is_used (and menu_is_used for bundled menu items) only ever
moves False -> True, stamped with the redemption time.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from .catalog import IncludedMenuItem, ItemKind, TicketCategory
from .fees import FeeBreakdown, FeeTotals
from .identity import Identity
from .pricing import PricingReason
from .time import require_utc_timestamp


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class RedemptionType(str, Enum):
    TICKET = "ticket"
    MENU = "menu"
    MENU_FROM_TICKET = "menu_from_ticket"


FREE_PROVIDER = "free"


@dataclass(frozen=True, slots=True)
class PricedLine:
    """A cart line frozen with its unit price and fee breakdown."""

    line_id: UUID
    item_id: UUID
    item_name: str
    kind: ItemKind
    venue_id: UUID
    quantity: int
    base_price: Decimal
    fees: FeeBreakdown
    commission_rate: Decimal
    target_date: Optional[date] = None
    variant_id: Optional[UUID] = None
    category: Optional[TicketCategory] = None
    pricing_reason: Optional[PricingReason] = None
    included_menu_items: tuple[IncludedMenuItem, ...] = ()

    @property
    def unit_price(self) -> Decimal:
        return self.fees.price

    @property
    def dynamic_pricing_applied(self) -> bool:
        return self.pricing_reason is not None

    @property
    def line_total(self) -> Decimal:
        return self.fees.total * self.quantity


@dataclass(frozen=True, slots=True)
class PendingCheckout:
    """An initiated checkout waiting for the provider to approve it."""

    reference: str
    identity: Identity
    kind: ItemKind
    buyer_email: str
    venue_id: UUID
    lines: tuple[PricedLine, ...]
    totals: FeeTotals
    created_at: datetime
    target_date: Optional[date] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if not self.lines:
            raise ValueError("PendingCheckout requires at least one line")


@dataclass(frozen=True, slots=True)
class SettlementTransaction:
    """One settled checkout. Amounts are sums of the per-record fee shares."""

    transaction_id: UUID
    identity: Identity
    kind: ItemKind
    venue_id: UUID
    buyer_email: str
    provider: str
    provider_reference: str
    payment_status: PaymentStatus
    total_paid: Decimal
    venue_receives: Decimal
    platform_receives: Decimal
    gateway_fee: Decimal
    gateway_tax: Decimal
    created_at: datetime
    target_date: Optional[date] = None
    qr_token: Optional[str] = None
    is_used: bool = False
    used_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.is_used != (self.used_at is not None):
            raise ValueError("is_used and used_at must be set together")


@dataclass(frozen=True, slots=True)
class PurchaseRecord:
    """
    One ticket unit or one menu line, frozen at checkout.

    Tickets carry their own QR token. Menu records share the transaction's
    token. A ticket with bundled menu items also carries a menu_from_ticket
    token with its own used flag.
    """

    record_id: UUID
    transaction_id: UUID
    kind: ItemKind
    item_id: UUID
    item_name: str
    venue_id: UUID
    quantity: int
    original_base_price: Decimal
    price_at_checkout: Decimal
    dynamic_pricing_applied: bool
    platform_fee: Decimal
    gateway_fee: Decimal
    gateway_tax: Decimal
    total_paid: Decimal
    created_at: datetime
    dynamic_pricing_reason: Optional[PricingReason] = None
    target_date: Optional[date] = None
    variant_id: Optional[UUID] = None
    category: Optional[TicketCategory] = None
    qr_token: Optional[str] = None
    is_used: bool = False
    used_at: Optional[datetime] = None
    included_menu_items: tuple[IncludedMenuItem, ...] = ()
    menu_qr_token: Optional[str] = None
    menu_is_used: bool = False
    menu_used_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1")
        if self.is_used != (self.used_at is not None):
            raise ValueError("is_used and used_at must be set together")
        if self.menu_is_used != (self.menu_used_at is not None):
            raise ValueError("menu_is_used and menu_used_at must be set together")

    @property
    def has_included_menu(self) -> bool:
        return bool(self.included_menu_items)

    def mark_used(self, at: datetime) -> "PurchaseRecord":
        require_utc_timestamp("used_at", at)
        if self.is_used:
            raise ValueError("record already used")
        return replace(self, is_used=True, used_at=at)

    def mark_menu_used(self, at: datetime) -> "PurchaseRecord":
        require_utc_timestamp("menu_used_at", at)
        if self.menu_is_used:
            raise ValueError("included menu already used")
        return replace(self, menu_is_used=True, menu_used_at=at)


@dataclass(frozen=True, slots=True)
class InventoryDecrement:
    item_id: UUID
    quantity: int


@dataclass(frozen=True, slots=True)
class Settlement:
    transaction: SettlementTransaction
    records: tuple[PurchaseRecord, ...]


__all__ = [
    "PaymentStatus",
    "RedemptionType",
    "FREE_PROVIDER",
    "PricedLine",
    "PendingCheckout",
    "SettlementTransaction",
    "PurchaseRecord",
    "InventoryDecrement",
    "Settlement",
]
