"""
Checkout orchestrator: two-phase initiate -> confirm.

Initiate is side-effect free apart from the provider's pending charge and a
PendingCheckout snapshot (TTL store): it prices the cart, asks the provider
for a transaction reference and returns it with the total. Inventory and the
cart are untouched.

Confirm asks the provider for the outcome and, once approved, settles from
the snapshot in one atomic unit of work (inventory decrement + transaction +
records), then clears the cart and notifies the buyer. It is idempotent per
provider reference: a second confirm returns the existing settlement.

Free carts (total 0) skip the provider and settle during initiate.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional
from uuid import UUID, uuid4

from domain.cart import (
    CART_TTL,
    check_cart_consistency,
    check_cart_exclusivity,
    check_inventory,
    check_item_available,
    is_cart_expired,
    other_kind,
)
from domain.catalog import ItemKind
from domain.errors import (
    CartExpiredError,
    ErrorCode,
    EventClosedError,
    InsufficientInventoryError,
    InternalError,
    PaymentDeclinedError,
    PaymentProviderError,
    PaymentTimeoutError,
    ValidationError,
)
from domain.fees import FeeTotals
from domain.identity import Identity, SessionIdentity
from domain.money import ZERO
from domain.settlement import (
    FREE_PROVIDER,
    InventoryDecrement,
    PaymentStatus,
    PendingCheckout,
    PricedLine,
    PurchaseRecord,
    RedemptionType,
    Settlement,
    SettlementTransaction,
)
from domain.time import utc_now
from repositories.interfaces import (
    CartRepository,
    CatalogRepository,
    DuplicateSettlementError,
    PendingCheckoutStore,
    SettlementRepository,
)
from services.notification_service import NotificationSender, notify_settlement
from services.payment_provider import PaymentProvider, ProviderStatus, wait_for_final_status
from services.pricing_service import PricingService, summarize
from services.qr_service import QRCodec, QRPayload

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TAGS = re.compile(r"<[^>]*>?")
_CONTROL = re.compile(r"[\x00-\x1f\x7f]")
_QUOTES = re.compile(r"[\"'`;]")


def sanitize_email(value: Any) -> Optional[str]:
    """Trim, strip markup and quote characters, lowercase. None if not an email."""

    if not isinstance(value, str):
        return None
    cleaned = _QUOTES.sub("", _CONTROL.sub("", _TAGS.sub("", value.strip()))).lower()
    if not _EMAIL_PATTERN.match(cleaned):
        return None
    return cleaned


@dataclass(frozen=True, slots=True)
class InitiateResult:
    """
    reference: provider transaction reference to confirm with
    total: amount the buyer pays
    settlement: already settled (free carts only)
    """

    reference: str
    total: Decimal
    totals: FeeTotals
    lines: List[PricedLine]
    settlement: Optional[Settlement] = None

    @property
    def is_free(self) -> bool:
        return self.settlement is not None


@dataclass(frozen=True, slots=True)
class ConfirmResult:
    settlement: Settlement
    already_processed: bool = False


class CheckoutService:
    def __init__(
        self,
        catalog: CatalogRepository,
        carts: CartRepository,
        settlements: SettlementRepository,
        pending: PendingCheckoutStore,
        provider: PaymentProvider,
        pricing: PricingService,
        qr: QRCodec,
        notifier: NotificationSender,
        clock: Callable[[], datetime] = utc_now,
        cart_ttl: timedelta = CART_TTL,
        pending_ttl: timedelta = timedelta(minutes=30),
        poll_timeout_seconds: float = 30.0,
        poll_interval_seconds: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
        disposable_email_domains: frozenset[str] = frozenset(),
    ) -> None:
        self._catalog = catalog
        self._carts = carts
        self._settlements = settlements
        self._pending = pending
        self._provider = provider
        self._pricing = pricing
        self._qr = qr
        self._notifier = notifier
        self._clock = clock
        self._cart_ttl = cart_ttl
        self._pending_ttl = pending_ttl
        self._poll_timeout = poll_timeout_seconds
        self._poll_interval = poll_interval_seconds
        self._sleep = sleep
        self._disposable = disposable_email_domains

    # ------------------------------------------------------------------
    # Initiate
    # ------------------------------------------------------------------

    def _buyer_email(self, identity: Identity, buyer_email: Any) -> str:
        email = sanitize_email(buyer_email)
        if email is None:
            raise ValidationError("A valid email address is required")
        if isinstance(identity, SessionIdentity):
            domain = email.rsplit("@", 1)[1]
            if domain in self._disposable:
                raise ValidationError("Disposable email addresses are not allowed")
        return email

    def _price_cart(self, identity: Identity, kind: ItemKind, now: datetime) -> List[PricedLine]:
        cart = self._carts.list_lines(identity, kind)
        if not cart:
            raise ValidationError("Your cart is empty", code=ErrorCode.CART_EMPTY)

        if is_cart_expired(cart, now, self._cart_ttl):
            self._carts.clear(identity, kind)
            logger.info("Expired cart purged at checkout", extra={"identity": identity.key, "kind": kind.value})
            raise CartExpiredError()

        check_cart_exclusivity(kind, self._carts.list_lines(identity, other_kind(kind)))
        check_cart_consistency(cart[0].venue_id, cart[0].target_date, cart)

        priced: List[PricedLine] = []
        for line in cart:
            item, venue = self._pricing.load(line.item_id)
            check_item_available(item)
            check_inventory(item, line.quantity, 0)
            try:
                priced.append(
                    self._pricing.price_line(
                        line_id=line.line_id,
                        item=item,
                        venue=venue,
                        quantity=line.quantity,
                        now=now,
                        variant_id=line.variant_id,
                        target_date=line.target_date,
                    )
                )
            except EventClosedError:
                self._carts.clear(identity, kind)
                logger.info(
                    "Event closed at checkout, cart purged",
                    extra={"identity": identity.key, "item_id": str(item.item_id)},
                )
                raise
            except InternalError as e:
                logger.exception(
                    "Unusable catalog price at checkout",
                    extra={"identity": identity.key, "item_id": str(item.item_id), "detail": e.detail},
                )
                raise
        return priced

    def initiate(
        self,
        identity: Identity,
        kind: ItemKind,
        buyer_email: Any,
        payment_method: Optional[Mapping[str, Any]] = None,
    ) -> InitiateResult:
        """
        Price the cart and open a pending charge with the provider.

        Args:
            identity: Cart owner.
            kind: Which cart to check out.
            buyer_email: Where redemption codes are sent.
            payment_method: Passed through to the provider untouched.

        Returns:
            InitiateResult with the provider reference and the total. Free
            carts come back already settled.

        Raises:
            ValidationError: empty cart, bad email, cart rule or inventory violation.
            ExpiryError: cart older than its TTL or event closed (cart purged).
            PaymentError: the provider refused to open the charge.
            InternalError: a stored price is unusable.
        """

        email = self._buyer_email(identity, buyer_email)
        now = self._clock()
        lines = self._price_cart(identity, kind, now)
        totals = summarize(lines)

        if totals.total == ZERO:
            pending = PendingCheckout(
                reference=f"free_{uuid4()}",
                identity=identity,
                kind=kind,
                buyer_email=email,
                venue_id=lines[0].venue_id,
                target_date=lines[0].target_date,
                lines=tuple(lines),
                totals=totals,
                created_at=now,
            )
            settlement, _ = self._settle(pending, FREE_PROVIDER)
            return InitiateResult(
                reference=pending.reference,
                total=totals.total,
                totals=totals,
                lines=lines,
                settlement=settlement,
            )

        reference = self._provider.create_pending_transaction(totals.total, email, payment_method)
        self._pending.put(
            PendingCheckout(
                reference=reference,
                identity=identity,
                kind=kind,
                buyer_email=email,
                venue_id=lines[0].venue_id,
                target_date=lines[0].target_date,
                lines=tuple(lines),
                totals=totals,
                created_at=now,
            ),
            self._pending_ttl,
        )
        logger.info(
            "Checkout initiated",
            extra={
                "reference": reference,
                "total": str(totals.total),
                "lines": len(lines),
                "kind": kind.value,
            },
        )
        return InitiateResult(reference=reference, total=totals.total, totals=totals, lines=lines)

    # ------------------------------------------------------------------
    # Confirm
    # ------------------------------------------------------------------

    def confirm(self, identity: Identity, reference: str) -> ConfirmResult:
        """
        Settle an initiated checkout once the provider approves it.

        Raises:
            ValidationError(CHECKOUT_NOT_FOUND): unknown or expired reference,
                or a reference that belongs to someone else.
            PaymentDeclinedError / PaymentProviderError: nothing persisted,
                cart untouched.
            PaymentTimeoutError: still pending; safe to call again.
            ValidationError(ITEM_UNAVAILABLE): an item was withdrawn after
                initiate; nothing persisted.
            InsufficientInventoryError: stock ran out before settlement.
        """

        existing = self._settlements.get_by_provider_reference(reference)
        if existing is not None:
            if existing.transaction.identity != identity:
                raise ValidationError("Checkout not found", code=ErrorCode.CHECKOUT_NOT_FOUND)
            logger.info("Duplicate confirm ignored", extra={"reference": reference})
            return ConfirmResult(settlement=existing, already_processed=True)

        pending = self._pending.get(reference)
        if pending is None:
            # A charge approved after the TTL has no snapshot left to settle from.
            logger.warning("Confirm for unknown or expired checkout", extra={"reference": reference})
        if pending is None or pending.identity != identity:
            raise ValidationError(
                "Checkout not found or expired. Please start over.",
                code=ErrorCode.CHECKOUT_NOT_FOUND,
            )

        status = wait_for_final_status(
            self._provider, reference, self._poll_timeout, self._poll_interval, sleep=self._sleep
        )
        if status == ProviderStatus.DECLINED:
            self._pending.delete(reference)
            logger.warning("Payment declined", extra={"reference": reference})
            raise PaymentDeclinedError(reference)
        if status == ProviderStatus.ERROR:
            self._pending.delete(reference)
            logger.warning("Payment errored at provider", extra={"reference": reference})
            raise PaymentProviderError()
        if status == ProviderStatus.PENDING:
            logger.warning("Payment still pending after polling", extra={"reference": reference})
            raise PaymentTimeoutError(reference)

        settlement, already_processed = self._settle(pending, self._provider.name)
        return ConfirmResult(settlement=settlement, already_processed=already_processed)

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def _check_items_still_sold(self, pending: PendingCheckout, provider_name: str) -> None:
        """Re-read every paid item; deactivated or deleted items abort the settlement."""

        for line in pending.lines:
            item = self._catalog.get_item(line.item_id)
            if item is None:
                logger.error(
                    "Paid item missing at settlement",
                    extra={"reference": pending.reference, "item_id": str(line.item_id)},
                )
                raise InternalError(f"catalog item {line.item_id} missing at settlement")
            try:
                check_item_available(item)
            except ValidationError:
                self._pending.delete(pending.reference)
                logger.error(
                    "Paid item no longer available at settlement",
                    extra={
                        "reference": pending.reference,
                        "provider": provider_name,
                        "item_id": str(line.item_id),
                    },
                )
                raise

    def _build_records(
        self, pending: PendingCheckout, transaction_id: UUID, now: datetime, menu_token: Optional[str]
    ) -> List[PurchaseRecord]:
        records: List[PurchaseRecord] = []
        for line in pending.lines:
            if pending.kind == ItemKind.TICKET:
                # One independently redeemable record per ticket unit.
                units, per_record = line.quantity, 1
            else:
                units, per_record = 1, line.quantity

            for _ in range(units):
                record_id = uuid4()
                if pending.kind == ItemKind.TICKET:
                    qr_token = self._qr.issue(
                        QRPayload(RedemptionType.TICKET, record_id, pending.venue_id, transaction_id)
                    )
                else:
                    qr_token = menu_token
                menu_qr_token = None
                if pending.kind == ItemKind.TICKET and line.included_menu_items:
                    menu_qr_token = self._qr.issue(
                        QRPayload(RedemptionType.MENU_FROM_TICKET, record_id, pending.venue_id, transaction_id)
                    )
                fees = line.fees
                records.append(
                    PurchaseRecord(
                        record_id=record_id,
                        transaction_id=transaction_id,
                        kind=line.kind,
                        item_id=line.item_id,
                        item_name=line.item_name,
                        venue_id=line.venue_id,
                        quantity=per_record,
                        original_base_price=line.base_price,
                        price_at_checkout=fees.price,
                        dynamic_pricing_applied=line.dynamic_pricing_applied,
                        dynamic_pricing_reason=line.pricing_reason,
                        platform_fee=fees.platform_fee * per_record,
                        gateway_fee=fees.gateway_fee * per_record,
                        gateway_tax=fees.gateway_tax * per_record,
                        total_paid=fees.total * per_record,
                        created_at=now,
                        target_date=line.target_date,
                        variant_id=line.variant_id,
                        category=line.category,
                        qr_token=qr_token,
                        included_menu_items=line.included_menu_items,
                        menu_qr_token=menu_qr_token,
                    )
                )
        return records

    def _settle(self, pending: PendingCheckout, provider_name: str) -> tuple[Settlement, bool]:
        """Persist the settlement for `pending`. Returns (settlement, already_processed)."""

        self._check_items_still_sold(pending, provider_name)
        now = self._clock()
        transaction_id = uuid4()
        menu_token = None
        if pending.kind == ItemKind.MENU:
            menu_token = self._qr.issue(QRPayload(RedemptionType.MENU, transaction_id, pending.venue_id))

        records = self._build_records(pending, transaction_id, now, menu_token)
        totals = pending.totals
        transaction = SettlementTransaction(
            transaction_id=transaction_id,
            identity=pending.identity,
            kind=pending.kind,
            venue_id=pending.venue_id,
            buyer_email=pending.buyer_email,
            provider=provider_name,
            provider_reference=pending.reference,
            payment_status=PaymentStatus.APPROVED,
            total_paid=totals.total,
            venue_receives=totals.venue_receives,
            platform_receives=totals.platform_fee,
            gateway_fee=totals.gateway_fee,
            gateway_tax=totals.gateway_tax,
            created_at=now,
            target_date=pending.target_date,
            qr_token=menu_token,
        )
        decrements = [InventoryDecrement(item_id=line.item_id, quantity=line.quantity) for line in pending.lines]

        try:
            settlement = self._settlements.settle(
                Settlement(transaction=transaction, records=tuple(records)), decrements
            )
        except DuplicateSettlementError:
            existing = self._settlements.get_by_provider_reference(pending.reference)
            if existing is None:
                raise
            logger.info("Duplicate confirm ignored", extra={"reference": pending.reference})
            return existing, True
        except InsufficientInventoryError as e:
            self._pending.delete(pending.reference)
            logger.error(
                "Insufficient stock at settlement",
                extra={
                    "reference": pending.reference,
                    "provider": provider_name,
                    "item_name": e.item_name,
                    "available": e.available,
                },
            )
            raise

        self._pending.delete(pending.reference)
        self._carts.clear(pending.identity, pending.kind)
        logger.info(
            "Settlement committed",
            extra={
                "transaction_id": str(transaction_id),
                "reference": pending.reference,
                "records": len(records),
                "total": str(totals.total),
            },
        )
        notify_settlement(self._notifier, settlement)
        return settlement, False


__all__ = ["sanitize_email", "InitiateResult", "ConfirmResult", "CheckoutService"]
