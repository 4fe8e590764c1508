"""
Checkout API Endpoints.

Two phases: initiate prices the cart and opens a pending charge with the
payment gateway; confirm settles it once the gateway approves. Confirm is
safe to repeat for the same reference.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import Container, get_container, get_identity, get_user_email
from api.errors import http_error, unexpected_error
from api.models import (
    ConfirmCheckoutRequest,
    ConfirmCheckoutResponse,
    InitiateCheckoutRequest,
    InitiateCheckoutResponse,
    PricedLineResponse,
    PurchaseRecordResponse,
    SettlementResponse,
    VenueSettlementResponse,
)
from domain.catalog import ItemKind
from domain.errors import DomainError
from domain.identity import Identity
from domain.settlement import PurchaseRecord, Settlement

router = APIRouter()


def _record_response(r: PurchaseRecord) -> PurchaseRecordResponse:
    return PurchaseRecordResponse(
        record_id=r.record_id,
        item_id=r.item_id,
        item_name=r.item_name,
        quantity=r.quantity,
        original_base_price=r.original_base_price,
        price_at_checkout=r.price_at_checkout,
        dynamic_pricing_applied=r.dynamic_pricing_applied,
        dynamic_pricing_reason=r.dynamic_pricing_reason,
        total_paid=r.total_paid,
        target_date=r.target_date,
        qr_token=r.qr_token,
        menu_qr_token=r.menu_qr_token,
        is_used=r.is_used,
        menu_is_used=r.menu_is_used,
    )


def settlement_response(settlement: Settlement, for_venue: bool = False) -> SettlementResponse:
    """Buyer view by default; `for_venue` adds the buyer email and the revenue split."""

    transaction = settlement.transaction
    fields = dict(
        transaction_id=transaction.transaction_id,
        kind=transaction.kind,
        venue_id=transaction.venue_id,
        provider=transaction.provider,
        provider_reference=transaction.provider_reference,
        total_paid=transaction.total_paid,
        created_at=transaction.created_at,
        target_date=transaction.target_date,
        qr_token=transaction.qr_token,
        is_used=transaction.is_used,
        records=[_record_response(r) for r in settlement.records],
    )
    if for_venue:
        return VenueSettlementResponse(
            buyer_email=transaction.buyer_email,
            venue_receives=transaction.venue_receives,
            platform_receives=transaction.platform_receives,
            **fields,
        )
    return SettlementResponse(**fields)


@router.post(
    "/checkout/{kind}/initiate",
    response_model=InitiateCheckoutResponse,
    summary="Initiate Checkout",
    description="Price the cart and open a pending charge. Free carts settle immediately."
)
def initiate_checkout(
    kind: ItemKind,
    request: InitiateCheckoutRequest,
    identity: Identity = Depends(get_identity),
    user_email: Optional[str] = Depends(get_user_email),
    container: Container = Depends(get_container),
):
    """
    Start checkout for the ticket or menu cart.

    Prices are recomputed from the catalog; nothing the client sends about
    prices is trusted. Inventory and the cart are not touched until confirm.

    **Example request:**
    ```json
    {
      "buyer_email": "buyer@example.com",
      "payment_method": {"type": "CARD", "token": "tok_test_123", "installments": 1}
    }
    ```
    """
    try:
        result = container.checkout_service.initiate(
            identity,
            kind,
            request.buyer_email or user_email,
            payment_method=request.payment_method,
        )
        return InitiateCheckoutResponse(
            reference=result.reference,
            subtotal=result.totals.subtotal,
            operational_costs=result.totals.operational_costs,
            total=result.total,
            lines=[
                PricedLineResponse(
                    item_id=line.item_id,
                    item_name=line.item_name,
                    quantity=line.quantity,
                    base_price=line.base_price,
                    unit_price=line.unit_price,
                    platform_fee=line.fees.platform_fee,
                    gateway_fee=line.fees.gateway_fee,
                    gateway_tax=line.fees.gateway_tax,
                    unit_total=line.fees.total,
                    line_total=line.line_total,
                    dynamic_pricing_applied=line.dynamic_pricing_applied,
                    pricing_reason=line.pricing_reason,
                )
                for line in result.lines
            ],
            is_free=result.is_free,
            settlement=settlement_response(result.settlement) if result.settlement else None,
        )
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("initiate_checkout")


@router.post(
    "/checkout/confirm",
    response_model=ConfirmCheckoutResponse,
    summary="Confirm Checkout",
    description="Settle an initiated checkout once the gateway approves the payment."
)
def confirm_checkout(
    request: ConfirmCheckoutRequest,
    identity: Identity = Depends(get_identity),
    container: Container = Depends(get_container),
):
    """
    Confirm a checkout by its gateway reference.

    **Outcomes:**
    - approved: inventory decremented, records and QR codes created, cart cleared
    - declined / gateway error (402): nothing persisted, cart untouched
    - still pending (402, PAYMENT_TIMEOUT): call again shortly
    - already settled: the existing settlement with `already_processed: true`
    """
    try:
        result = container.checkout_service.confirm(identity, request.reference)
        return ConfirmCheckoutResponse(
            already_processed=result.already_processed,
            settlement=settlement_response(result.settlement),
        )
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("confirm_checkout")
