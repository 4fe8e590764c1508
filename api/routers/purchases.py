"""
Purchase History API Endpoints.

Buyers list and re-open their own settlements, QR tokens included, so a lost
confirmation email never means lost tickets. Venue owners list what their
venues sold.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import Container, get_container, get_identity, get_staff
from api.errors import http_error, unexpected_error
from api.models import (
    PurchaseHistoryResponse,
    SettlementResponse,
    VenuePurchaseHistoryResponse,
    VenueSettlementResponse,
)
from api.routers.checkout import settlement_response
from domain.catalog import ItemKind
from domain.errors import DomainError
from domain.identity import Identity, StaffContext

router = APIRouter()


@router.get(
    "/purchases",
    response_model=PurchaseHistoryResponse,
    summary="List My Purchases",
    description="The caller's settled purchases, newest first."
)
def list_purchases(
    kind: Optional[ItemKind] = Query(None, description="Only ticket or only menu purchases"),
    identity: Identity = Depends(get_identity),
    container: Container = Depends(get_container),
):
    try:
        settlements = container.purchase_history_service.list_for(identity, kind)
        return PurchaseHistoryResponse(
            purchases=[settlement_response(s) for s in settlements],
            count=len(settlements),
        )
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("list_purchases")


@router.get(
    "/purchases/{transaction_id}",
    response_model=SettlementResponse,
    summary="Get My Purchase",
    description="One of the caller's purchases with its records and QR codes."
)
def get_purchase(
    transaction_id: UUID,
    identity: Identity = Depends(get_identity),
    container: Container = Depends(get_container),
):
    """
    Re-fetch a purchase, e.g. to show its QR codes again.

    Another buyer's transaction id answers 404, same as an unknown one.
    """
    try:
        return settlement_response(container.purchase_history_service.get_for(identity, transaction_id))
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("get_purchase")


@router.get(
    "/venues/{venue_id}/purchases",
    response_model=VenuePurchaseHistoryResponse,
    summary="List Venue Sales",
    description="Everything a venue sold, newest first. Venue owner only."
)
def list_venue_purchases(
    venue_id: UUID,
    kind: Optional[ItemKind] = Query(None, description="Only ticket or only menu purchases"),
    staff: StaffContext = Depends(get_staff),
    container: Container = Depends(get_container),
):
    try:
        settlements = container.purchase_history_service.list_for_venue(staff, venue_id, kind)
        return VenuePurchaseHistoryResponse(
            purchases=[settlement_response(s, for_venue=True) for s in settlements],
            count=len(settlements),
        )
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("list_venue_purchases")


@router.get(
    "/venues/{venue_id}/purchases/{transaction_id}",
    response_model=VenueSettlementResponse,
    summary="Get Venue Sale",
    description="One sale of the venue. Venue owner only."
)
def get_venue_purchase(
    venue_id: UUID,
    transaction_id: UUID,
    staff: StaffContext = Depends(get_staff),
    container: Container = Depends(get_container),
):
    try:
        settlement = container.purchase_history_service.get_for_venue(staff, venue_id, transaction_id)
        return settlement_response(settlement, for_venue=True)
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("get_venue_purchase")
