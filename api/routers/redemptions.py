"""
Redemption API Endpoints.

Staff-facing: preview a scanned QR code, then consume it. Consuming twice
returns 409 with the original redemption time.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import Container, get_container, get_staff
from api.errors import http_error, unexpected_error
from api.models import RedeemedItemResponse, RedemptionRequest, RedemptionResponse
from domain.errors import DomainError
from domain.identity import StaffContext
from services.redemption_service import RedemptionView

router = APIRouter()


def _response(view: RedemptionView) -> RedemptionResponse:
    return RedemptionResponse(
        type=view.payload.type,
        transaction_id=view.transaction.transaction_id,
        venue_id=view.transaction.venue_id,
        target_date=view.target_date,
        is_used=view.is_used,
        used_at=view.used_at,
        items=[
            RedeemedItemResponse(
                record_id=r.record_id,
                item_name=r.item_name,
                quantity=r.quantity,
                variant_id=r.variant_id,
            )
            for r in view.records
        ],
    )


@router.post(
    "/redemptions/preview",
    response_model=RedemptionResponse,
    summary="Preview QR Code",
    description="Validate a scanned QR code without consuming it."
)
def preview_redemption(
    request: RedemptionRequest,
    staff: StaffContext = Depends(get_staff),
    container: Container = Depends(get_container),
):
    try:
        view = container.redemption_service.preview(request.token, staff, request.expected_type)
        return _response(view)
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("preview_redemption")


@router.post(
    "/redemptions/consume",
    response_model=RedemptionResponse,
    summary="Redeem QR Code",
    description="Validate a scanned QR code and mark it used, exactly once."
)
def consume_redemption(
    request: RedemptionRequest,
    staff: StaffContext = Depends(get_staff),
    container: Container = Depends(get_container),
):
    """
    Redeem a ticket at the door or a menu order at the bar.

    **Access:** bouncers and waiters of the token's venue, or its owner.
    Included menu items on a ticket (`menu_from_ticket`) are for waiters and owners.

    **Already used (409):**
    ```json
    {"detail": {"code": "ALREADY_USED", "message": "QR code already used", "used_at": "2025-06-14T03:12:44+00:00"}}
    ```
    """
    try:
        view = container.redemption_service.consume(request.token, staff, request.expected_type)
        return _response(view)
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("consume_redemption")
