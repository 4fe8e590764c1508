"""
Cart API Endpoints.

Each identity has a ticket cart and a menu cart; only one may hold lines at a
time. Every mutation re-validates the cart rules against stored state.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response

from api.dependencies import Container, get_container, get_identity
from api.errors import http_error, unexpected_error
from api.models import (
    AddToCartRequest,
    CartLineResponse,
    CartMutationResponse,
    CartResponse,
    CartSummaryResponse,
    ClearCartResponse,
    UpdateCartLineRequest,
)
from domain.cart import CartLine
from domain.catalog import ItemKind
from domain.errors import DomainError
from domain.identity import Identity

router = APIRouter()


def _mutation_response(line: CartLine) -> CartMutationResponse:
    return CartMutationResponse(
        line_id=line.line_id,
        item_id=line.item_id,
        quantity=line.quantity,
        target_date=line.target_date,
        variant_id=line.variant_id,
        created_at=line.created_at,
    )


@router.get(
    "/cart/{kind}",
    response_model=CartResponse,
    summary="View Cart",
    description="List a cart with every line priced as of now."
)
def get_cart(
    kind: ItemKind,
    identity: Identity = Depends(get_identity),
    container: Container = Depends(get_container),
):
    """
    View the ticket or menu cart.

    Lines whose item was removed, deactivated or whose event has closed are
    returned with `available: false` and a message, and are left out of the
    summary.
    """
    try:
        view = container.cart_service.list(identity, kind)
        return CartResponse(
            kind=view.kind.value,
            lines=[
                CartLineResponse(
                    line_id=v.line.line_id,
                    item_id=v.line.item_id,
                    item_name=v.item_name,
                    quantity=v.line.quantity,
                    target_date=v.line.target_date,
                    variant_id=v.line.variant_id,
                    available=v.available,
                    base_price=v.base_price,
                    unit_price=v.unit_price,
                    unit_total=v.unit_total,
                    line_total=v.line_total,
                    dynamic_pricing_applied=v.dynamic_pricing_applied,
                    pricing_reason=v.pricing_reason,
                    message=v.message,
                )
                for v in view.lines
            ],
            summary=CartSummaryResponse(
                subtotal=view.summary.subtotal,
                operational_costs=view.summary.operational_costs,
                total=view.summary.total,
            ),
            expires_at=view.expires_at,
        )
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("get_cart")


@router.post(
    "/cart/{kind}/items",
    response_model=CartMutationResponse,
    status_code=201,
    summary="Add To Cart",
    description="Add an item, merging into an identical line when one exists."
)
def add_to_cart(
    kind: ItemKind,
    request: AddToCartRequest,
    identity: Identity = Depends(get_identity),
    container: Container = Depends(get_container),
):
    """
    Add an item to the ticket or menu cart.

    **Rejected when:**
    - the other cart has items (one cart at a time)
    - event tickets would mix with other tickets
    - the venue or date differs from the rest of the cart
    - the quantity exceeds stock left after other active carts, or the per-person cap
    - the ticket date is in the past, too far ahead, or the venue is closed that night

    **Example request:**
    ```json
    {
      "item_id": "123e4567-e89b-12d3-a456-426614174000",
      "quantity": 2,
      "target_date": "2025-06-14"
    }
    ```
    """
    try:
        line = container.cart_service.add(
            identity,
            kind,
            request.item_id,
            request.quantity,
            target_date=request.target_date,
            variant_id=request.variant_id,
        )
        return _mutation_response(line)
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("add_to_cart")


@router.patch(
    "/cart/lines/{line_id}",
    response_model=CartMutationResponse,
    summary="Update Cart Line",
)
def update_cart_line(
    line_id: UUID,
    request: UpdateCartLineRequest,
    identity: Identity = Depends(get_identity),
    container: Container = Depends(get_container),
):
    try:
        line = container.cart_service.update_quantity(identity, line_id, request.quantity)
        return _mutation_response(line)
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("update_cart_line")


@router.delete(
    "/cart/lines/{line_id}",
    status_code=204,
    summary="Remove Cart Line",
)
def remove_cart_line(
    line_id: UUID,
    identity: Identity = Depends(get_identity),
    container: Container = Depends(get_container),
):
    try:
        container.cart_service.remove(identity, line_id)
        return Response(status_code=204)
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("remove_cart_line")


@router.delete(
    "/cart/{kind}",
    response_model=ClearCartResponse,
    summary="Clear Cart",
)
def clear_cart(
    kind: ItemKind,
    identity: Identity = Depends(get_identity),
    container: Container = Depends(get_container),
):
    try:
        return ClearCartResponse(removed=container.cart_service.clear(identity, kind))
    except DomainError as e:
        raise http_error(e) from e
    except HTTPException:
        raise
    except Exception:
        raise unexpected_error("clear_cart")
