"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.catalog import ItemKind
from domain.pricing import PricingReason
from domain.settlement import RedemptionType


# ============================================================================
# Cart Models
# ============================================================================

class AddToCartRequest(BaseModel):
    """Request to add an item to a cart."""
    item_id: UUID
    quantity: int = Field(1, ge=1, description="Units to add")
    target_date: Optional[date] = Field(
        None,
        description="Night the ticket is for (tickets only)"
    )
    variant_id: Optional[UUID] = Field(
        None,
        description="Menu option (menu items with options only)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "item_id": "123e4567-e89b-12d3-a456-426614174000",
                "quantity": 2,
                "target_date": "2025-06-14"
            }
        }


class UpdateCartLineRequest(BaseModel):
    """Request to change a cart line's quantity."""
    quantity: int = Field(..., ge=1)


class CartLineResponse(BaseModel):
    """Single cart line, priced as of the request."""
    line_id: UUID
    item_id: UUID
    item_name: str
    quantity: int
    target_date: Optional[date] = None
    variant_id: Optional[UUID] = None
    available: bool
    base_price: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    unit_total: Optional[Decimal] = None
    line_total: Optional[Decimal] = None
    dynamic_pricing_applied: bool = False
    pricing_reason: Optional[PricingReason] = None
    message: Optional[str] = None


class CartSummaryResponse(BaseModel):
    subtotal: Decimal
    operational_costs: Decimal
    total: Decimal


class CartResponse(BaseModel):
    """A whole cart with its summary."""
    kind: str
    lines: List[CartLineResponse]
    summary: CartSummaryResponse
    expires_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "kind": "ticket",
                "lines": [],
                "summary": {
                    "subtotal": "14000.00",
                    "operational_costs": "1996.56",
                    "total": "15996.56"
                },
                "expires_at": "2025-06-14T03:30:00Z"
            }
        }


class CartMutationResponse(BaseModel):
    line_id: UUID
    item_id: UUID
    quantity: int
    target_date: Optional[date] = None
    variant_id: Optional[UUID] = None
    created_at: datetime


class ClearCartResponse(BaseModel):
    removed: int


# ============================================================================
# Checkout Models
# ============================================================================

class InitiateCheckoutRequest(BaseModel):
    """Request to open a checkout for a cart."""
    buyer_email: Optional[str] = Field(
        None,
        description="Where redemption codes are sent. Defaults to the authenticated user's email."
    )
    payment_method: Optional[Dict[str, Any]] = Field(
        None,
        description="Passed through to the payment gateway untouched"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "buyer_email": "buyer@example.com",
                "payment_method": {"type": "CARD", "token": "tok_test_123", "installments": 1}
            }
        }


class PricedLineResponse(BaseModel):
    item_id: UUID
    item_name: str
    quantity: int
    base_price: Decimal
    unit_price: Decimal
    platform_fee: Decimal
    gateway_fee: Decimal
    gateway_tax: Decimal
    unit_total: Decimal
    line_total: Decimal
    dynamic_pricing_applied: bool
    pricing_reason: Optional[PricingReason] = None


class PurchaseRecordResponse(BaseModel):
    record_id: UUID
    item_id: UUID
    item_name: str
    quantity: int
    original_base_price: Decimal
    price_at_checkout: Decimal
    dynamic_pricing_applied: bool
    dynamic_pricing_reason: Optional[PricingReason] = None
    total_paid: Decimal
    target_date: Optional[date] = None
    qr_token: Optional[str] = None
    menu_qr_token: Optional[str] = None
    is_used: bool = False
    menu_is_used: bool = False


class SettlementResponse(BaseModel):
    transaction_id: UUID
    kind: ItemKind
    venue_id: UUID
    provider: str
    provider_reference: str
    total_paid: Decimal
    created_at: datetime
    target_date: Optional[date] = None
    qr_token: Optional[str] = None
    is_used: bool = False
    records: List[PurchaseRecordResponse]


class VenueSettlementResponse(SettlementResponse):
    """A venue's view of a sale: the buyer's email and the split."""
    buyer_email: str
    venue_receives: Decimal
    platform_receives: Decimal


class PurchaseHistoryResponse(BaseModel):
    purchases: List[SettlementResponse]
    count: int

    class Config:
        json_schema_extra = {
            "example": {
                "purchases": [
                    {
                        "transaction_id": "3f2b8c1e-5d4a-4e6f-9a7b-1c2d3e4f5a6b",
                        "kind": "ticket",
                        "venue_id": "9d8c7b6a-5f4e-4d3c-2b1a-0f9e8d7c6b5a",
                        "provider": "mock",
                        "provider_reference": "mock_txn_6c1f0f7e-1c2b-4b7a-9d3e-2f0a1b2c3d4e",
                        "total_paid": "15996.56",
                        "created_at": "2025-06-13T15:00:00Z",
                        "target_date": "2025-06-13",
                        "qr_token": None,
                        "is_used": False,
                        "records": []
                    }
                ],
                "count": 1
            }
        }


class VenuePurchaseHistoryResponse(BaseModel):
    purchases: List[VenueSettlementResponse]
    count: int


class InitiateCheckoutResponse(BaseModel):
    """Reference to confirm with, or the settlement of a free cart."""
    reference: str
    subtotal: Decimal
    operational_costs: Decimal
    total: Decimal
    lines: List[PricedLineResponse]
    is_free: bool
    settlement: Optional[SettlementResponse] = None

    class Config:
        json_schema_extra = {
            "example": {
                "reference": "mock_txn_6c1f0f7e-1c2b-4b7a-9d3e-2f0a1b2c3d4e",
                "subtotal": "14000.00",
                "operational_costs": "1996.56",
                "total": "15996.56",
                "lines": [],
                "is_free": False,
                "settlement": None
            }
        }


class ConfirmCheckoutRequest(BaseModel):
    reference: str = Field(..., min_length=1)


class ConfirmCheckoutResponse(BaseModel):
    already_processed: bool
    settlement: SettlementResponse


# ============================================================================
# Redemption Models
# ============================================================================

class RedemptionRequest(BaseModel):
    """A scanned QR token."""
    token: str = Field(..., min_length=1)
    expected_type: Optional[RedemptionType] = Field(
        None,
        description="Reject tokens of any other type"
    )


class RedeemedItemResponse(BaseModel):
    record_id: UUID
    item_name: str
    quantity: int
    variant_id: Optional[UUID] = None


class RedemptionResponse(BaseModel):
    type: RedemptionType
    transaction_id: UUID
    venue_id: UUID
    target_date: Optional[date] = None
    is_used: bool
    used_at: Optional[datetime] = None
    items: List[RedeemedItemResponse]


# ============================================================================
# Error Models
# ============================================================================

class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: ErrorDetail

    class Config:
        json_schema_extra = {
            "example": {
                "detail": {
                    "code": "CART_EXCLUSIVITY",
                    "message": "You have event tickets in your cart. Clear it before adding other tickets.",
                    "blocking": "event"
                }
            }
        }
