"""
Domain error codes and exception families.

Families map one-to-one to how callers must react:
- ValidationError: bad input or a cart invariant violation; never retried.
- ExpiryError: stale cart or closed event; the caller must start over.
- PaymentError: the gateway declined, failed or timed out; nothing persisted.
- RedemptionError: QR integrity or access failures; security relevant.
- InternalError: data that should be structurally impossible; logged, surfaced generically.

Messages are user-safe. Internal detail goes to logs, never into `message`.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Domain error codes."""

    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    NOT_OWNER = "NOT_OWNER"
    CART_EMPTY = "CART_EMPTY"
    CART_EXCLUSIVITY = "CART_EXCLUSIVITY"
    CART_CONSISTENCY = "CART_CONSISTENCY"
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    PER_PERSON_LIMIT = "PER_PERSON_LIMIT"
    ITEM_UNAVAILABLE = "ITEM_UNAVAILABLE"
    INVALID_DATE = "INVALID_DATE"
    CHECKOUT_NOT_FOUND = "CHECKOUT_NOT_FOUND"
    CART_EXPIRED = "CART_EXPIRED"
    EVENT_CLOSED = "EVENT_CLOSED"
    PAYMENT_DECLINED = "PAYMENT_DECLINED"
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"
    PAYMENT_TIMEOUT = "PAYMENT_TIMEOUT"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_TYPE_MISMATCH = "TOKEN_TYPE_MISMATCH"
    ACCESS_DENIED = "ACCESS_DENIED"
    ALREADY_USED = "ALREADY_USED"
    REDEMPTION_DATE = "REDEMPTION_DATE"
    INTERNAL = "INTERNAL"


class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


# ============================================================================
# Validation
# ============================================================================

class ValidationError(DomainError):
    """Request is malformed or violates a cart rule."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_INPUT) -> None:
        super().__init__(code=code, message=message)


class NotFoundError(ValidationError):
    def __init__(self, what: str) -> None:
        super().__init__(f"{what} not found", code=ErrorCode.NOT_FOUND)
        self.what = what


class OwnershipError(ValidationError):
    """Raised when an identity touches a cart line it does not own."""

    def __init__(self, message: str = "You cannot modify another user's cart item") -> None:
        super().__init__(message, code=ErrorCode.NOT_OWNER)


class CartExclusivityError(ValidationError):
    """Rule A/B: the named cart (or ticket category) blocks the operation."""

    def __init__(self, message: str, blocking: str) -> None:
        super().__init__(message, code=ErrorCode.CART_EXCLUSIVITY)
        self.blocking = blocking


class CartConsistencyError(ValidationError):
    """Rule C: venue or date mismatch; `field` names which one."""

    def __init__(self, message: str, field: str) -> None:
        super().__init__(message, code=ErrorCode.CART_CONSISTENCY)
        self.field = field


class InsufficientInventoryError(ValidationError):
    def __init__(self, item_name: str, available: int) -> None:
        available = max(available, 0)
        super().__init__(
            f"Only {available} left for {item_name}",
            code=ErrorCode.INSUFFICIENT_INVENTORY,
        )
        self.item_name = item_name
        self.available = available


class PerPersonLimitError(ValidationError):
    def __init__(self, item_name: str, limit: int) -> None:
        super().__init__(
            f"You can only buy up to {limit} of {item_name}",
            code=ErrorCode.PER_PERSON_LIMIT,
        )
        self.limit = limit


# ============================================================================
# Expiry
# ============================================================================

class ExpiryError(DomainError):
    """The caller must start over; the stale cart has been purged."""


class CartExpiredError(ExpiryError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.CART_EXPIRED, message="Cart expired. Please start over.")


class EventClosedError(ExpiryError):
    def __init__(self, item_name: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_CLOSED,
            message=f'Event "{item_name}" has already started and is no longer available. Please start over.',
        )
        self.item_name = item_name


# ============================================================================
# Payment
# ============================================================================

class PaymentError(DomainError):
    """The payment did not go through. No inventory or records were touched."""


class PaymentDeclinedError(PaymentError):
    def __init__(self, reference: str) -> None:
        super().__init__(code=ErrorCode.PAYMENT_DECLINED, message="Payment was declined")
        self.reference = reference


class PaymentProviderError(PaymentError):
    def __init__(self, message: str = "Payment processing error") -> None:
        super().__init__(code=ErrorCode.PAYMENT_PROVIDER_ERROR, message=message)


class PaymentTimeoutError(PaymentError):
    def __init__(self, reference: str) -> None:
        super().__init__(
            code=ErrorCode.PAYMENT_TIMEOUT,
            message="Payment is still pending. Please try confirming again shortly.",
        )
        self.reference = reference


# ============================================================================
# Redemption (integrity)
# ============================================================================

class RedemptionError(DomainError):
    """QR token failures. Treated as security relevant and logged."""


class InvalidTokenError(RedemptionError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.INVALID_TOKEN, message="Invalid QR code")


class TokenTypeError(RedemptionError):
    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            code=ErrorCode.TOKEN_TYPE_MISMATCH,
            message=f"Invalid QR type: expected {expected}, got {actual}",
        )


class AccessDeniedError(RedemptionError):
    def __init__(self, message: str = "Access denied to this venue") -> None:
        super().__init__(code=ErrorCode.ACCESS_DENIED, message=message)


class AlreadyUsedError(RedemptionError):
    def __init__(self, used_at: Optional[datetime]) -> None:
        super().__init__(code=ErrorCode.ALREADY_USED, message="QR code already used")
        self.used_at = used_at


class RedemptionDateError(RedemptionError):
    def __init__(self, target_date: object) -> None:
        super().__init__(
            code=ErrorCode.REDEMPTION_DATE,
            message=f"This QR code was for {target_date} and is no longer valid",
        )


# ============================================================================
# Internal
# ============================================================================

class InternalError(DomainError):
    """Structurally impossible state. Callers see a generic message."""

    def __init__(self, detail: str) -> None:
        super().__init__(code=ErrorCode.INTERNAL, message="Internal error")
        self.detail = detail


__all__ = [
    "ErrorCode",
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "OwnershipError",
    "CartExclusivityError",
    "CartConsistencyError",
    "InsufficientInventoryError",
    "PerPersonLimitError",
    "ExpiryError",
    "CartExpiredError",
    "EventClosedError",
    "PaymentError",
    "PaymentDeclinedError",
    "PaymentProviderError",
    "PaymentTimeoutError",
    "RedemptionError",
    "InvalidTokenError",
    "TokenTypeError",
    "AccessDeniedError",
    "AlreadyUsedError",
    "RedemptionDateError",
    "InternalError",
]
