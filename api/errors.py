"""
Domain error -> HTTP translation.

Every router catches DomainError and re-raises the HTTPException built here,
so status codes and error bodies are uniform across endpoints:

    400 validation / bad token      404 not found
    403 ownership / venue access    410 expired cart or closed event
    402 payment failures            409 already used
    500 internal (generic body, detail only in logs)
"""

import logging
from typing import Any, Dict

from fastapi import HTTPException

from domain.errors import (
    AlreadyUsedError,
    CartConsistencyError,
    CartExclusivityError,
    DomainError,
    ErrorCode,
    ExpiryError,
    InsufficientInventoryError,
    InternalError,
    PaymentError,
    PerPersonLimitError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CHECKOUT_NOT_FOUND: 404,
    ErrorCode.NOT_OWNER: 403,
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.ALREADY_USED: 409,
}


def status_for(error: DomainError) -> int:
    if isinstance(error, InternalError):
        return 500
    if error.code in _STATUS_BY_CODE:
        return _STATUS_BY_CODE[error.code]
    if isinstance(error, ExpiryError):
        return 410
    if isinstance(error, PaymentError):
        return 402
    return 400


def error_body(error: DomainError) -> Dict[str, Any]:
    body: Dict[str, Any] = {"code": error.code.value, "message": error.message}
    if isinstance(error, AlreadyUsedError):
        body["used_at"] = error.used_at.isoformat() if error.used_at else None
    elif isinstance(error, InsufficientInventoryError):
        body["available"] = error.available
    elif isinstance(error, PerPersonLimitError):
        body["limit"] = error.limit
    elif isinstance(error, CartExclusivityError):
        body["blocking"] = error.blocking
    elif isinstance(error, CartConsistencyError):
        body["field"] = error.field
    return body


def http_error(error: DomainError) -> HTTPException:
    if isinstance(error, InternalError):
        logger.error("Internal error surfaced to client", extra={"detail": error.detail})
    return HTTPException(status_code=status_for(error), detail=error_body(error))


def unexpected_error(action: str) -> HTTPException:
    """Log the active exception and return a generic 500."""

    logger.exception("Unexpected error", extra={"action": action})
    return HTTPException(
        status_code=500,
        detail={"code": ErrorCode.INTERNAL.value, "message": "Internal error"},
    )


__all__ = ["status_for", "error_body", "http_error", "unexpected_error"]
