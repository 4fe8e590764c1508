"""
Payment provider collaborators.

One interface, two implementations selected by PAYMENT_PROVIDER:
- MockPaymentProvider: in-process test double with scriptable outcomes.
- WompiPaymentProvider: the Wompi REST API (https://docs.wompi.co).

The checkout orchestrator only ever calls create_pending_transaction and
get_status (through wait_for_final_status while the status is pending).
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Callable, Mapping, Optional
from uuid import uuid4

import requests

from config.settings import Settings
from domain.errors import PaymentProviderError, ValidationError

logger = logging.getLogger(__name__)

WOMPI_BASE_URLS = {
    "sandbox": "https://sandbox.wompi.co/v1",
    "production": "https://production.wompi.co/v1",
}


class ProviderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    ERROR = "error"

    @property
    def is_final(self) -> bool:
        return self != ProviderStatus.PENDING


class PaymentProvider(ABC):
    """Opaque pass-through to a payment gateway."""

    name: str = "provider"

    @abstractmethod
    def create_pending_transaction(
        self,
        amount: Decimal,
        buyer_email: str,
        payment_method: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Create a pending charge and return the provider's transaction reference."""
        ...

    @abstractmethod
    def get_status(self, reference: str) -> ProviderStatus:
        ...


def wait_for_final_status(
    provider: PaymentProvider,
    reference: str,
    timeout_seconds: float,
    interval_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> ProviderStatus:
    """
    Poll until the status is final or the timeout elapses.

    Returns PENDING when the timeout elapses first; the caller decides what a
    still-pending payment means.
    """

    deadline = monotonic() + timeout_seconds
    while True:
        status = provider.get_status(reference)
        if status.is_final:
            return status
        remaining = deadline - monotonic()
        if remaining <= 0:
            return status
        sleep(min(interval_seconds, remaining))


# ============================================================================
# Mock
# ============================================================================

@dataclass(frozen=True, slots=True)
class MockCharge:
    reference: str
    amount: Decimal
    buyer_email: str


class MockPaymentProvider(PaymentProvider):
    """
    Test double. Every new transaction gets `default_status`; tests can
    override a single reference with set_status.
    """

    name = "mock"

    def __init__(self, default_status: ProviderStatus = ProviderStatus.APPROVED) -> None:
        self.default_status = default_status
        self._lock = threading.Lock()
        self._statuses: dict[str, ProviderStatus] = {}
        self.charges: list[MockCharge] = []

    def create_pending_transaction(
        self,
        amount: Decimal,
        buyer_email: str,
        payment_method: Optional[Mapping[str, Any]] = None,
    ) -> str:
        reference = f"mock_txn_{uuid4()}"
        with self._lock:
            self._statuses[reference] = self.default_status
            self.charges.append(MockCharge(reference=reference, amount=amount, buyer_email=buyer_email))
        return reference

    def set_status(self, reference: str, status: ProviderStatus) -> None:
        with self._lock:
            self._statuses[reference] = status

    def get_status(self, reference: str) -> ProviderStatus:
        with self._lock:
            return self._statuses.get(reference, ProviderStatus.ERROR)


# ============================================================================
# Wompi
# ============================================================================

_WOMPI_STATUSES = {
    "PENDING": ProviderStatus.PENDING,
    "APPROVED": ProviderStatus.APPROVED,
    "DECLINED": ProviderStatus.DECLINED,
    "VOIDED": ProviderStatus.DECLINED,
    "ERROR": ProviderStatus.ERROR,
}


def amount_in_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def integrity_signature(reference: str, cents: int, currency: str, integrity_key: str) -> str:
    """SHA-256 hex of reference + amount_in_cents + currency + integrity key."""

    return hashlib.sha256(f"{reference}{cents}{currency}{integrity_key}".encode("utf-8")).hexdigest()


class WompiPaymentProvider(PaymentProvider):
    name = "wompi"

    def __init__(
        self,
        public_key: str,
        private_key: str,
        integrity_key: str,
        environment: str = "sandbox",
        currency: str = "COP",
        session: Optional[requests.Session] = None,
        timeout: float = 10,
    ) -> None:
        self._public_key = public_key
        self._private_key = private_key
        self._integrity_key = integrity_key
        self._currency = currency
        self._session = session or requests.Session()
        self._timeout = timeout
        self.base_url = WOMPI_BASE_URLS[environment]

    def _request(
        self, method: str, path: str, bearer: str, payload: Optional[Mapping[str, Any]] = None
    ) -> Mapping[str, Any]:
        try:
            response = self._session.request(
                method,
                f"{self.base_url}{path}",
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {bearer}",
                },
                json=payload,
                timeout=self._timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            body = e.response.text if e.response is not None else None
            logger.error(
                "Wompi request failed",
                extra={"method": method, "path": path, "error": str(e), "response": body},
            )
            raise PaymentProviderError() from e

    def get_acceptance_token(self) -> str:
        data = self._request("GET", f"/merchants/{self._public_key}", self._public_key)
        try:
            return data["data"]["presigned_acceptance"]["acceptance_token"]
        except (KeyError, TypeError):
            raise PaymentProviderError() from None

    def create_pending_transaction(
        self,
        amount: Decimal,
        buyer_email: str,
        payment_method: Optional[Mapping[str, Any]] = None,
    ) -> str:
        if not payment_method:
            raise ValidationError("A payment method is required")

        reference = f"order_{uuid4().hex}"
        cents = amount_in_cents(amount)
        payload = {
            "amount_in_cents": cents,
            "currency": self._currency,
            "reference": reference,
            "customer_email": buyer_email,
            "acceptance_token": self.get_acceptance_token(),
            "signature": integrity_signature(reference, cents, self._currency, self._integrity_key),
            "payment_method": dict(payment_method),
        }
        data = self._request("POST", "/transactions", self._private_key, payload)
        try:
            return str(data["data"]["id"])
        except (KeyError, TypeError):
            raise PaymentProviderError() from None

    def get_status(self, reference: str) -> ProviderStatus:
        data = self._request("GET", f"/transactions/{reference}", self._private_key)
        raw = str((data.get("data") or {}).get("status", "")).upper()
        return _WOMPI_STATUSES.get(raw, ProviderStatus.ERROR)


def build_payment_provider(settings: Settings) -> PaymentProvider:
    if settings.payment_provider == "wompi":
        return WompiPaymentProvider(
            public_key=settings.wompi_public_key,
            private_key=settings.wompi_private_key,
            integrity_key=settings.wompi_integrity_key,
            environment=settings.wompi_environment,
            currency=settings.payment_currency,
        )
    return MockPaymentProvider()


__all__ = [
    "ProviderStatus",
    "PaymentProvider",
    "wait_for_final_status",
    "MockPaymentProvider",
    "WompiPaymentProvider",
    "amount_in_cents",
    "integrity_signature",
    "build_payment_provider",
]
