"""
QR issuer/decoder.

Tokens are AES-256-GCM over a small JSON payload:

    urlsafe_base64(nonce[12] || ciphertext+tag)

A fresh random nonce per call means the same payload never yields the same
token twice, and the GCM tag makes any tampering fail decryption.
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from domain.errors import InvalidTokenError
from domain.settlement import RedemptionType

NONCE_SIZE = 12
_ASSOCIATED_DATA = b"redemption-qr-v1"


@dataclass(frozen=True, slots=True)
class QRPayload:
    """
    What a redemption token proves.

    `id` is the purchase record for ticket and menu_from_ticket tokens, and
    the settlement transaction for menu tokens.
    """

    type: RedemptionType
    id: UUID
    venue_id: UUID
    transaction_id: Optional[UUID] = None

    def to_json(self) -> bytes:
        body = {"type": self.type.value, "id": str(self.id), "venue_id": str(self.venue_id)}
        if self.transaction_id is not None:
            body["transaction_id"] = str(self.transaction_id)
        return json.dumps(body, separators=(",", ":"), sort_keys=True).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> "QRPayload":
        body = json.loads(raw.decode("utf-8"))
        transaction_id = body.get("transaction_id")
        return cls(
            type=RedemptionType(body["type"]),
            id=UUID(body["id"]),
            venue_id=UUID(body["venue_id"]),
            transaction_id=UUID(transaction_id) if transaction_id else None,
        )


class QRCodec:
    def __init__(self, key: bytes) -> None:
        if len(key) != 32:
            raise ValueError("QR encryption key must be 32 bytes")
        self._aead = AESGCM(key)

    def issue(self, payload: QRPayload) -> str:
        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aead.encrypt(nonce, payload.to_json(), _ASSOCIATED_DATA)
        return base64.urlsafe_b64encode(nonce + sealed).decode("ascii").rstrip("=")

    def decode(self, token: str) -> QRPayload:
        """
        Decrypt and parse a token.

        Raises:
            InvalidTokenError: malformed, tampered, or encrypted with another key.
        """

        if not token or not isinstance(token, str):
            raise InvalidTokenError()
        try:
            raw = base64.urlsafe_b64decode(token.strip() + "=" * (-len(token.strip()) % 4))
            if len(raw) <= NONCE_SIZE:
                raise InvalidTokenError()
            plaintext = self._aead.decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], _ASSOCIATED_DATA)
            return QRPayload.from_json(plaintext)
        except (InvalidTag, binascii.Error, ValueError, KeyError, TypeError, UnicodeDecodeError):
            raise InvalidTokenError() from None


__all__ = ["QRPayload", "QRCodec", "NONCE_SIZE"]
