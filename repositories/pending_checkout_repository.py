"""
Pending checkout store (Supabase persistence).

Initiated checkouts survive process restarts and are shared between
instances. Rows past `expires_at_utc` are treated as missing and removed on
read.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from domain.settlement import PendingCheckout
from domain.time import utc_now

from repositories.interfaces import PendingCheckoutStore
from repositories.serialization import (
    parse_utc_datetime,
    pending_checkout_from_json,
    pending_checkout_to_json,
    to_iso_utc,
)

_PENDING_TABLE: str = "pending_checkouts"


class SupabasePendingCheckoutStore(PendingCheckoutStore):
    def __init__(self, client, clock: Callable[[], datetime] = utc_now) -> None:
        self._client = client
        self._clock = clock

    def put(self, checkout: PendingCheckout, ttl: timedelta) -> None:
        payload = {
            "reference": checkout.reference,
            "payload": pending_checkout_to_json(checkout),
            "expires_at_utc": to_iso_utc(self._clock() + ttl, name="expires_at"),
        }
        response = (
            self._client.table(_PENDING_TABLE).upsert(payload, on_conflict="reference").execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to store pending checkout: {error}")

    def get(self, reference: str) -> Optional[PendingCheckout]:
        response = (
            self._client.table(_PENDING_TABLE)
            .select("*")
            .eq("reference", reference)
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch pending checkout: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        row = rows[0]
        if parse_utc_datetime(row["expires_at_utc"]) <= self._clock():
            self.delete(reference)
            return None
        return pending_checkout_from_json(row["payload"])

    def delete(self, reference: str) -> None:
        response = self._client.table(_PENDING_TABLE).delete().eq("reference", reference).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to delete pending checkout: {error}")


__all__ = ["SupabasePendingCheckoutStore"]
