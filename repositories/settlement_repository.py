"""
Settlement repository (Supabase persistence).

Settlement is one call to the `settle_checkout_atomic()` PostgreSQL function,
which in a single transaction:
- rejects a provider_reference that is already settled
- locks each catalog item row (FOR UPDATE) and checks inventory_remaining
- decrements inventory
- inserts the transaction and its purchase records

Used flags are flipped with conditional updates (`is_used = false`) so two
concurrent redemptions cannot both succeed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Sequence
from uuid import UUID

from postgrest.exceptions import APIError

from domain.catalog import ItemKind
from domain.errors import InsufficientInventoryError
from domain.identity import Identity
from domain.settlement import (
    InventoryDecrement,
    PurchaseRecord,
    Settlement,
    SettlementTransaction,
)

from repositories.interfaces import DuplicateSettlementError, SettlementRepository
from repositories.serialization import (
    record_to_row,
    row_to_record,
    row_to_transaction,
    to_iso_utc,
    transaction_to_row,
)

_TRANSACTIONS_TABLE: str = "settlement_transactions"
_RECORDS_TABLE: str = "purchase_records"


def _rpc_result(call) -> Mapping[str, Any]:
    """
    Execute an RPC and return its JSON body.

    supabase-py raises APIError when a PostgreSQL function returns JSON, for
    both success and error bodies, so the body is recovered from the error.
    """

    try:
        response = call.execute()
    except APIError as e:
        try:
            body = e.json() if callable(getattr(e, "json", None)) else {}
        except ValueError:
            body = {}
        if isinstance(body, dict) and "success" in body:
            return body
        raise RuntimeError(f"Settlement RPC failed: {e}") from e

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Settlement RPC failed: {error}")
    return response.data or {}


class SupabaseSettlementRepository(SettlementRepository):
    def __init__(self, client) -> None:
        self._client = client

    def _select_one(self, table: str, column: str, value: str) -> Optional[Mapping[str, Any]]:
        response = self._client.table(table).select("*").eq(column, value).limit(1).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch from {table}: {error}")
        rows = getattr(response, "data", None) or []
        return rows[0] if rows else None

    def get_by_provider_reference(self, provider_reference: str) -> Optional[Settlement]:
        row = self._select_one(_TRANSACTIONS_TABLE, "provider_reference", provider_reference)
        if row is None:
            return None
        transaction = row_to_transaction(row)
        records = self.list_records(transaction.transaction_id)
        return Settlement(transaction=transaction, records=tuple(records))

    def settle(self, settlement: Settlement, decrements: Sequence[InventoryDecrement]) -> Settlement:
        payload = {
            "p_transaction": transaction_to_row(settlement.transaction),
            "p_records": [record_to_row(record) for record in settlement.records],
            "p_decrements": [
                {"item_id": str(d.item_id), "quantity": d.quantity} for d in decrements
            ],
        }
        result = _rpc_result(self._client.rpc("settle_checkout_atomic", payload))

        if result.get("success"):
            return settlement

        code = result.get("error")
        if code == "DUPLICATE_REFERENCE":
            raise DuplicateSettlementError(settlement.transaction.provider_reference)
        if code == "INSUFFICIENT_INVENTORY":
            raise InsufficientInventoryError(
                str(result.get("item_name", "item")), int(result.get("available", 0))
            )
        raise RuntimeError(f"Settlement failed: {code}: {result.get('message')}")

    def get_transaction(self, transaction_id: UUID) -> Optional[SettlementTransaction]:
        row = self._select_one(_TRANSACTIONS_TABLE, "transaction_id", str(transaction_id))
        return row_to_transaction(row) if row is not None else None

    def get_record(self, record_id: UUID) -> Optional[PurchaseRecord]:
        row = self._select_one(_RECORDS_TABLE, "record_id", str(record_id))
        return row_to_record(row) if row is not None else None

    def list_records(self, transaction_id: UUID) -> list[PurchaseRecord]:
        response = (
            self._client.table(_RECORDS_TABLE)
            .select("*")
            .eq("transaction_id", str(transaction_id))
            .order("created_at_utc")
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list purchase records: {error}")
        rows = getattr(response, "data", None) or []
        return [row_to_record(row) for row in rows]

    def _settlements_where(
        self, column: str, value: str, kind: Optional[ItemKind] = None
    ) -> list[Settlement]:
        query = self._client.table(_TRANSACTIONS_TABLE).select("*").eq(column, value)
        if kind is not None:
            query = query.eq("kind", kind.value)
        response = query.order("created_at_utc", desc=True).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list transactions: {error}")
        transactions = [row_to_transaction(row) for row in getattr(response, "data", None) or []]
        if not transactions:
            return []

        response = (
            self._client.table(_RECORDS_TABLE)
            .select("*")
            .in_("transaction_id", [str(t.transaction_id) for t in transactions])
            .order("created_at_utc")
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list purchase records: {error}")
        by_transaction: dict[UUID, list[PurchaseRecord]] = {}
        for row in getattr(response, "data", None) or []:
            record = row_to_record(row)
            by_transaction.setdefault(record.transaction_id, []).append(record)

        return [
            Settlement(transaction=t, records=tuple(by_transaction.get(t.transaction_id, [])))
            for t in transactions
        ]

    def list_transactions_for(self, identity: Identity, kind: Optional[ItemKind] = None) -> list[Settlement]:
        return self._settlements_where("identity_key", identity.key, kind)

    def get_transaction_for(self, identity: Identity, transaction_id: UUID) -> Optional[Settlement]:
        transaction = self.get_transaction(transaction_id)
        if transaction is None or transaction.identity != identity:
            return None
        return Settlement(transaction=transaction, records=tuple(self.list_records(transaction_id)))

    def list_venue_transactions(self, venue_id: UUID, kind: Optional[ItemKind] = None) -> list[Settlement]:
        return self._settlements_where("venue_id", str(venue_id), kind)

    def _flip(self, table: str, key: str, value: str, flag: str, stamp: str, used_at: datetime) -> bool:
        response = (
            self._client.table(table)
            .update({flag: True, stamp: to_iso_utc(used_at, name="used_at")})
            .eq(key, value)
            .eq(flag, False)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to mark {table} used: {error}")
        # No rows back: missing, or another scan won the race.
        return bool(getattr(response, "data", None))

    def mark_record_used(self, record_id: UUID, used_at: datetime) -> bool:
        return self._flip(_RECORDS_TABLE, "record_id", str(record_id), "is_used", "used_at_utc", used_at)

    def mark_record_menu_used(self, record_id: UUID, used_at: datetime) -> bool:
        return self._flip(
            _RECORDS_TABLE, "record_id", str(record_id), "menu_is_used", "menu_used_at_utc", used_at
        )

    def mark_transaction_used(self, transaction_id: UUID, used_at: datetime) -> bool:
        if not self._flip(
            _TRANSACTIONS_TABLE, "transaction_id", str(transaction_id), "is_used", "used_at_utc", used_at
        ):
            return False
        response = (
            self._client.table(_RECORDS_TABLE)
            .update({"is_used": True, "used_at_utc": to_iso_utc(used_at, name="used_at")})
            .eq("transaction_id", str(transaction_id))
            .eq("is_used", False)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to mark menu records used: {error}")
        return True


__all__ = ["SupabaseSettlementRepository"]
