"""
Cart repository (Supabase persistence).

Both cart kinds live in one `cart_lines` table keyed by `identity_key`
("user:<uuid>" or "session:<token>") and `kind`. No business rules here; the
cart service validates every mutation against what this returns.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from domain.cart import CartLine
from domain.catalog import ItemKind
from domain.identity import Identity

from repositories.interfaces import CartRepository
from repositories.serialization import cart_line_to_row, row_to_cart_line, to_iso_utc

_CART_TABLE: str = "cart_lines"


class SupabaseCartRepository(CartRepository):
    def __init__(self, client) -> None:
        self._client = client

    def list_lines(self, identity: Identity, kind: ItemKind) -> list[CartLine]:
        response = (
            self._client.table(_CART_TABLE)
            .select("*")
            .eq("identity_key", identity.key)
            .eq("kind", kind.value)
            .order("created_at_utc")
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list cart lines: {error}")

        rows = getattr(response, "data", None) or []
        return [row_to_cart_line(row) for row in rows]

    def get_line(self, line_id: UUID) -> Optional[CartLine]:
        response = (
            self._client.table(_CART_TABLE)
            .select("*")
            .eq("line_id", str(line_id))
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to get cart line: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return row_to_cart_line(rows[0])

    def save_line(self, line: CartLine) -> CartLine:
        response = (
            self._client.table(_CART_TABLE)
            .upsert(cart_line_to_row(line), on_conflict="line_id")
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to save cart line: {error}")
        return line

    def delete_line(self, line_id: UUID) -> bool:
        response = self._client.table(_CART_TABLE).delete().eq("line_id", str(line_id)).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to delete cart line: {error}")
        return bool(getattr(response, "data", None))

    def clear(self, identity: Identity, kind: ItemKind) -> int:
        response = (
            self._client.table(_CART_TABLE)
            .delete()
            .eq("identity_key", identity.key)
            .eq("kind", kind.value)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to clear cart: {error}")
        return len(getattr(response, "data", None) or [])

    def reserved_quantity(
        self,
        item_id: UUID,
        target_date: Optional[date],
        active_since: datetime,
        exclude_line_id: Optional[UUID] = None,
    ) -> int:
        query = (
            self._client.table(_CART_TABLE)
            .select("line_id, quantity")
            .eq("item_id", str(item_id))
            .gt("created_at_utc", to_iso_utc(active_since, name="active_since"))
        )
        if target_date is not None:
            query = query.eq("target_date", target_date.isoformat())
        else:
            query = query.is_("target_date", "null")

        response = query.execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to sum reserved quantity: {error}")

        rows = getattr(response, "data", None) or []
        excluded = str(exclude_line_id) if exclude_line_id is not None else None
        return sum(int(row["quantity"]) for row in rows if str(row["line_id"]) != excluded)


__all__ = ["SupabaseCartRepository"]
