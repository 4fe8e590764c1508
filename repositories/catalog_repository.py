"""
Catalog repository (Supabase persistence).

Read-only view of venues, events and catalog items, plus the deactivation
sweep used by the periodic job. Inventory decrements happen inside the
settlement RPC, never here.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional
from uuid import UUID

from domain.catalog import (
    CatalogItem,
    Event,
    ItemKind,
    MenuVariant,
    OpenHours,
    RecurringWindow,
    TicketCategory,
    Venue,
)
from domain.money import to_decimal
from domain.time import parse_clock

from repositories.interfaces import CatalogRepository
from repositories.serialization import included_from_json, parse_date

_VENUES_TABLE: str = "venues"
_EVENTS_TABLE: str = "events"
_ITEMS_TABLE: str = "catalog_items"


def _parse_clock(value: Any):
    return parse_clock(str(value)[:5]) if value else None


def _row_to_venue(row: Mapping[str, Any]) -> Venue:
    hours = tuple(
        OpenHours(open=parse_clock(entry["open"]), close=parse_clock(entry["close"]), day=entry.get("day"))
        for entry in row.get("open_hours") or []
    )
    return Venue(
        venue_id=UUID(str(row["venue_id"])),
        name=str(row["name"]),
        owner_id=UUID(str(row["owner_id"])),
        window=RecurringWindow(open_days=frozenset(row.get("open_days") or []), hours=hours),
        menu_ordering_enabled=bool(row.get("menu_ordering_enabled", True)),
    )


def _row_to_event(row: Mapping[str, Any]) -> Event:
    return Event(
        event_id=UUID(str(row["event_id"])),
        venue_id=UUID(str(row["venue_id"])),
        name=str(row["name"]),
        event_date=parse_date(row["event_date"]),
        open_time=_parse_clock(row.get("open_time")),
        close_time=_parse_clock(row.get("close_time")),
        is_active=bool(row.get("is_active", True)),
        is_deleted=bool(row.get("is_deleted", False)),
    )


def _row_to_item(row: Mapping[str, Any]) -> CatalogItem:
    """
    Convert a catalog_items row (with embedded `events` and `menu_variants`).

    Prices go through to_decimal so a corrupt value reaches the pricing rules
    as None instead of failing the read.
    """

    event_row = row.get("events")
    variants = tuple(
        MenuVariant(
            variant_id=UUID(str(v["variant_id"])),
            name=str(v["name"]),
            price=to_decimal(v.get("price")),
            is_active=bool(v.get("is_active", True)) and not bool(v.get("is_deleted", False)),
        )
        for v in row.get("menu_variants") or []
    )
    inventory = row.get("inventory_remaining")
    max_per_person = row.get("max_per_person")
    return CatalogItem(
        item_id=UUID(str(row["item_id"])),
        venue_id=UUID(str(row["venue_id"])),
        name=str(row["name"]),
        kind=ItemKind(str(row["kind"])),
        base_price=to_decimal(row.get("base_price")),
        dynamic_pricing_enabled=bool(row.get("dynamic_pricing_enabled", False)),
        inventory_remaining=int(inventory) if inventory is not None else None,
        max_per_person=int(max_per_person) if max_per_person is not None else None,
        is_active=bool(row.get("is_active", True)),
        is_deleted=bool(row.get("is_deleted", False)),
        category=TicketCategory(row["category"]) if row.get("category") else None,
        event=_row_to_event(event_row) if event_row else None,
        available_date=parse_date(row.get("available_date")),
        variants=variants,
        included_menu_items=included_from_json(row.get("included_menu_items")),
    )


class SupabaseCatalogRepository(CatalogRepository):
    def __init__(self, client) -> None:
        self._client = client

    def get_item(self, item_id: UUID) -> Optional[CatalogItem]:
        response = (
            self._client.table(_ITEMS_TABLE)
            .select("*, events(*), menu_variants(*)")
            .eq("item_id", str(item_id))
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch catalog item: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_item(rows[0])

    def get_venue(self, venue_id: UUID) -> Optional[Venue]:
        response = (
            self._client.table(_VENUES_TABLE)
            .select("*")
            .eq("venue_id", str(venue_id))
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch venue: {error}")

        rows = getattr(response, "data", None) or []
        if not rows:
            return None
        return _row_to_venue(rows[0])

    def list_event_dates(self, venue_id: UUID) -> frozenset[date]:
        response = (
            self._client.table(_EVENTS_TABLE)
            .select("event_date")
            .eq("venue_id", str(venue_id))
            .eq("is_active", True)
            .eq("is_deleted", False)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list events: {error}")

        rows = getattr(response, "data", None) or []
        return frozenset(parse_date(row["event_date"]) for row in rows)

    def deactivate_expired(self, today: date) -> int:
        cutoff = today.isoformat()
        changed = 0

        for table, column in (
            (_EVENTS_TABLE, "event_date"),
            (_ITEMS_TABLE, "available_date"),
        ):
            response = (
                self._client.table(table)
                .update({"is_active": False})
                .eq("is_active", True)
                .lt(column, cutoff)
                .execute()
            )
            error = getattr(response, "error", None)
            if error:
                raise RuntimeError(f"Failed to deactivate expired rows in {table}: {error}")
            changed += len(getattr(response, "data", None) or [])

        # Event tickets carry their date on the event row.
        response = self._client.rpc("deactivate_expired_event_tickets", {"p_today": cutoff}).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to deactivate event tickets: {error}")
        changed += int(response.data or 0)
        return changed


__all__ = ["SupabaseCatalogRepository"]
