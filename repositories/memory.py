"""
In-memory stores.

Used by the test suite and for local development (STORAGE_BACKEND=memory).
A single lock shared by the catalog and settlement stores stands in for the
database's serialization of conflicting writes: settlement and the used-flag
flips run entirely under it.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence
from uuid import UUID

from domain.cart import CartLine
from domain.catalog import CatalogItem, Event, ItemKind, Venue
from domain.errors import InsufficientInventoryError
from domain.identity import Identity
from domain.settlement import (
    InventoryDecrement,
    PendingCheckout,
    PurchaseRecord,
    Settlement,
    SettlementTransaction,
)
from domain.time import utc_now

from repositories.interfaces import (
    CartRepository,
    CatalogRepository,
    DuplicateSettlementError,
    PendingCheckoutStore,
    SettlementRepository,
)

Clock = Callable[[], datetime]


class InMemoryCatalog(CatalogRepository):
    def __init__(self, lock: Optional[threading.RLock] = None) -> None:
        self.lock = lock or threading.RLock()
        self._venues: dict[UUID, Venue] = {}
        self._items: dict[UUID, CatalogItem] = {}
        self._events: dict[UUID, Event] = {}

    # Seeding helpers (catalog administration lives outside this service).

    def add_venue(self, venue: Venue) -> Venue:
        with self.lock:
            self._venues[venue.venue_id] = venue
        return venue

    def add_event(self, event: Event) -> Event:
        with self.lock:
            self._events[event.event_id] = event
        return event

    def add_item(self, item: CatalogItem) -> CatalogItem:
        with self.lock:
            self._items[item.item_id] = item
        return item

    def get_item(self, item_id: UUID) -> Optional[CatalogItem]:
        with self.lock:
            return self._items.get(item_id)

    def get_venue(self, venue_id: UUID) -> Optional[Venue]:
        with self.lock:
            return self._venues.get(venue_id)

    def list_event_dates(self, venue_id: UUID) -> frozenset[date]:
        with self.lock:
            return frozenset(
                event.event_date
                for event in self._events.values()
                if event.venue_id == venue_id and event.is_active and not event.is_deleted
            )

    def deactivate_expired(self, today: date) -> int:
        changed = 0
        with self.lock:
            for event_id, event in list(self._events.items()):
                if event.is_active and event.event_date < today:
                    self._events[event_id] = replace(event, is_active=False)
                    changed += 1
            for item_id, item in list(self._items.items()):
                fixed = item.fixed_date()
                if item.is_active and fixed is not None and fixed < today:
                    event = item.event
                    if event is not None:
                        event = replace(event, is_active=False)
                    self._items[item_id] = replace(item, is_active=False, event=event)
                    changed += 1
        return changed

    def _decrement(self, decrement: InventoryDecrement) -> CatalogItem:
        """Caller holds the lock."""

        item = self._items.get(decrement.item_id)
        if item is None:
            raise RuntimeError(f"Catalog item {decrement.item_id} vanished during settlement")
        if item.inventory_remaining is None:
            return item
        if item.inventory_remaining < decrement.quantity:
            raise InsufficientInventoryError(item.name, item.inventory_remaining)
        return replace(item, inventory_remaining=item.inventory_remaining - decrement.quantity)


class InMemoryCartRepository(CartRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lines: dict[UUID, CartLine] = {}

    def list_lines(self, identity: Identity, kind: ItemKind) -> list[CartLine]:
        with self._lock:
            lines = [
                line
                for line in self._lines.values()
                if line.identity == identity and line.kind == kind
            ]
        return sorted(lines, key=lambda line: line.created_at)

    def get_line(self, line_id: UUID) -> Optional[CartLine]:
        with self._lock:
            return self._lines.get(line_id)

    def save_line(self, line: CartLine) -> CartLine:
        with self._lock:
            self._lines[line.line_id] = line
        return line

    def delete_line(self, line_id: UUID) -> bool:
        with self._lock:
            return self._lines.pop(line_id, None) is not None

    def clear(self, identity: Identity, kind: ItemKind) -> int:
        with self._lock:
            doomed = [
                line_id
                for line_id, line in self._lines.items()
                if line.identity == identity and line.kind == kind
            ]
            for line_id in doomed:
                del self._lines[line_id]
        return len(doomed)

    def reserved_quantity(
        self,
        item_id: UUID,
        target_date: Optional[date],
        active_since: datetime,
        exclude_line_id: Optional[UUID] = None,
    ) -> int:
        with self._lock:
            return sum(
                line.quantity
                for line in self._lines.values()
                if line.item_id == item_id
                and line.target_date == target_date
                and line.created_at > active_since
                and line.line_id != exclude_line_id
            )


class InMemorySettlementRepository(SettlementRepository):
    """Settles against an InMemoryCatalog under the catalog's lock."""

    def __init__(self, catalog: InMemoryCatalog) -> None:
        self._catalog = catalog
        self._transactions: dict[UUID, SettlementTransaction] = {}
        self._records: dict[UUID, PurchaseRecord] = {}
        self._by_reference: dict[str, UUID] = {}

    @property
    def _lock(self) -> threading.RLock:
        return self._catalog.lock

    def _settlement_for(self, transaction_id: UUID) -> Settlement:
        records = tuple(
            sorted(
                (r for r in self._records.values() if r.transaction_id == transaction_id),
                key=lambda r: (r.created_at, str(r.record_id)),
            )
        )
        return Settlement(transaction=self._transactions[transaction_id], records=records)

    def get_by_provider_reference(self, provider_reference: str) -> Optional[Settlement]:
        with self._lock:
            transaction_id = self._by_reference.get(provider_reference)
            if transaction_id is None:
                return None
            return self._settlement_for(transaction_id)

    def settle(self, settlement: Settlement, decrements: Sequence[InventoryDecrement]) -> Settlement:
        reference = settlement.transaction.provider_reference
        with self._lock:
            if reference in self._by_reference:
                raise DuplicateSettlementError(reference)

            totals: dict[UUID, int] = {}
            for decrement in decrements:
                totals[decrement.item_id] = totals.get(decrement.item_id, 0) + decrement.quantity

            # Validate every decrement before applying any.
            updated = {
                item_id: self._catalog._decrement(InventoryDecrement(item_id=item_id, quantity=quantity))
                for item_id, quantity in totals.items()
            }
            for item_id, item in updated.items():
                self._catalog._items[item_id] = item
            transaction = settlement.transaction
            self._transactions[transaction.transaction_id] = transaction
            self._by_reference[reference] = transaction.transaction_id
            for record in settlement.records:
                self._records[record.record_id] = record
            return self._settlement_for(transaction.transaction_id)

    def get_transaction(self, transaction_id: UUID) -> Optional[SettlementTransaction]:
        with self._lock:
            return self._transactions.get(transaction_id)

    def get_record(self, record_id: UUID) -> Optional[PurchaseRecord]:
        with self._lock:
            return self._records.get(record_id)

    def list_records(self, transaction_id: UUID) -> list[PurchaseRecord]:
        with self._lock:
            if transaction_id not in self._transactions:
                return []
            return list(self._settlement_for(transaction_id).records)

    def _newest_first(self, matches: Callable[[SettlementTransaction], bool]) -> list[Settlement]:
        with self._lock:
            transactions = sorted(
                (t for t in self._transactions.values() if matches(t)),
                key=lambda t: (t.created_at, str(t.transaction_id)),
                reverse=True,
            )
            return [self._settlement_for(t.transaction_id) for t in transactions]

    def list_transactions_for(self, identity: Identity, kind: Optional[ItemKind] = None) -> list[Settlement]:
        return self._newest_first(lambda t: t.identity == identity and (kind is None or t.kind == kind))

    def get_transaction_for(self, identity: Identity, transaction_id: UUID) -> Optional[Settlement]:
        with self._lock:
            transaction = self._transactions.get(transaction_id)
            if transaction is None or transaction.identity != identity:
                return None
            return self._settlement_for(transaction_id)

    def list_venue_transactions(self, venue_id: UUID, kind: Optional[ItemKind] = None) -> list[Settlement]:
        return self._newest_first(lambda t: t.venue_id == venue_id and (kind is None or t.kind == kind))

    def mark_record_used(self, record_id: UUID, used_at: datetime) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.is_used:
                return False
            self._records[record_id] = record.mark_used(used_at)
            return True

    def mark_record_menu_used(self, record_id: UUID, used_at: datetime) -> bool:
        with self._lock:
            record = self._records.get(record_id)
            if record is None or record.menu_is_used:
                return False
            self._records[record_id] = record.mark_menu_used(used_at)
            return True

    def mark_transaction_used(self, transaction_id: UUID, used_at: datetime) -> bool:
        with self._lock:
            transaction = self._transactions.get(transaction_id)
            if transaction is None or transaction.is_used:
                return False
            self._transactions[transaction_id] = replace(transaction, is_used=True, used_at=used_at)
            for record_id, record in list(self._records.items()):
                if record.transaction_id == transaction_id and not record.is_used:
                    self._records[record_id] = record.mark_used(used_at)
            return True


class InMemoryPendingCheckoutStore(PendingCheckoutStore):
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[PendingCheckout, datetime]] = {}

    def put(self, checkout: PendingCheckout, ttl: timedelta) -> None:
        with self._lock:
            self._entries[checkout.reference] = (checkout, self._clock() + ttl)

    def get(self, reference: str) -> Optional[PendingCheckout]:
        with self._lock:
            entry = self._entries.get(reference)
            if entry is None:
                return None
            checkout, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[reference]
                return None
            return checkout

    def delete(self, reference: str) -> None:
        with self._lock:
            self._entries.pop(reference, None)


__all__ = [
    "InMemoryCatalog",
    "InMemoryCartRepository",
    "InMemorySettlementRepository",
    "InMemoryPendingCheckoutStore",
]
