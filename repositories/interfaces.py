"""
Store interfaces (repository pattern).

Stores are swappable (in-memory or Supabase) and return domain models. They
do not enforce business rules; the two writes that must be atomic (settlement
and the one-time used flags) are single calls here so each backend can make
them one unit of work.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import Optional, Sequence
from uuid import UUID

from domain.cart import CartLine
from domain.catalog import CatalogItem, ItemKind, Venue
from domain.identity import Identity
from domain.settlement import (
    InventoryDecrement,
    PendingCheckout,
    PurchaseRecord,
    Settlement,
    SettlementTransaction,
)


class DuplicateSettlementError(Exception):
    """A settlement for this provider reference already exists."""

    def __init__(self, provider_reference: str) -> None:
        super().__init__(f"Settlement already exists for reference {provider_reference}")
        self.provider_reference = provider_reference


class CatalogRepository(ABC):
    """Read model of venues, events and catalog items."""

    @abstractmethod
    def get_item(self, item_id: UUID) -> Optional[CatalogItem]:
        """Return the current state of an item, or None if it does not exist."""
        ...

    @abstractmethod
    def get_venue(self, venue_id: UUID) -> Optional[Venue]:
        ...

    @abstractmethod
    def list_event_dates(self, venue_id: UUID) -> frozenset[date]:
        """Dates with an active, non-deleted event at the venue."""
        ...

    @abstractmethod
    def deactivate_expired(self, today: date) -> int:
        """
        Deactivate events and fixed-date tickets dated before `today`.

        Idempotent. Returns how many rows changed.
        """
        ...


class CartRepository(ABC):
    """Cart lines of both kinds, keyed by identity."""

    @abstractmethod
    def list_lines(self, identity: Identity, kind: ItemKind) -> list[CartLine]:
        """Lines of one cart, oldest first."""
        ...

    @abstractmethod
    def get_line(self, line_id: UUID) -> Optional[CartLine]:
        ...

    @abstractmethod
    def save_line(self, line: CartLine) -> CartLine:
        """Insert or replace a line by line_id (last write wins)."""
        ...

    @abstractmethod
    def delete_line(self, line_id: UUID) -> bool:
        ...

    @abstractmethod
    def clear(self, identity: Identity, kind: ItemKind) -> int:
        ...

    @abstractmethod
    def reserved_quantity(
        self,
        item_id: UUID,
        target_date: Optional[date],
        active_since: datetime,
        exclude_line_id: Optional[UUID] = None,
    ) -> int:
        """
        Quantity held by cart lines for (item, date) created after
        `active_since`, excluding `exclude_line_id`.
        """
        ...


class SettlementRepository(ABC):
    """Settled transactions and their purchase records."""

    @abstractmethod
    def get_by_provider_reference(self, provider_reference: str) -> Optional[Settlement]:
        ...

    @abstractmethod
    def settle(self, settlement: Settlement, decrements: Sequence[InventoryDecrement]) -> Settlement:
        """
        Decrement inventory and persist the transaction with its records as
        one unit of work.

        Raises:
            InsufficientInventoryError: an item would go below zero; nothing
                is persisted.
            DuplicateSettlementError: the provider reference is already
                settled; nothing is persisted.
        """
        ...

    @abstractmethod
    def get_transaction(self, transaction_id: UUID) -> Optional[SettlementTransaction]:
        ...

    @abstractmethod
    def get_record(self, record_id: UUID) -> Optional[PurchaseRecord]:
        ...

    @abstractmethod
    def list_records(self, transaction_id: UUID) -> list[PurchaseRecord]:
        ...

    @abstractmethod
    def list_transactions_for(self, identity: Identity, kind: Optional[ItemKind] = None) -> list[Settlement]:
        """Settlements bought by `identity`, newest first."""
        ...

    @abstractmethod
    def get_transaction_for(self, identity: Identity, transaction_id: UUID) -> Optional[Settlement]:
        """The settlement if it exists and belongs to `identity`."""
        ...

    @abstractmethod
    def list_venue_transactions(self, venue_id: UUID, kind: Optional[ItemKind] = None) -> list[Settlement]:
        """Settlements sold by a venue, newest first."""
        ...

    @abstractmethod
    def mark_record_used(self, record_id: UUID, used_at: datetime) -> bool:
        """Flip is_used False -> True. Returns False if it was already used."""
        ...

    @abstractmethod
    def mark_record_menu_used(self, record_id: UUID, used_at: datetime) -> bool:
        """Flip menu_is_used False -> True. Returns False if it was already used."""
        ...

    @abstractmethod
    def mark_transaction_used(self, transaction_id: UUID, used_at: datetime) -> bool:
        """Flip a menu transaction and all its records to used in one step."""
        ...


class PendingCheckoutStore(ABC):
    """TTL key-value store of initiated checkouts, keyed by provider reference."""

    @abstractmethod
    def put(self, checkout: PendingCheckout, ttl: timedelta) -> None:
        ...

    @abstractmethod
    def get(self, reference: str) -> Optional[PendingCheckout]:
        """Return the checkout, or None if it is missing or its TTL elapsed."""
        ...

    @abstractmethod
    def delete(self, reference: str) -> None:
        ...


__all__ = [
    "DuplicateSettlementError",
    "CatalogRepository",
    "CartRepository",
    "SettlementRepository",
    "PendingCheckoutStore",
]
