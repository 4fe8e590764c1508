"""
Purchase history: buyers re-read their settlements (and QR tokens), owners
read what their venues sold.

Buyers only ever see their own transactions; a transaction id that belongs
to someone else is reported as not found. Venue listings are for the venue's
owner only.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from domain.catalog import ItemKind
from domain.errors import AccessDeniedError, NotFoundError
from domain.identity import Identity, StaffContext, StaffRole
from domain.settlement import Settlement
from repositories.interfaces import CatalogRepository, SettlementRepository

logger = logging.getLogger(__name__)


class PurchaseHistoryService:
    def __init__(self, settlements: SettlementRepository, catalog: CatalogRepository) -> None:
        self._settlements = settlements
        self._catalog = catalog

    def list_for(self, identity: Identity, kind: Optional[ItemKind] = None) -> List[Settlement]:
        return self._settlements.list_transactions_for(identity, kind)

    def get_for(self, identity: Identity, transaction_id: UUID) -> Settlement:
        """
        One of the buyer's settlements with its records and QR tokens.

        Raises:
            NotFoundError: unknown id, or a transaction bought by someone else.
        """

        settlement = self._settlements.get_transaction_for(identity, transaction_id)
        if settlement is None:
            raise NotFoundError("Purchase")
        return settlement

    def _check_owner(self, staff: StaffContext, venue_id: UUID) -> None:
        venue = self._catalog.get_venue(venue_id)
        if venue is None:
            raise NotFoundError("Venue")
        if staff.role != StaffRole.CLUB_OWNER or not staff.can_access(venue.venue_id, venue.owner_id):
            logger.warning(
                "Venue purchase history denied",
                extra={"user_id": str(staff.user_id), "role": staff.role.value, "venue_id": str(venue_id)},
            )
            raise AccessDeniedError()

    def list_for_venue(
        self, staff: StaffContext, venue_id: UUID, kind: Optional[ItemKind] = None
    ) -> List[Settlement]:
        """
        Everything a venue sold, newest first.

        Raises:
            NotFoundError: unknown venue.
            AccessDeniedError: caller is not the venue's owner.
        """

        self._check_owner(staff, venue_id)
        return self._settlements.list_venue_transactions(venue_id, kind)

    def get_for_venue(self, staff: StaffContext, venue_id: UUID, transaction_id: UUID) -> Settlement:
        self._check_owner(staff, venue_id)
        transaction = self._settlements.get_transaction(transaction_id)
        if transaction is None or transaction.venue_id != venue_id:
            raise NotFoundError("Purchase")
        return Settlement(transaction=transaction, records=tuple(self._settlements.list_records(transaction_id)))


__all__ = ["PurchaseHistoryService"]
