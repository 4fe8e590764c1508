"""
Redemption service: staff scan a QR token at the door or the bar.

preview() validates without side effects; consume() validates and flips the
one-time used flag. The flip is a single conditional write in the store, so
two staff scanning the same code at once cannot both succeed; the loser gets
AlreadyUsedError carrying the winner's used_at.

Access rules:
- bouncers and waiters only at the venue they work for
- owners only at venues they own (never another owner's venue)
- menu_from_ticket tokens are for the bar: waiters and owners, not bouncers
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from domain.errors import (
    AccessDeniedError,
    AlreadyUsedError,
    InvalidTokenError,
    RedemptionDateError,
    RedemptionError,
    TokenTypeError,
)
from domain.identity import StaffContext, StaffRole
from domain.settlement import PurchaseRecord, RedemptionType, SettlementTransaction
from domain.time import local_today, utc_now
from repositories.interfaces import CatalogRepository, SettlementRepository
from services.qr_service import QRCodec, QRPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RedemptionView:
    """
    What staff see for a scanned token.

    For ticket and menu_from_ticket tokens `records` holds the one record;
    for menu tokens it holds every line of the transaction.
    """

    payload: QRPayload
    transaction: SettlementTransaction
    records: List[PurchaseRecord]
    target_date: Optional[date]
    is_used: bool
    used_at: Optional[datetime]


class RedemptionService:
    def __init__(
        self,
        settlements: SettlementRepository,
        catalog: CatalogRepository,
        codec: QRCodec,
        tz: ZoneInfo,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settlements = settlements
        self._catalog = catalog
        self._codec = codec
        self._tz = tz
        self._clock = clock

    def _load(self, payload: QRPayload) -> RedemptionView:
        if payload.type == RedemptionType.MENU:
            transaction = self._settlements.get_transaction(payload.id)
            if transaction is None:
                raise InvalidTokenError()
            return RedemptionView(
                payload=payload,
                transaction=transaction,
                records=self._settlements.list_records(transaction.transaction_id),
                target_date=transaction.target_date,
                is_used=transaction.is_used,
                used_at=transaction.used_at,
            )

        record = self._settlements.get_record(payload.id)
        if record is None:
            raise InvalidTokenError()
        transaction = self._settlements.get_transaction(record.transaction_id)
        if transaction is None:
            raise InvalidTokenError()
        if payload.type == RedemptionType.MENU_FROM_TICKET:
            if not record.has_included_menu:
                raise InvalidTokenError()
            is_used, used_at = record.menu_is_used, record.menu_used_at
        else:
            is_used, used_at = record.is_used, record.used_at
        return RedemptionView(
            payload=payload,
            transaction=transaction,
            records=[record],
            target_date=record.target_date,
            is_used=is_used,
            used_at=used_at,
        )

    def _check_access(self, view: RedemptionView, staff: StaffContext) -> None:
        venue_id = view.transaction.venue_id
        if venue_id != view.payload.venue_id:
            raise InvalidTokenError()
        venue = self._catalog.get_venue(venue_id)
        if venue is None or not staff.can_access(venue.venue_id, venue.owner_id):
            raise AccessDeniedError()
        if view.payload.type == RedemptionType.MENU_FROM_TICKET and staff.role == StaffRole.BOUNCER:
            raise AccessDeniedError("Door staff cannot redeem menu items")

    def _check_date(self, view: RedemptionView) -> None:
        if view.target_date is None:
            return
        if view.target_date < local_today(self._clock(), self._tz):
            raise RedemptionDateError(view.target_date.isoformat())

    def _validate(
        self, token: str, staff: StaffContext, expected_type: Optional[RedemptionType]
    ) -> RedemptionView:
        try:
            payload = self._codec.decode(token)
            if expected_type is not None and payload.type != expected_type:
                raise TokenTypeError(expected_type.value, payload.type.value)
            view = self._load(payload)
            self._check_access(view, staff)
            self._check_date(view)
        except RedemptionError as e:
            logger.warning(
                "Redemption denied",
                extra={"code": e.code.value, "staff_id": str(staff.user_id), "role": staff.role.value},
            )
            raise
        return view

    def preview(
        self, token: str, staff: StaffContext, expected_type: Optional[RedemptionType] = None
    ) -> RedemptionView:
        """
        Decrypt and validate a token without consuming it.

        Raises:
            InvalidTokenError: undecryptable, unknown record, or venue mismatch.
            TokenTypeError: the token is not of `expected_type`.
            AccessDeniedError: staff has no access to the record's venue.
            RedemptionDateError: the ticket's date has passed.
        """

        return self._validate(token, staff, expected_type)

    def consume(
        self, token: str, staff: StaffContext, expected_type: Optional[RedemptionType] = None
    ) -> RedemptionView:
        """
        Validate and mark the token used, exactly once.

        Raises everything preview() raises, plus AlreadyUsedError with the
        original used_at when the token was already consumed.
        """

        view = self._validate(token, staff, expected_type)
        now = self._clock()
        payload = view.payload

        if payload.type == RedemptionType.MENU:
            flipped = self._settlements.mark_transaction_used(payload.id, now)
        elif payload.type == RedemptionType.MENU_FROM_TICKET:
            flipped = self._settlements.mark_record_menu_used(payload.id, now)
        else:
            flipped = self._settlements.mark_record_used(payload.id, now)

        if not flipped:
            used_at = self._load(payload).used_at
            logger.warning(
                "Double redemption attempt",
                extra={
                    "token_type": payload.type.value,
                    "id": str(payload.id),
                    "used_at": used_at.isoformat() if used_at else None,
                    "staff_id": str(staff.user_id),
                },
            )
            raise AlreadyUsedError(used_at)

        logger.info(
            "Token redeemed",
            extra={"token_type": payload.type.value, "id": str(payload.id), "staff_id": str(staff.user_id)},
        )
        return self._load(payload)


def staff_context(user_id: UUID, role: str, venue_id: Optional[UUID] = None) -> StaffContext:
    """Build a StaffContext from request values; unknown roles are denied."""

    try:
        staff_role = StaffRole(role)
    except ValueError:
        raise AccessDeniedError("Unknown staff role") from None
    return StaffContext(user_id=user_id, role=staff_role, venue_id=venue_id)


__all__ = ["RedemptionView", "RedemptionService", "staff_context"]
