"""
Notification sender.

Delivering redemption tokens to the buyer (email rendering, SMTP) lives
outside this service. The sender here records what would be delivered; a real
transport implements the same interface.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from domain.settlement import Settlement

logger = logging.getLogger(__name__)


class NotificationSender(ABC):
    @abstractmethod
    def send_redemption_tokens(self, settlement: Settlement) -> None:
        """Deliver the settlement's QR tokens to its buyer."""
        ...


class LoggingNotificationSender(NotificationSender):
    """Logs each delivery and keeps it in `sent` for inspection."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.sent: list[Settlement] = []

    def send_redemption_tokens(self, settlement: Settlement) -> None:
        with self._lock:
            self.sent.append(settlement)
        logger.info(
            "Redemption tokens queued for delivery",
            extra={
                "transaction_id": str(settlement.transaction.transaction_id),
                "buyer_email": settlement.transaction.buyer_email,
                "records": len(settlement.records),
            },
        )


def notify_settlement(sender: NotificationSender, settlement: Settlement) -> bool:
    """
    Fire-and-forget delivery. A failure is logged and never re-raised: the
    settlement is already committed and must stand.
    """

    try:
        sender.send_redemption_tokens(settlement)
    except Exception:
        logger.warning(
            "Failed to send redemption tokens",
            extra={"transaction_id": str(settlement.transaction.transaction_id)},
            exc_info=True,
        )
        return False
    return True


__all__ = ["NotificationSender", "LoggingNotificationSender", "notify_settlement"]
