"""
Notification port for calendar sync and SMS/email confirmation.

Delivery is owned by external workers. The core hands over a finalized
booking notice after commit; failures are logged and never change the
booking outcome.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from booking_core.schemas.scheduling_schema import Booking, CustomerInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingNotice:
    """What downstream calendar/notification workers receive."""

    event: str  # "created" | "rescheduled" | "cancelled" | "confirmed" | "completed"
    booking_id: str
    confirmation_code: str
    technician_id: Optional[str]
    start: datetime
    end: datetime
    customer: Optional[CustomerInfo]

    @classmethod
    def from_booking(cls, event: str, booking: Booking) -> "BookingNotice":
        return cls(
            event=event,
            booking_id=booking.id,
            confirmation_code=booking.confirmation_code,
            technician_id=booking.technician_id,
            start=booking.start_time,
            end=booking.end_time,
            customer=booking.customer,
        )


class Notifier(Protocol):
    def send(self, notice: BookingNotice) -> None:
        ...


class NullNotifier:
    """Discards notices. Default when no downstream is wired."""

    def send(self, notice: BookingNotice) -> None:
        logger.debug("Notice dropped (no notifier): %s %s", notice.event, notice.booking_id)


class RecordingNotifier:
    """Keeps notices in memory for assertions and the CLI demo."""

    def __init__(self) -> None:
        self.sent: list[BookingNotice] = []

    def send(self, notice: BookingNotice) -> None:
        self.sent.append(notice)


def dispatch_best_effort(notifier: Notifier, notice: BookingNotice) -> bool:
    """Send a notice, logging instead of raising on failure."""
    try:
        notifier.send(notice)
    except Exception:
        logger.exception(
            "Notification for %s (%s) failed; booking unaffected",
            notice.booking_id, notice.event,
        )
        return False
    return True
