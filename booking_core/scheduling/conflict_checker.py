"""
Authoritative conflict check for booking creation and rescheduling.

The availability engine answers "what looks free"; this module answers
"can this booking be committed". Existing bookings are read inside the
store transaction that performs the write, never from a snapshot taken
earlier, so two callers racing for the same window cannot both succeed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from booking_core.config import settings
from booking_core.exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    BookingValidationError,
)
from booking_core.schemas.classification_schema import ServiceType
from booking_core.schemas.scheduling_schema import Booking
from booking_core.scheduling.availability import (
    event_guarded_interval,
    find_conflicting_event,
    neighbour_window,
)
from booking_core.scheduling.buffers import get_buffer
from booking_core.store.base import BookingStore, BookingTransaction
from booking_core.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class ConflictResult:
    can_book: bool
    reason: Optional[str] = None
    conflicting_booking_id: Optional[str] = None


def _describe(conflict: Booking) -> str:
    _, busy_until = event_guarded_interval(conflict)
    return (
        f"Technician is already booked from {conflict.start_time.strftime('%H:%M')} "
        f"to {conflict.end_time.strftime('%H:%M')} and busy until "
        f"{busy_until.strftime('%H:%M')} (including setup/cleanup time)"
    )


def _require_technician(technician_id: Optional[str]) -> None:
    # Writes lock one technician's calendar; an unassigned write would race all of them
    if technician_id is None:
        raise BookingValidationError(["A technician must be assigned before booking"])


class ConflictChecker:
    """Check-and-write against the booking store."""

    def __init__(self, store: BookingStore) -> None:
        self.store = store

    def _check(
        self,
        tx: Optional[BookingTransaction],
        technician_id: Optional[str],
        start: datetime,
        end: datetime,
        service_type: Union[ServiceType, str, None],
        exclude_id: Optional[str] = None,
    ) -> ConflictResult:
        buffer = get_buffer(service_type)
        window_start, window_end = neighbour_window(start, end, buffer)
        if tx is not None:
            events = tx.find_bookings(technician_id, window_start, window_end)
        else:
            events = self.store.find_bookings_for_technician(technician_id, window_start, window_end)

        conflict = find_conflicting_event(start, end, technician_id, events, buffer, exclude_id)
        if conflict is None:
            return ConflictResult(can_book=True)
        return ConflictResult(
            can_book=False,
            reason=_describe(conflict),
            conflicting_booking_id=conflict.id,
        )

    def check_conflict(
        self,
        technician_id: Optional[str],
        proposed_start: datetime,
        proposed_end: datetime,
        service_type: Union[ServiceType, str, None] = None,
        tx: Optional[BookingTransaction] = None,
    ) -> ConflictResult:
        """Check a proposed interval against the technician's latest bookings.

        Pass ``tx`` to read within an open transaction; otherwise the latest
        committed bookings are read. The result is advisory unless followed by
        a write in the same transaction (see ``book``).
        """
        return self._check(tx, technician_id, proposed_start, proposed_end, service_type)

    def book(self, booking: Booking) -> Booking:
        """Check and insert in one transaction.

        Raises:
            BookingConflictError: the window is taken, including when a
                concurrent caller committed first and the store's uniqueness
                guard rejects the insert.
            BookingValidationError: the booking has no technician.
        """
        _require_technician(booking.technician_id)
        with self.store.transaction(booking.technician_id) as tx:
            result = self._check(
                tx,
                booking.technician_id,
                booking.start_time,
                booking.end_time,
                booking.service_type,
            )
            if not result.can_book:
                logger.info(
                    "Booking rejected for technician %s at %s: %s",
                    booking.technician_id, booking.start_time.isoformat(), result.reason,
                )
                raise BookingConflictError(
                    result.reason or "Time slot is no longer available",
                    conflicting_booking_id=result.conflicting_booking_id,
                )
            tx.add(booking)

        logger.info(
            "Booking %s committed for technician %s at %s",
            booking.id, booking.technician_id, booking.start_time.isoformat(),
        )
        return booking

    def reschedule(self, booking_id: str, new_start: datetime, new_end: datetime) -> Booking:
        """Move a booking, ignoring its own current window during the check."""
        existing = self.store.get_booking(booking_id)
        if existing is None:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        _require_technician(existing.technician_id)

        with self.store.transaction(existing.technician_id) as tx:
            current = tx.get(booking_id)
            if current is None:
                raise BookingNotFoundError(f"Booking {booking_id} not found")
            result = self._check(
                tx,
                current.technician_id,
                new_start,
                new_end,
                current.service_type,
                exclude_id=booking_id,
            )
            if not result.can_book:
                raise BookingConflictError(
                    result.reason or "Time slot is no longer available",
                    conflicting_booking_id=result.conflicting_booking_id,
                )
            moved = current.model_copy(
                update={"start_time": new_start, "end_time": new_end, "updated_at": utcnow()}
            )
            tx.update(moved)

        logger.info("Booking %s moved to %s", booking_id, new_start.isoformat())
        return moved

    def find_next_available_start(
        self,
        technician_id: Optional[str],
        search_from: datetime,
        service_type: Union[ServiceType, str, None],
        duration_minutes: int,
        days_ahead: Optional[int] = None,
        step_minutes: int = 60,
        accept: Optional[Callable[[datetime], bool]] = None,
    ) -> Optional[datetime]:
        """Step forward from ``search_from`` until a conflict-free start is found.

        ``accept`` filters candidates before the conflict check (the booking
        service passes a business-hours predicate).
        """
        days = settings.rules.search_days_ahead if days_ahead is None else days_ahead
        duration = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=step_minutes)
        horizon = search_from + timedelta(days=days)

        events = self.store.find_bookings_for_technician(
            technician_id, search_from - timedelta(days=1), horizon + duration + timedelta(days=1)
        )
        buffer = get_buffer(service_type)

        candidate = search_from
        while candidate < horizon:
            if accept is not None and not accept(candidate):
                candidate += step
                continue
            if find_conflicting_event(
                candidate, candidate + duration, technician_id, events, buffer
            ) is None:
                return candidate
            candidate += step
        return None

    def expert_bookings_in_window(
        self, technician_id: Optional[str], start: datetime, end: datetime
    ) -> list[Booking]:
        """Active bookings for a technician touching [start, end)."""
        return [
            b
            for b in self.store.find_bookings_for_technician(technician_id, start, end)
            if b.is_active
        ]
