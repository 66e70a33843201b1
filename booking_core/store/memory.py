"""
In-memory booking store.

Each instance owns its own map, so tests get a fresh calendar per fixture
instead of sharing process-wide state. A mutex per technician serializes
check-and-insert for that technician; other technicians proceed in parallel.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from booking_core.exceptions import BookingConflictError, ConfirmationCodeCollisionError
from booking_core.schemas.scheduling_schema import Booking
from booking_core.store.base import BookingStore, BookingTransaction, lock_key
from booking_core.utils import overlaps

logger = logging.getLogger(__name__)


def _touches(booking: Booking, technician_id: Optional[str], start: datetime, end: datetime) -> bool:
    if technician_id is not None and booking.technician_id not in (technician_id, None):
        return False
    return overlaps(booking.start_time, booking.end_time, start, end)


class _MemoryTransaction(BookingTransaction):
    """Stages writes until the enclosing transaction commits."""

    def __init__(self, store: "InMemoryBookingStore") -> None:
        self._store = store
        self.staged: dict[str, Booking] = {}

    def _view(self) -> dict[str, Booking]:
        merged = self._store._snapshot()
        merged.update(self.staged)
        return merged

    def find_bookings(
        self, technician_id: Optional[str], start: datetime, end: datetime
    ) -> list[Booking]:
        found = [b for b in self._view().values() if _touches(b, technician_id, start, end)]
        return sorted(found, key=lambda b: b.start_time)

    def get(self, booking_id: str) -> Optional[Booking]:
        return self._view().get(booking_id)

    def add(self, booking: Booking) -> Booking:
        if booking.id in self._view():
            raise BookingConflictError(f"Booking {booking.id} already exists")
        for other in self._view().values():
            if (
                other.is_active
                and booking.is_active
                and other.technician_id == booking.technician_id
                and other.start_time == booking.start_time
            ):
                raise BookingConflictError(
                    "Technician already has an active booking at this start time",
                    conflicting_booking_id=other.id,
                )
            if other.confirmation_code == booking.confirmation_code:
                raise ConfirmationCodeCollisionError(
                    f"Confirmation code {booking.confirmation_code} already issued"
                )
        self.staged[booking.id] = booking
        return booking

    def update(self, booking: Booking) -> Booking:
        self.staged[booking.id] = booking
        return booking


class InMemoryBookingStore(BookingStore):
    """Map-backed store with a mutex per technician."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._data_lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, technician_id: Optional[str]) -> threading.Lock:
        key = lock_key(technician_id)
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    def _snapshot(self) -> dict[str, Booking]:
        with self._data_lock:
            return dict(self._bookings)

    @contextmanager
    def transaction(self, technician_id: Optional[str]) -> Iterator[BookingTransaction]:
        lock = self._lock_for(technician_id)
        with lock:
            tx = _MemoryTransaction(self)
            yield tx
            with self._data_lock:
                self._bookings.update(tx.staged)
            if tx.staged:
                logger.debug(
                    "Committed %d booking write(s) for technician %s",
                    len(tx.staged), technician_id,
                )

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._data_lock:
            return self._bookings.get(booking_id)

    def find_bookings_for_technician(
        self, technician_id: Optional[str], start: datetime, end: datetime
    ) -> list[Booking]:
        found = [
            b for b in self._snapshot().values() if _touches(b, technician_id, start, end)
        ]
        return sorted(found, key=lambda b: b.start_time)

    def list_bookings(self) -> list[Booking]:
        return sorted(self._snapshot().values(), key=lambda b: b.start_time)

    def reset(self) -> None:
        """Clear all bookings."""
        with self._data_lock:
            self._bookings.clear()
