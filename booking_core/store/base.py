"""
Booking store port.

The store is the single source of truth for bookings. All writes happen
inside ``transaction(technician_id)``, which serializes access to one
technician's calendar and commits all-or-nothing. Bookings are only
written with a technician assigned (``ConflictChecker`` rejects unassigned
ones), so one lock per technician covers every overlap. Implementations:

- ``InMemoryBookingStore``: map + per-technician mutex, for tests and demos
- ``SqlBookingStore``: SQLAlchemy, row lock on the technician plus a
  partial unique index on active (technician, start) pairs
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Optional

from booking_core.schemas.scheduling_schema import Booking, BookingStatus

UNASSIGNED_KEY = "__unassigned__"


def lock_key(technician_id: Optional[str]) -> str:
    return technician_id if technician_id is not None else UNASSIGNED_KEY


class BookingTransaction(ABC):
    """Operations available while holding a technician's booking window."""

    @abstractmethod
    def find_bookings(
        self, technician_id: Optional[str], start: datetime, end: datetime
    ) -> list[Booking]:
        """Bookings touching [start, end) for the technician, including unassigned ones."""

    @abstractmethod
    def get(self, booking_id: str) -> Optional[Booking]:
        ...

    @abstractmethod
    def add(self, booking: Booking) -> Booking:
        """Insert a booking. Raises BookingConflictError on a uniqueness violation."""

    @abstractmethod
    def update(self, booking: Booking) -> Booking:
        ...


class BookingStore(ABC):
    """Transactional booking persistence."""

    @abstractmethod
    def transaction(
        self, technician_id: Optional[str]
    ) -> AbstractContextManager[BookingTransaction]:
        """Exclusive, all-or-nothing scope over one technician's bookings."""

    @abstractmethod
    def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    @abstractmethod
    def find_bookings_for_technician(
        self, technician_id: Optional[str], start: datetime, end: datetime
    ) -> list[Booking]:
        """Latest committed bookings for the technician in [start, end)."""

    @abstractmethod
    def list_bookings(self) -> list[Booking]:
        ...

    def update_booking_status(self, booking_id: str, status: BookingStatus) -> Optional[Booking]:
        """Transition a booking's status. Returns None if the booking does not exist."""
        existing = self.get_booking(booking_id)
        if existing is None:
            return None
        with self.transaction(existing.technician_id) as tx:
            current = tx.get(booking_id)
            if current is None:
                return None
            return tx.update(current.model_copy(update={"status": status}))
