"""
Exceptions for the scheduling core.

Validation and conflict conditions are normally returned as typed results
by the booking service. These exceptions are raised by lower layers (store,
transactional insert, LLM adapter) and converted at the service boundary.
"""

from datetime import datetime
from typing import Optional


class BookingCoreError(Exception):
    """Base exception for scheduling core errors."""


class BookingValidationError(BookingCoreError):
    """One or more business-rule violations on a booking request."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Booking request is invalid")


class BookingConflictError(BookingCoreError):
    """The requested slot is no longer free for that technician."""

    def __init__(
        self,
        reason: str,
        conflicting_booking_id: Optional[str] = None,
        suggested_start: Optional[datetime] = None,
    ) -> None:
        self.reason = reason
        self.conflicting_booking_id = conflicting_booking_id
        self.suggested_start = suggested_start
        super().__init__(reason)


class BookingNotFoundError(BookingCoreError):
    """No booking exists with the given ID."""


class ConfirmationCodeCollisionError(BookingCoreError):
    """The generated confirmation code is already issued to another booking."""


class StoreError(BookingCoreError):
    """The persistence store failed; not retried by the core."""


class ClassificationError(BookingCoreError):
    """The remote classifier failed (timeout, bad output, auth, ...)."""

    def __init__(
        self,
        code: str,
        message: str,
        retryable: bool = True,
    ) -> None:
        self.code = code
        self.message = message
        self.retryable = retryable
        super().__init__(f"{code}: {message}")


class InvalidTransitionError(BookingCoreError):
    """Raised when a conversation transition is not valid from the current state."""
