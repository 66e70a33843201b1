"""Slot, booking and request data models."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that occupy a technician's calendar
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class TimeSlot(BaseModel):
    """A candidate interval produced by the slot generator. Never persisted."""

    start: datetime
    end: datetime
    duration_minutes: int
    technician_id: Optional[str] = None
    is_available: bool = True

    @model_validator(mode="after")
    def _check_interval(self) -> "TimeSlot":
        if self.end <= self.start:
            raise ValueError("Slot end must be after start")
        expected = int((self.end - self.start) / timedelta(minutes=1))
        if self.duration_minutes != expected:
            raise ValueError(
                f"duration_minutes={self.duration_minutes} does not match interval ({expected})"
            )
        return self

    @classmethod
    def between(
        cls,
        start: datetime,
        end: datetime,
        technician_id: Optional[str] = None,
        is_available: bool = True,
    ) -> "TimeSlot":
        return cls(
            start=start,
            end=end,
            duration_minutes=int((end - start) / timedelta(minutes=1)),
            technician_id=technician_id,
            is_available=is_available,
        )


class AvailableSlot(BaseModel):
    """A time slot that survived conflict filtering."""

    start_time: datetime
    end_time: datetime
    duration_minutes: int
    technician_id: Optional[str] = None


class BufferConfig(BaseModel):
    """Setup/cleanup minutes required around an appointment."""

    model_config = ConfigDict(frozen=True)

    before_minutes: int = Field(ge=0)
    after_minutes: int = Field(ge=0)


class CustomerInfo(BaseModel):
    """Contact details captured by the booking wizard or chat."""

    name: str
    phone: str
    email: str
    address: str = ""


class BookingRequest(BaseModel):
    """Incoming request to place a booking."""

    customer: CustomerInfo
    service_type: str
    technician_id: str
    start_time: datetime
    notes: Optional[str] = None


class Booking(BaseModel):
    """The persisted appointment. Cancelled bookings are kept for audit history."""

    id: str
    technician_id: Optional[str]
    service_type: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus = BookingStatus.PENDING
    confirmation_code: str
    customer: Optional[CustomerInfo] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
