from booking_core.schemas.classification_schema import (
    ServiceClassification,
    ServiceType,
    UrgencyLevel,
)
from booking_core.schemas.scheduling_schema import (
    ACTIVE_STATUSES,
    AvailableSlot,
    Booking,
    BookingRequest,
    BookingStatus,
    BufferConfig,
    CustomerInfo,
    TimeSlot,
)

__all__ = [
    "ServiceClassification",
    "ServiceType",
    "UrgencyLevel",
    "ACTIVE_STATUSES",
    "AvailableSlot",
    "Booking",
    "BookingRequest",
    "BookingStatus",
    "BufferConfig",
    "CustomerInfo",
    "TimeSlot",
]
