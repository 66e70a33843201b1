from booking_core.scheduling.availability import (
    compute_available,
    find_next_available_slot,
    guarded_interval,
    is_slot_available,
)
from booking_core.scheduling.buffers import get_buffer
from booking_core.scheduling.conflict_checker import ConflictChecker, ConflictResult
from booking_core.scheduling.slot_generator import SlotGenerator, generate_slots
from booking_core.scheduling.validators import BookingValidator, validate_modification_cutoff

__all__ = [
    "BookingValidator",
    "ConflictChecker",
    "ConflictResult",
    "SlotGenerator",
    "compute_available",
    "find_next_available_slot",
    "generate_slots",
    "get_buffer",
    "guarded_interval",
    "is_slot_available",
    "validate_modification_cutoff",
]
