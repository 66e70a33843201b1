"""
Availability calculation from candidate slots, existing bookings and buffers.

Every appointment is widened by its own service's before/after buffer (its
guarded interval). A slot is free when its guarded interval overlaps no
active booking's guarded interval for the same technician, so a plumbing
job's 30 minutes of cleanup still applies when a locksmith call is placed
right after it. Results are recomputed on every call; nothing here is cached.

Technician matching: when either the slot or the booking has no technician
id, the two are treated as potentially the same technician and are checked
for overlap. Only two known, different ids skip the comparison.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Optional, Sequence, Union

from booking_core.schemas.classification_schema import ServiceType
from booking_core.schemas.scheduling_schema import (
    AvailableSlot,
    Booking,
    BufferConfig,
    TimeSlot,
)
from booking_core.scheduling.buffers import MAX_AFTER_MINUTES, MAX_BEFORE_MINUTES, get_buffer
from booking_core.utils import overlaps, utcnow

logger = logging.getLogger(__name__)

DEFAULT_SERVICE = ServiceType.GENERAL_MAINTENANCE.value


def guarded_interval(
    start: datetime, end: datetime, buffer: BufferConfig
) -> tuple[datetime, datetime]:
    """Widen [start, end) by the buffer's before/after minutes."""
    return (
        start - timedelta(minutes=buffer.before_minutes),
        end + timedelta(minutes=buffer.after_minutes),
    )


def event_guarded_interval(event: Booking) -> tuple[datetime, datetime]:
    return guarded_interval(event.start_time, event.end_time, get_buffer(event.service_type))


def neighbour_window(
    start: datetime, end: datetime, buffer: BufferConfig
) -> tuple[datetime, datetime]:
    """Store read window: every booking whose guarded interval can reach [start, end)."""
    guarded_start, guarded_end = guarded_interval(start, end, buffer)
    return (
        guarded_start - timedelta(minutes=MAX_AFTER_MINUTES),
        guarded_end + timedelta(minutes=MAX_BEFORE_MINUTES),
    )


def technicians_may_collide(slot_tech: Optional[str], event_tech: Optional[str]) -> bool:
    if slot_tech is None or event_tech is None:
        return True
    return slot_tech == event_tech


def find_conflicting_event(
    start: datetime,
    end: datetime,
    technician_id: Optional[str],
    events: Iterable[Booking],
    buffer: BufferConfig,
    exclude_id: Optional[str] = None,
) -> Optional[Booking]:
    """Return the first active event whose guarded interval overlaps ours, if any."""
    guarded_start, guarded_end = guarded_interval(start, end, buffer)
    for event in events:
        if not event.is_active or event.id == exclude_id:
            continue
        if not technicians_may_collide(technician_id, event.technician_id):
            continue
        event_start, event_end = event_guarded_interval(event)
        if overlaps(guarded_start, guarded_end, event_start, event_end):
            return event
    return None


def compute_available(
    candidate_slots: Sequence[TimeSlot],
    existing_events: Sequence[Booking],
    service_type: Union[ServiceType, str] = DEFAULT_SERVICE,
) -> list[AvailableSlot]:
    """Filter candidate slots down to those free of buffered conflicts."""
    buffer = get_buffer(service_type)
    available: list[AvailableSlot] = []

    for slot in candidate_slots:
        if not slot.is_available:
            continue
        conflict = find_conflicting_event(
            slot.start, slot.end, slot.technician_id, existing_events, buffer
        )
        if conflict is not None:
            continue
        available.append(
            AvailableSlot(
                start_time=slot.start,
                end_time=slot.end,
                duration_minutes=slot.duration_minutes,
                technician_id=slot.technician_id,
            )
        )

    logger.debug(
        "Availability: %d of %d candidate slots free (service=%s)",
        len(available), len(candidate_slots), service_type,
    )
    return available


def find_next_available_slot(
    slots_by_date: Mapping[str, Sequence[TimeSlot]],
    events_by_date: Mapping[str, Sequence[Booking]],
    service_type: Union[ServiceType, str] = DEFAULT_SERVICE,
    after: Optional[datetime] = None,
) -> Optional[AvailableSlot]:
    """Scan dates in ascending order for the first free slot starting at or after ``after``."""
    after = after or utcnow()
    for day in sorted(slots_by_date):
        free = compute_available(
            slots_by_date[day], events_by_date.get(day, []), service_type
        )
        for slot in free:
            if slot.start_time >= after:
                return slot
    return None


def group_slots_by_date(slots: Iterable[AvailableSlot]) -> dict[str, list[AvailableSlot]]:
    grouped: dict[str, list[AvailableSlot]] = {}
    for slot in slots:
        grouped.setdefault(slot.start_time.date().isoformat(), []).append(slot)
    return grouped


def find_slot_by_start_time(
    slots: Iterable[AvailableSlot], start_time: datetime
) -> Optional[AvailableSlot]:
    for slot in slots:
        if slot.start_time == start_time:
            return slot
    return None


def is_slot_available(
    requested_start: datetime,
    requested_end: datetime,
    existing_events: Sequence[Booking],
    service_type: Union[ServiceType, str] = DEFAULT_SERVICE,
    technician_id: Optional[str] = None,
) -> bool:
    """Check an arbitrary interval against existing events with the service buffer."""
    buffer = get_buffer(service_type)
    return find_conflicting_event(
        requested_start, requested_end, technician_id, existing_events, buffer
    ) is None
