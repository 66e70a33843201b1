"""
Agent-facing availability lookups.

Wraps ``BookingService.get_availability`` into small structured results
that a chat agent or CLI can read back to the customer, including a
next-available fallback when the requested date is full.
"""

import logging
from datetime import date, timedelta
from typing import Optional, TypedDict, Union
from zoneinfo import ZoneInfo

from booking_core.schemas.classification_schema import ServiceType
from booking_core.schemas.scheduling_schema import AvailableSlot
from booking_core.tools.booking import BookingService

logger = logging.getLogger(__name__)

MAX_SLOTS_RETURNED = 5
SEARCH_DAYS = 14


class SlotSummary(TypedDict):
    date: str
    time: str
    start: str
    technician: Optional[str]


class AvailabilityResult(TypedDict):
    available: bool
    slots: list[SlotSummary]
    next_available: Optional[str]
    message: str


class DateAvailability(TypedDict):
    date: str
    day_name: str
    slot_count: int


def _summarize(slot: AvailableSlot, tz: ZoneInfo) -> SlotSummary:
    local = slot.start_time.astimezone(tz)
    return {
        "date": local.date().isoformat(),
        "time": local.strftime("%H:%M"),
        "start": slot.start_time.isoformat(),
        "technician": slot.technician_id,
    }


def _next_available(
    service: BookingService, service_type: Union[ServiceType, str], after: date
) -> Optional[str]:
    tz = ZoneInfo(service.slot_generator.timezone_name)
    for offset in range(1, SEARCH_DAYS + 1):
        slots = service.get_availability(service_type, after + timedelta(days=offset))
        if slots:
            first = _summarize(slots[0], tz)
            return f"{first['date']} {first['time']}"
    return None


def check_availability(
    service: BookingService,
    service_type: Union[ServiceType, str],
    day: date,
    preferred_time: Optional[str] = None,
) -> AvailabilityResult:
    """
    Check appointment availability for a service on a given date.

    ``preferred_time`` is "HH:MM" in the business timezone; when it is free
    only that slot is returned.
    """
    tz = ZoneInfo(service.slot_generator.timezone_name)
    slots = [_summarize(s, tz) for s in service.get_availability(service_type, day)]

    if not slots:
        next_slot = _next_available(service, service_type, day)
        return {
            "available": False,
            "slots": [],
            "next_available": next_slot,
            "message": f"No availability on {day.isoformat()}.",
        }

    if preferred_time:
        preferred = [s for s in slots if s["time"] == preferred_time]
        if preferred:
            tech = preferred[0]["technician"] or "the next available technician"
            return {
                "available": True,
                "slots": preferred[:1],
                "next_available": None,
                "message": f"Available on {day.isoformat()} at {preferred_time} with {tech}.",
            }

    shown = slots[:MAX_SLOTS_RETURNED]
    return {
        "available": True,
        "slots": shown,
        "next_available": None,
        "message": f"{len(shown)} time slots available on {day.isoformat()}.",
    }


def get_available_dates(
    service: BookingService,
    service_type: Union[ServiceType, str],
    start_day: date,
    limit: int = 5,
) -> list[DateAvailability]:
    """The next ``limit`` dates (from ``start_day``) with at least one free slot."""
    results: list[DateAvailability] = []
    for offset in range(SEARCH_DAYS):
        day = start_day + timedelta(days=offset)
        count = len(service.get_availability(service_type, day))
        if count:
            results.append(
                {"date": day.isoformat(), "day_name": day.strftime("%A"), "slot_count": count}
            )
        if len(results) >= limit:
            break
    return results
