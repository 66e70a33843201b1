"""
Candidate slot generation from business-hours configuration.

Produces slots on a fixed step across the operating window of a single day in
the business timezone. Technician ids come from an explicit roster passed
by the caller; the generator never invents them.

Usage:
    gen = SlotGenerator(timezone_name="America/New_York")
    slots = gen.generate(date(2026, 10, 20), roster=["T1", "T2"])
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from booking_core.config import BusinessHoursConfig, settings
from booking_core.schemas.scheduling_schema import TimeSlot

logger = logging.getLogger(__name__)


def _window(
    day: date, tz: ZoneInfo, open_hour: int, close_hour: int
) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time(hour=open_hour), tzinfo=tz)
    if close_hour == 24:
        end = datetime.combine(day + timedelta(days=1), time(0), tzinfo=tz)
    else:
        end = datetime.combine(day, time(hour=close_hour), tzinfo=tz)
    return start, end


def generate_slots(
    day: date,
    business_timezone: str,
    service_type: Optional[str] = None,
    roster: Optional[Sequence[str]] = None,
    slot_minutes: int = 60,
    open_hour: int = 9,
    close_hour: int = 17,
    closed_weekday: int = 6,
    duration_minutes: Optional[int] = None,
) -> list[TimeSlot]:
    """
    Generate candidate slots for one day.

    Slots start every ``slot_minutes`` and last ``duration_minutes`` (default:
    one step). A slot that would run past closing is not generated.

    Returns an empty list on the non-operating weekday. Each slot is tagged
    round-robin from ``roster``; with no roster, slots carry no technician.
    ``service_type`` does not affect generation and is accepted so callers
    can thread it through to the buffer lookup.
    """
    if day.weekday() == closed_weekday:
        return []

    tz = ZoneInfo(business_timezone)
    cursor, end = _window(day, tz, open_hour, close_hour)
    step = timedelta(minutes=slot_minutes)
    width = timedelta(minutes=duration_minutes or slot_minutes)
    technicians = list(roster or [])

    slots: list[TimeSlot] = []
    index = 0
    while cursor + width <= end:
        tech = technicians[index % len(technicians)] if technicians else None
        slots.append(TimeSlot.between(cursor, cursor + width, technician_id=tech))
        cursor += step
        index += 1

    logger.debug(
        "Generated %d slots for %s (%s, service=%s)",
        len(slots), day.isoformat(), business_timezone, service_type,
    )
    return slots


def enumerate_roster_slots(
    day: date,
    business_timezone: str,
    roster: Sequence[str],
    slot_minutes: int = 60,
    open_hour: int = 9,
    close_hour: int = 17,
    closed_weekday: int = 6,
    duration_minutes: Optional[int] = None,
) -> list[TimeSlot]:
    """One slot per technician per window, ordered by start then roster order."""
    windows = generate_slots(
        day,
        business_timezone,
        slot_minutes=slot_minutes,
        open_hour=open_hour,
        close_hour=close_hour,
        closed_weekday=closed_weekday,
        duration_minutes=duration_minutes,
    )
    return [
        TimeSlot.between(w.start, w.end, technician_id=tech)
        for w in windows
        for tech in roster
    ]


class SlotGenerator:
    """Slot generation bound to a business-hours configuration."""

    def __init__(
        self,
        hours: Optional[BusinessHoursConfig] = None,
        timezone_name: Optional[str] = None,
    ) -> None:
        self.hours = hours or settings.hours
        self.timezone_name = timezone_name or self.hours.timezone

    def generate(
        self,
        day: date,
        service_type: Optional[str] = None,
        roster: Optional[Sequence[str]] = None,
        duration_minutes: Optional[int] = None,
    ) -> list[TimeSlot]:
        return generate_slots(
            day,
            self.timezone_name,
            service_type=service_type,
            roster=roster,
            slot_minutes=self.hours.slot_minutes,
            open_hour=self.hours.open_hour,
            close_hour=self.hours.close_hour,
            closed_weekday=self.hours.closed_weekday,
            duration_minutes=duration_minutes,
        )

    def generate_for_technicians(
        self, day: date, roster: Sequence[str], duration_minutes: Optional[int] = None
    ) -> list[TimeSlot]:
        return enumerate_roster_slots(
            day,
            self.timezone_name,
            roster,
            slot_minutes=self.hours.slot_minutes,
            open_hour=self.hours.open_hour,
            close_hour=self.hours.close_hour,
            closed_weekday=self.hours.closed_weekday,
            duration_minutes=duration_minutes,
        )

    def generate_range(
        self,
        start_day: date,
        days: int,
        roster: Optional[Sequence[str]] = None,
    ) -> dict[str, list[TimeSlot]]:
        """Slots for ``days`` consecutive days keyed by ISO date; closed days omitted."""
        result: dict[str, list[TimeSlot]] = {}
        for offset in range(days):
            day = start_day + timedelta(days=offset)
            slots = self.generate(day, roster=roster)
            if slots:
                result[day.isoformat()] = slots
        return result
