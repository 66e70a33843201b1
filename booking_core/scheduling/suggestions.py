"""
Ranked appointment suggestions from free slots.

Emergencies get the earliest times first. High urgency puts slots on the
same day as ``now`` ahead of everything else. Medium and low urgency keep
chronological order but recommend the second option, which usually leaves
the customer a little more notice. Weekday and hour-range preferences
filter before ranking; each start time is offered once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from booking_core.config import settings
from booking_core.schemas.classification_schema import URGENCY_RESPONSE_WINDOWS, UrgencyLevel
from booking_core.schemas.scheduling_schema import AvailableSlot
from booking_core.utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_SUGGESTIONS = 4

_NOTES = {
    UrgencyLevel.EMERGENCY: "The earliest slot shown is our fastest response.",
    UrgencyLevel.HIGH: "These are our fastest available times. We recommend the first option.",
    UrgencyLevel.MEDIUM: "Here are some good times. Choose what works best for your schedule.",
    UrgencyLevel.LOW: "Pick any time that's convenient.",
}


@dataclass
class SchedulingSuggestions:
    slots: list[AvailableSlot] = field(default_factory=list)
    earliest: Optional[AvailableSlot] = None
    recommended: Optional[AvailableSlot] = None
    # earliest slot starts within the urgency's target response window
    within_response_window: bool = False
    note: str = ""


def _matches_preferences(
    local: datetime,
    preferred_weekday: Optional[int],
    preferred_hours: Optional[tuple[int, int]],
) -> bool:
    if preferred_weekday is not None and local.weekday() != preferred_weekday:
        return False
    if preferred_hours is not None:
        first, last = preferred_hours
        if not first <= local.hour <= last:
            return False
    return True


def suggest_times(
    slots: Sequence[AvailableSlot],
    urgency: UrgencyLevel = UrgencyLevel.MEDIUM,
    preferred_weekday: Optional[int] = None,
    preferred_hours: Optional[tuple[int, int]] = None,
    max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
    now: Optional[datetime] = None,
    timezone_name: Optional[str] = None,
) -> SchedulingSuggestions:
    """
    Pick up to ``max_suggestions`` distinct start times from ``slots``.

    Args:
        preferred_weekday: Monday=0 ... Sunday=6, in the business timezone.
        preferred_hours: (first_hour, last_hour), both inclusive, local time.
    """
    now = now or utcnow()
    tz = ZoneInfo(timezone_name or settings.hours.timezone)
    today = now.astimezone(tz).date()

    seen: set[datetime] = set()
    candidates: list[AvailableSlot] = []
    for slot in sorted(slots, key=lambda s: s.start_time):
        if slot.start_time in seen:
            continue
        if not _matches_preferences(
            slot.start_time.astimezone(tz), preferred_weekday, preferred_hours
        ):
            continue
        seen.add(slot.start_time)
        candidates.append(slot)

    if urgency == UrgencyLevel.HIGH:
        candidates.sort(
            key=lambda s: (s.start_time.astimezone(tz).date() != today, s.start_time)
        )

    chosen = candidates[:max_suggestions]
    if not chosen:
        return SchedulingSuggestions(
            note="No times match. We can add you to the waitlist and call when something opens."
        )

    earliest = min(chosen, key=lambda s: s.start_time)
    if urgency in (UrgencyLevel.EMERGENCY, UrgencyLevel.HIGH) or len(chosen) == 1:
        recommended = chosen[0]
    else:
        recommended = chosen[1]

    _, max_hours = URGENCY_RESPONSE_WINDOWS[urgency]
    within = earliest.start_time - now <= timedelta(hours=max_hours)
    logger.debug(
        "Suggested %d of %d slots (urgency=%s, within window=%s)",
        len(chosen), len(slots), urgency.value, within,
    )
    return SchedulingSuggestions(
        slots=chosen,
        earliest=earliest,
        recommended=recommended,
        within_response_window=within,
        note=_NOTES[urgency],
    )
