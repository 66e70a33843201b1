"""Shared utilities used across the scheduling core."""

import re
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("(555) 123-4567")
        '5551234567'
        >>> normalize_phone("+1 555.123.4567")
        '+15551234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def overlaps(
    start1: datetime, end1: datetime, start2: datetime, end2: datetime
) -> bool:
    """Half-open interval overlap: [s1, e1) and [s2, e2) share any instant."""
    return start1 < end2 and start2 < end1


def ensure_aware(value: datetime, tz: Optional[str] = None) -> datetime:
    """Attach a timezone to a naive datetime (UTC unless ``tz`` is given)."""
    if value.tzinfo is not None:
        return value
    return value.replace(tzinfo=ZoneInfo(tz) if tz else timezone.utc)


def utcnow() -> datetime:
    """Default clock used by components that accept an injectable ``clock``."""
    return datetime.now(timezone.utc)
