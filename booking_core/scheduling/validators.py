"""
Booking request validation, independent of conflict checking.

Every rule runs and all failures are collected, so the customer sees
everything that is wrong at once. Existence checks go through injected
oracles (service catalog, technician directory); the validator never
writes anything.
"""

import logging
import re
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from booking_core.config import BookingRulesConfig, BusinessHoursConfig, settings
from booking_core.schemas.scheduling_schema import BookingRequest
from booking_core.tools import services
from booking_core.tools.technicians import AVAILABLE
from booking_core.utils import ensure_aware, utcnow

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_CHARS_RE = re.compile(r"^\+?[\d\s().-]+$")
CONFIRMATION_CODE_RE = re.compile(r"^[A-Z0-9]{8}$")
CONFIRMATION_ALPHABET = string.ascii_uppercase + string.digits

MIN_NAME_LENGTH = 2
MIN_ADDRESS_LENGTH = 5
MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    service_duration: Optional[int] = None


@dataclass
class CutoffResult:
    valid: bool
    hours_remaining: float
    error: Optional[str] = None


def validate_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value.strip()))


def validate_phone(value: str) -> bool:
    """Digits with optional +, spaces, dots, dashes and parentheses; 7-15 digits."""
    value = value.strip()
    if not PHONE_CHARS_RE.match(value):
        return False
    digits = re.sub(r"[^\d]", "", value)
    return MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS


def validate_confirmation_code(code: str) -> bool:
    return bool(CONFIRMATION_CODE_RE.match(code))


def generate_confirmation_code() -> str:
    """Eight upper-case alphanumeric characters."""
    return "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(8))


def validate_modification_cutoff(
    booking_start: datetime,
    now: Optional[datetime] = None,
    cutoff_hours: Optional[int] = None,
) -> CutoffResult:
    """Block reschedule/cancel when fewer than ``cutoff_hours`` remain before the booking."""
    now = now or utcnow()
    cutoff = settings.rules.modification_cutoff_hours if cutoff_hours is None else cutoff_hours
    hours = (ensure_aware(booking_start) - ensure_aware(now)) / timedelta(hours=1)
    remaining = round(hours, 1)
    if hours < cutoff:
        return CutoffResult(
            valid=False,
            hours_remaining=remaining,
            error=f"Cannot modify bookings within {cutoff} hours of start time",
        )
    return CutoffResult(valid=True, hours_remaining=remaining)


class BookingValidator:
    """Business-rule validation for booking requests."""

    def __init__(
        self,
        service_exists: Callable[[str], bool] = services.service_exists,
        technician_status: Optional[Callable[[str], Optional[str]]] = None,
        service_duration: Callable[[str], int] = services.get_service_duration,
        clock: Callable[[], datetime] = utcnow,
        hours: Optional[BusinessHoursConfig] = None,
        rules: Optional[BookingRulesConfig] = None,
    ) -> None:
        self._service_exists = service_exists
        self._technician_status = technician_status
        self._service_duration = service_duration
        self._clock = clock
        self.hours = hours or settings.hours
        self.rules = rules or settings.rules
        self._tz = ZoneInfo(self.hours.timezone)

    # ------------------------------------------------------------------ #
    # Individual rules
    # ------------------------------------------------------------------ #

    def check_not_in_past(self, start: datetime) -> Optional[str]:
        earliest = self._clock() + timedelta(minutes=self.rules.min_lead_minutes)
        if start < earliest:
            return f"Booking must be at least {self.rules.min_lead_minutes} minutes in the future"
        return None

    def check_business_hours(self, start: datetime) -> Optional[str]:
        local = start.astimezone(self._tz)
        if local.weekday() == self.hours.closed_weekday:
            return f"Bookings cannot be scheduled on {local.strftime('%A')}s"
        if not self.hours.open_hour <= local.hour < self.hours.close_hour:
            return (
                f"Bookings must be between {self.hours.open_hour}:00 and "
                f"{self.hours.close_hour}:00 ({self.hours.timezone})"
            )
        return None

    def check_duration_fits(self, start: datetime, duration_minutes: int) -> Optional[str]:
        local = start.astimezone(self._tz)
        if self.hours.close_hour == 24:
            closing = datetime.combine(local.date() + timedelta(days=1), time(0), tzinfo=self._tz)
        else:
            closing = datetime.combine(
                local.date(), time(hour=self.hours.close_hour), tzinfo=self._tz
            )
        if local + timedelta(minutes=duration_minutes) > closing:
            return f"Service duration ({duration_minutes} min) extends beyond business hours"
        return None

    def check_technician(self, technician_id: str) -> Optional[str]:
        if self._technician_status is None:
            return f"Technician {technician_id} cannot be verified (no technician directory)"
        status = self._technician_status(technician_id)
        if status is None:
            return f"Technician {technician_id} not found"
        if status != AVAILABLE:
            return f"Technician is currently {status}"
        return None

    def service_duration_for(self, service_type: str) -> int:
        """Catalog duration for the service; unknown services get one slot."""
        if self._service_exists(service_type):
            return self._service_duration(service_type)
        return self.hours.slot_minutes

    def is_bookable_start(self, start: datetime, duration_minutes: int) -> bool:
        """Time-only rules, used when searching for an alternative start."""
        return not (
            self.check_not_in_past(start)
            or self.check_business_hours(start)
            or self.check_duration_fits(start, duration_minutes)
        )

    # ------------------------------------------------------------------ #
    # Aggregate
    # ------------------------------------------------------------------ #

    def validate(self, request: BookingRequest) -> ValidationResult:
        """Run every rule and collect all errors and warnings."""
        errors: list[str] = []
        warnings: list[str] = []
        start = ensure_aware(request.start_time)

        for check in (self.check_not_in_past(start), self.check_business_hours(start)):
            if check:
                errors.append(check)

        customer = request.customer
        if len(customer.name.strip()) < MIN_NAME_LENGTH:
            errors.append(f"Name must be at least {MIN_NAME_LENGTH} characters")
        if not validate_email(customer.email):
            errors.append("Invalid email format")
        if not validate_phone(customer.phone):
            errors.append("Invalid phone number format")
        if len(customer.address.strip()) < MIN_ADDRESS_LENGTH:
            errors.append(f"Address must be at least {MIN_ADDRESS_LENGTH} characters")

        if request.notes and len(request.notes) > self.rules.max_notes_length:
            errors.append(f"Notes must be under {self.rules.max_notes_length} characters")

        duration: Optional[int] = None
        if self._service_exists(request.service_type):
            duration = self._service_duration(request.service_type)
            fits = self.check_duration_fits(start, duration)
            if fits:
                errors.append(fits)
        else:
            errors.append(f'Service type "{request.service_type}" not found')

        technician = self.check_technician(request.technician_id)
        if technician:
            errors.append(technician)

        horizon = self._clock() + timedelta(days=self.rules.far_future_warning_days)
        if start > horizon:
            warnings.append(
                f"Booking is more than {self.rules.far_future_warning_days} days ahead"
            )

        if errors:
            logger.info("Booking request rejected with %d error(s)", len(errors))
        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            service_duration=duration,
        )
