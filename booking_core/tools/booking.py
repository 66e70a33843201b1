"""
Booking service: the public entry point for availability and booking changes.

Validation and conflicts come back as a ``BookingOutcome`` rather than an
exception, so callers (chat agent, web form handler) can show the customer
what went wrong and offer another time. Store failures propagate.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Union

from booking_core.exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    ConfirmationCodeCollisionError,
)
from booking_core.logging_context import get_request_logger, new_request_id
from booking_core.schemas.classification_schema import ServiceType, UrgencyLevel
from booking_core.schemas.scheduling_schema import (
    AvailableSlot,
    Booking,
    BookingRequest,
    BookingStatus,
)
from booking_core.scheduling.availability import compute_available, neighbour_window
from booking_core.scheduling.buffers import get_buffer
from booking_core.scheduling.conflict_checker import ConflictChecker
from booking_core.scheduling.slot_generator import SlotGenerator
from booking_core.scheduling.suggestions import (
    DEFAULT_MAX_SUGGESTIONS,
    SchedulingSuggestions,
    suggest_times,
)
from booking_core.scheduling.validators import (
    BookingValidator,
    generate_confirmation_code,
    validate_confirmation_code,
    validate_modification_cutoff,
)
from booking_core.store.base import BookingStore
from booking_core.tools.customer import CustomerDirectory
from booking_core.tools.notifications import (
    BookingNotice,
    NullNotifier,
    Notifier,
    dispatch_best_effort,
)
from booking_core.tools.services import resolve_service
from booking_core.tools.technicians import TechnicianDirectory
from booking_core.utils import ensure_aware, utcnow

logger = get_request_logger(__name__)

MAX_CODE_ATTEMPTS = 3


class OutcomeStatus:
    CREATED = "created"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    INVALID = "invalid"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    TOO_LATE = "too_late"


_SUCCESS = {
    OutcomeStatus.CREATED,
    OutcomeStatus.RESCHEDULED,
    OutcomeStatus.CANCELLED,
    OutcomeStatus.CONFIRMED,
    OutcomeStatus.COMPLETED,
}


@dataclass
class BookingOutcome:
    status: str
    booking: Optional[Booking] = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggested_start: Optional[datetime] = None
    hours_remaining: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.status in _SUCCESS


class BookingService:
    """Availability queries and booking lifecycle over an injected store."""

    def __init__(
        self,
        store: BookingStore,
        validator: Optional[BookingValidator] = None,
        slot_generator: Optional[SlotGenerator] = None,
        technicians: Optional[TechnicianDirectory] = None,
        notifier: Optional[Notifier] = None,
        customers: Optional[CustomerDirectory] = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        code_factory: Callable[[], str] = generate_confirmation_code,
    ) -> None:
        self.store = store
        self.technicians = technicians
        self.validator = validator or BookingValidator(
            technician_status=technicians.get_status if technicians else None,
            clock=clock,
        )
        self.slot_generator = slot_generator or SlotGenerator(hours=self.validator.hours)
        self.conflicts = ConflictChecker(store)
        self.notifier = notifier or NullNotifier()
        self.customers = customers
        self._clock = clock
        self._id_factory = id_factory
        self._code_factory = code_factory

    # ------------------------------------------------------------------ #
    # Availability
    # ------------------------------------------------------------------ #

    def get_availability(
        self,
        service_type: Union[ServiceType, str],
        day: date,
        technician_id: Optional[str] = None,
    ) -> list[AvailableSlot]:
        """
        Free slots on ``day``, computed from the latest committed bookings.

        Each slot lasts the service's catalog duration and passes the same
        time and conflict rules ``create_booking`` applies, so an offered slot
        is bookable unless someone else takes it first. Without an explicit
        technician, only available technicians with the service's skill
        are considered.
        """
        service = resolve_service(service_type)
        skill = service.value if service else str(service_type)

        if technician_id is not None:
            if self.validator.check_technician(technician_id):
                return []
            roster = [technician_id]
        elif self.technicians is not None:
            roster = self.technicians.list_available(skill=skill)
            if not roster:
                logger.info("No available technicians for %s", skill)
                return []
        else:
            roster = []

        duration = self.validator.service_duration_for(skill)
        if roster:
            candidates = self.slot_generator.generate_for_technicians(
                day, roster, duration_minutes=duration
            )
        else:
            candidates = self.slot_generator.generate(
                day, service_type=skill, duration_minutes=duration
            )
        if not candidates:
            return []

        buffer = get_buffer(skill)
        window_start, _ = neighbour_window(candidates[0].start, candidates[0].end, buffer)
        _, window_end = neighbour_window(candidates[-1].start, candidates[-1].end, buffer)
        events: dict[str, Booking] = {}
        for tech in roster or [None]:
            for booking in self.store.find_bookings_for_technician(tech, window_start, window_end):
                events[booking.id] = booking

        free = compute_available(candidates, list(events.values()), skill)
        return [s for s in free if self.validator.is_bookable_start(s.start_time, duration)]

    def suggest_alternative(
        self,
        technician_id: Optional[str],
        after: datetime,
        service_type: Union[ServiceType, str],
        duration_minutes: int,
    ) -> Optional[datetime]:
        return self.conflicts.find_next_available_start(
            technician_id,
            after,
            service_type,
            duration_minutes,
            days_ahead=self.validator.rules.search_days_ahead,
            step_minutes=self.validator.hours.slot_minutes,
            accept=lambda start: self.validator.is_bookable_start(start, duration_minutes),
        )

    def suggest_appointment_times(
        self,
        service_type: Union[ServiceType, str],
        urgency: UrgencyLevel,
        start_day: date,
        days: Optional[int] = None,
        preferred_weekday: Optional[int] = None,
        preferred_hours: Optional[tuple[int, int]] = None,
        max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
    ) -> SchedulingSuggestions:
        """Rank free slots over the next ``days`` days for the customer's urgency."""
        days = self.validator.rules.search_days_ahead if days is None else days
        slots: list[AvailableSlot] = []
        for offset in range(days):
            slots.extend(self.get_availability(service_type, start_day + timedelta(days=offset)))
        return suggest_times(
            slots,
            urgency,
            preferred_weekday=preferred_weekday,
            preferred_hours=preferred_hours,
            max_suggestions=max_suggestions,
            now=self._clock(),
            timezone_name=self.slot_generator.timezone_name,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def create_booking(self, request: BookingRequest) -> BookingOutcome:
        """Validate, then check-and-insert atomically for the technician."""
        request_id = new_request_id()
        logger.info(
            "[%s] Booking attempt: %s with %s at %s",
            request_id, request.service_type, request.technician_id,
            request.start_time.isoformat(),
        )

        result = self.validator.validate(request)
        if not result.valid:
            logger.info("[%s] Booking invalid: %s", request_id, "; ".join(result.errors))
            return BookingOutcome(
                status=OutcomeStatus.INVALID, errors=result.errors, warnings=result.warnings
            )

        service = resolve_service(request.service_type)
        service_type = service.value if service else request.service_type
        duration = result.service_duration or self.slot_generator.hours.slot_minutes
        start = ensure_aware(request.start_time)
        now = self._clock()
        booking = Booking(
            id=self._id_factory(),
            technician_id=request.technician_id,
            service_type=service_type,
            start_time=start,
            end_time=start + timedelta(minutes=duration),
            status=BookingStatus.PENDING,
            confirmation_code=self._code_factory(),
            customer=request.customer,
            notes=request.notes,
            created_at=now,
            updated_at=now,
        )

        try:
            booking = self._commit(booking)
        except BookingConflictError as exc:
            suggestion = self.suggest_alternative(
                request.technician_id, start, service_type, duration
            )
            logger.info(
                "[%s] Booking conflict: %s (suggested %s)",
                request_id, exc.reason, suggestion.isoformat() if suggestion else "none",
            )
            return BookingOutcome(
                status=OutcomeStatus.CONFLICT,
                errors=[exc.reason],
                warnings=result.warnings,
                suggested_start=suggestion,
            )

        logger.info("[%s] Booking %s created (%s)", request_id, booking.id, booking.confirmation_code)
        self._remember_customer(request)
        dispatch_best_effort(self.notifier, BookingNotice.from_booking("created", booking))
        return BookingOutcome(
            status=OutcomeStatus.CREATED, booking=booking, warnings=result.warnings
        )

    def reschedule_booking(self, booking_id: str, new_start: datetime) -> BookingOutcome:
        """Move an active booking, keeping its duration. Blocked within the cutoff window."""
        existing = self.store.get_booking(booking_id)
        if existing is None:
            return BookingOutcome(
                status=OutcomeStatus.NOT_FOUND, errors=[f"Booking {booking_id} not found"]
            )
        if not existing.is_active:
            return BookingOutcome(
                status=OutcomeStatus.INVALID,
                booking=existing,
                errors=[f"Cannot reschedule a {existing.status.value} booking"],
            )

        cutoff = self._check_cutoff(existing)
        if cutoff is not None:
            return cutoff

        new_start = ensure_aware(new_start)
        duration = int((existing.end_time - existing.start_time) / timedelta(minutes=1))
        errors = [
            e
            for e in (
                self.validator.check_not_in_past(new_start),
                self.validator.check_business_hours(new_start),
                self.validator.check_duration_fits(new_start, duration),
            )
            if e
        ]
        if errors:
            return BookingOutcome(status=OutcomeStatus.INVALID, booking=existing, errors=errors)

        try:
            moved = self.conflicts.reschedule(
                booking_id, new_start, new_start + timedelta(minutes=duration)
            )
        except BookingNotFoundError as exc:
            return BookingOutcome(status=OutcomeStatus.NOT_FOUND, errors=[str(exc)])
        except BookingConflictError as exc:
            return BookingOutcome(
                status=OutcomeStatus.CONFLICT,
                booking=existing,
                errors=[exc.reason],
                suggested_start=self.suggest_alternative(
                    existing.technician_id, new_start, existing.service_type, duration
                ),
            )

        dispatch_best_effort(self.notifier, BookingNotice.from_booking("rescheduled", moved))
        return BookingOutcome(status=OutcomeStatus.RESCHEDULED, booking=moved)

    def cancel_booking(self, booking_id: str) -> BookingOutcome:
        existing = self.store.get_booking(booking_id)
        if existing is None:
            return BookingOutcome(
                status=OutcomeStatus.NOT_FOUND, errors=[f"Booking {booking_id} not found"]
            )
        if not existing.is_active:
            return BookingOutcome(
                status=OutcomeStatus.INVALID,
                booking=existing,
                errors=[f"Booking is already {existing.status.value}"],
            )
        cutoff = self._check_cutoff(existing)
        if cutoff is not None:
            return cutoff

        cancelled = self.store.update_booking_status(booking_id, BookingStatus.CANCELLED)
        if cancelled is None:
            return BookingOutcome(
                status=OutcomeStatus.NOT_FOUND, errors=[f"Booking {booking_id} not found"]
            )
        logger.info("Booking %s cancelled", booking_id)
        dispatch_best_effort(self.notifier, BookingNotice.from_booking("cancelled", cancelled))
        return BookingOutcome(status=OutcomeStatus.CANCELLED, booking=cancelled)

    def confirm_booking(self, booking_id: str) -> BookingOutcome:
        return self._change_status(
            booking_id, {BookingStatus.PENDING}, BookingStatus.CONFIRMED, OutcomeStatus.CONFIRMED
        )

    def complete_booking(self, booking_id: str) -> BookingOutcome:
        return self._change_status(
            booking_id,
            {BookingStatus.PENDING, BookingStatus.CONFIRMED},
            BookingStatus.COMPLETED,
            OutcomeStatus.COMPLETED,
        )

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.store.get_booking(booking_id)

    def find_by_confirmation_code(self, code: str) -> Optional[Booking]:
        code = code.strip().upper()
        if not validate_confirmation_code(code):
            return None
        for booking in self.store.list_bookings():
            if booking.confirmation_code == code:
                return booking
        return None

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _commit(self, booking: Booking) -> Booking:
        """Check-and-insert, drawing a new confirmation code if the last one was taken."""
        for _ in range(MAX_CODE_ATTEMPTS - 1):
            try:
                return self.conflicts.book(booking)
            except ConfirmationCodeCollisionError:
                logger.warning(
                    "Confirmation code %s already issued, drawing another", booking.confirmation_code
                )
                booking = booking.model_copy(update={"confirmation_code": self._code_factory()})
        return self.conflicts.book(booking)

    def _check_cutoff(self, booking: Booking) -> Optional[BookingOutcome]:
        cutoff = validate_modification_cutoff(
            booking.start_time,
            now=self._clock(),
            cutoff_hours=self.validator.rules.modification_cutoff_hours,
        )
        if cutoff.valid:
            return None
        logger.info(
            "Modification of %s blocked: %.1f hours remaining", booking.id, cutoff.hours_remaining
        )
        return BookingOutcome(
            status=OutcomeStatus.TOO_LATE,
            booking=booking,
            errors=[cutoff.error],
            hours_remaining=cutoff.hours_remaining,
        )

    def _change_status(
        self,
        booking_id: str,
        allowed_from: set[BookingStatus],
        new_status: BookingStatus,
        outcome_status: str,
    ) -> BookingOutcome:
        existing = self.store.get_booking(booking_id)
        if existing is None:
            return BookingOutcome(
                status=OutcomeStatus.NOT_FOUND, errors=[f"Booking {booking_id} not found"]
            )
        if existing.status not in allowed_from:
            return BookingOutcome(
                status=OutcomeStatus.INVALID,
                booking=existing,
                errors=[
                    f"Cannot mark a {existing.status.value} booking as {new_status.value}"
                ],
            )
        updated = self.store.update_booking_status(booking_id, new_status)
        if updated is None:
            return BookingOutcome(
                status=OutcomeStatus.NOT_FOUND, errors=[f"Booking {booking_id} not found"]
            )
        dispatch_best_effort(self.notifier, BookingNotice.from_booking(outcome_status, updated))
        return BookingOutcome(status=outcome_status, booking=updated)

    def _remember_customer(self, request: BookingRequest) -> None:
        if self.customers is None:
            return
        customer = request.customer
        if self.customers.lookup_customer(customer.phone) is None:
            self.customers.create_customer(
                customer.name, customer.phone, customer.email, customer.address
            )
        self.customers.record_booking(customer.phone)
