"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

from booking_core.config import BookingRulesConfig, BusinessHoursConfig, ConversationConfig
from booking_core.schemas.scheduling_schema import (
    Booking,
    BookingRequest,
    BookingStatus,
    CustomerInfo,
)
from booking_core.scheduling.slot_generator import SlotGenerator
from booking_core.scheduling.validators import BookingValidator
from booking_core.store.memory import InMemoryBookingStore
from booking_core.tools.booking import BookingService
from booking_core.tools.customer import CustomerDirectory
from booking_core.tools.notifications import RecordingNotifier
from booking_core.tools.technicians import InMemoryTechnicianDirectory, TechnicianRecord

# Monday 2026-10-19, 08:00 UTC
FIXED_NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
TUESDAY = date(2026, 10, 20)
SUNDAY = date(2026, 10, 25)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC datetime on ``day`` at ``hour:minute``."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def hours():
    return BusinessHoursConfig(
        timezone="UTC", open_hour=9, close_hour=17, closed_weekday=6, slot_minutes=60
    )


@pytest.fixture
def rules():
    return BookingRulesConfig(
        min_lead_minutes=30,
        modification_cutoff_hours=24,
        search_days_ahead=7,
        far_future_warning_days=60,
        max_notes_length=500,
    )


@pytest.fixture
def conversation_config():
    return ConversationConfig(
        max_availability_retries=2, min_service_confidence=0.5, escalation_confidence=0.3
    )


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def technicians():
    return InMemoryTechnicianDirectory([
        TechnicianRecord(id="T1", name="Mike T."),
        TechnicianRecord(id="T2", name="Sarah L."),
        TechnicianRecord(id="T3", name="Dave W.", status="on_leave"),
    ])


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def customers():
    return CustomerDirectory([
        {
            "name": "Jane Doe",
            "phone": "5559876543",
            "email": "jane@example.com",
            "address": "42 Oak Avenue",
            "previous_bookings": 3,
        }
    ])


@pytest.fixture
def validator(technicians, clock, hours, rules):
    return BookingValidator(
        technician_status=technicians.get_status, clock=clock, hours=hours, rules=rules
    )


@pytest.fixture
def booking_service(store, validator, hours, technicians, notifier, customers, clock):
    return BookingService(
        store=store,
        validator=validator,
        slot_generator=SlotGenerator(hours=hours),
        technicians=technicians,
        notifier=notifier,
        customers=customers,
        clock=clock,
    )


@pytest.fixture
def make_request():
    def _make(
        start: datetime,
        service_type: str = "plumbing",
        technician_id: str = "T1",
        name: str = "John Smith",
        phone: str = "555-123-4567",
        email: str = "john@example.com",
        address: str = "12 Main Street",
        notes: Optional[str] = None,
    ) -> BookingRequest:
        return BookingRequest(
            customer=CustomerInfo(name=name, phone=phone, email=email, address=address),
            service_type=service_type,
            technician_id=technician_id,
            start_time=start,
            notes=notes,
        )

    return _make


@pytest.fixture
def make_booking():
    counter = {"n": 0}

    def _make(
        start: datetime,
        minutes: int = 60,
        technician_id: Optional[str] = "T1",
        service_type: str = "plumbing",
        status: BookingStatus = BookingStatus.CONFIRMED,
        booking_id: Optional[str] = None,
    ) -> Booking:
        counter["n"] += 1
        return Booking(
            id=booking_id or f"B{counter['n']}",
            technician_id=technician_id,
            service_type=service_type,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            status=status,
            confirmation_code=f"CODE{counter['n']:04d}",
        )

    return _make
