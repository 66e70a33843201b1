"""Tests for urgency-aware appointment suggestions."""

from datetime import timedelta

from booking_core.schemas.classification_schema import UrgencyLevel
from booking_core.schemas.scheduling_schema import AvailableSlot
from booking_core.scheduling.suggestions import suggest_times
from conftest import FIXED_NOW, TUESDAY, at

MONDAY = FIXED_NOW.date()
WEDNESDAY = TUESDAY + timedelta(days=1)


def slot(start, technician_id="T1", minutes=60):
    return AvailableSlot(
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        duration_minutes=minutes,
        technician_id=technician_id,
    )


def suggest(slots, urgency, **kwargs):
    return suggest_times(slots, urgency, now=FIXED_NOW, timezone_name="UTC", **kwargs)


class TestOrdering:
    def test_emergency_earliest_first(self):
        slots = [slot(at(TUESDAY, 9)), slot(at(MONDAY, 15)), slot(at(MONDAY, 9))]
        result = suggest(slots, UrgencyLevel.EMERGENCY)
        assert [s.start_time for s in result.slots] == [
            at(MONDAY, 9), at(MONDAY, 15), at(TUESDAY, 9),
        ]
        assert result.recommended.start_time == at(MONDAY, 9)
        assert result.within_response_window

    def test_high_urgency_prefers_today(self):
        slots = [slot(at(TUESDAY, 9)), slot(at(MONDAY, 16))]
        result = suggest(slots, UrgencyLevel.HIGH, max_suggestions=1)
        assert [s.start_time for s in result.slots] == [at(MONDAY, 16)]
        assert result.within_response_window

    def test_low_urgency_recommends_second(self):
        slots = [slot(at(TUESDAY, 9)), slot(at(TUESDAY, 10)), slot(at(TUESDAY, 11))]
        result = suggest(slots, UrgencyLevel.LOW)
        assert result.earliest.start_time == at(TUESDAY, 9)
        assert result.recommended.start_time == at(TUESDAY, 10)

    def test_same_start_offered_once(self):
        slots = [slot(at(TUESDAY, 9), "T1"), slot(at(TUESDAY, 9), "T2"), slot(at(TUESDAY, 10))]
        result = suggest(slots, UrgencyLevel.MEDIUM)
        assert [(s.start_time, s.technician_id) for s in result.slots] == [
            (at(TUESDAY, 9), "T1"), (at(TUESDAY, 10), "T1"),
        ]

    def test_capped_at_max_suggestions(self):
        slots = [slot(at(TUESDAY, h)) for h in range(9, 17)]
        assert len(suggest(slots, UrgencyLevel.MEDIUM).slots) == 4
        assert len(suggest(slots, UrgencyLevel.MEDIUM, max_suggestions=2).slots) == 2


class TestPreferences:
    def test_weekday_filter(self):
        slots = [slot(at(TUESDAY, 9)), slot(at(WEDNESDAY, 9)), slot(at(WEDNESDAY, 14))]
        result = suggest(slots, UrgencyLevel.MEDIUM, preferred_weekday=2)
        assert {s.start_time.date() for s in result.slots} == {WEDNESDAY}

    def test_hour_range_inclusive(self):
        slots = [slot(at(TUESDAY, h)) for h in range(9, 17)]
        result = suggest(slots, UrgencyLevel.MEDIUM, preferred_hours=(13, 15))
        assert [s.start_time.hour for s in result.slots] == [13, 14, 15]

    def test_nothing_matches(self):
        result = suggest([slot(at(TUESDAY, 9))], UrgencyLevel.MEDIUM, preferred_weekday=4)
        assert result.slots == []
        assert result.earliest is None
        assert result.recommended is None
        assert "waitlist" in result.note


class TestResponseWindow:
    def test_emergency_outside_two_hours(self):
        result = suggest([slot(at(TUESDAY, 9))], UrgencyLevel.EMERGENCY)
        assert not result.within_response_window

    def test_low_urgency_within_three_days(self):
        result = suggest([slot(at(WEDNESDAY, 9))], UrgencyLevel.LOW)
        assert result.within_response_window
