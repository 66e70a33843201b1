"""Tests for the authoritative conflict check and transactional booking."""

import threading
from datetime import timedelta
from itertools import combinations

import pytest

from booking_core.exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    BookingValidationError,
)
from booking_core.schemas.scheduling_schema import BookingStatus
from booking_core.scheduling.availability import guarded_interval
from booking_core.scheduling.buffers import get_buffer
from booking_core.scheduling.conflict_checker import ConflictChecker
from booking_core.utils import overlaps
from conftest import TUESDAY, at


@pytest.fixture
def checker(store):
    return ConflictChecker(store)


class TestCheckConflict:
    def test_buffer_overlap_rejected(self, checker, make_booking):
        # Existing 10:00-11:00; a new plumbing job needs 15 minutes of setup first
        checker.book(make_booking(at(TUESDAY, 10)))
        result = checker.check_conflict("T1", at(TUESDAY, 11), at(TUESDAY, 12), "plumbing")
        assert not result.can_book
        assert result.conflicting_booking_id == "B1"
        assert "already booked" in result.reason

    def test_start_after_buffer_accepted(self, checker, make_booking):
        # locksmith: no setup, 15 minutes of cleanup
        checker.book(make_booking(at(TUESDAY, 10), service_type="locksmith"))
        assert not checker.check_conflict(
            "T1", at(TUESDAY, 11), at(TUESDAY, 12), "locksmith"
        ).can_book
        result = checker.check_conflict(
            "T1", at(TUESDAY, 11, 15), at(TUESDAY, 12, 15), "locksmith"
        )
        assert result.can_book
        assert result.reason is None

    def test_existing_booking_keeps_its_own_cleanup(self, checker, make_booking):
        # plumbing 10:00-11:00 is busy until 11:30 whatever is booked next
        checker.book(make_booking(at(TUESDAY, 10), service_type="plumbing"))
        with pytest.raises(BookingConflictError) as exc_info:
            checker.book(make_booking(at(TUESDAY, 11), service_type="locksmith"))
        assert "busy until 11:30" in exc_info.value.reason
        assert not checker.check_conflict(
            "T1", at(TUESDAY, 11, 15), at(TUESDAY, 12, 15), "locksmith"
        ).can_book
        assert checker.check_conflict(
            "T1", at(TUESDAY, 11, 30), at(TUESDAY, 12, 30), "locksmith"
        ).can_book

    def test_new_booking_setup_cannot_eat_into_earlier_cleanup(self, checker, make_booking):
        # 11:30 clears the plumbing cleanup but not another plumbing job's 15 minute setup
        checker.book(make_booking(at(TUESDAY, 10), service_type="plumbing"))
        assert not checker.check_conflict(
            "T1", at(TUESDAY, 11, 30), at(TUESDAY, 12, 30), "plumbing"
        ).can_book
        assert checker.check_conflict(
            "T1", at(TUESDAY, 11, 45), at(TUESDAY, 12, 45), "plumbing"
        ).can_book

    def test_later_booking_setup_blocks_earlier_slot(self, checker, make_booking):
        # roofing at 13:00 needs 30 minutes of setup from 12:30
        checker.book(make_booking(at(TUESDAY, 13), service_type="roofing"))
        assert not checker.check_conflict(
            "T1", at(TUESDAY, 11, 30), at(TUESDAY, 12, 30), "locksmith"
        ).can_book
        assert checker.check_conflict(
            "T1", at(TUESDAY, 11), at(TUESDAY, 12), "locksmith"
        ).can_book

    def test_other_technician_free(self, checker, make_booking):
        checker.book(make_booking(at(TUESDAY, 10)))
        assert checker.check_conflict("T2", at(TUESDAY, 10), at(TUESDAY, 11), "plumbing").can_book

    def test_cancelled_booking_frees_window(self, checker, store, make_booking):
        checker.book(make_booking(at(TUESDAY, 10)))
        store.update_booking_status("B1", BookingStatus.CANCELLED)
        assert checker.check_conflict("T1", at(TUESDAY, 10), at(TUESDAY, 11), "plumbing").can_book

    def test_reads_latest_commit(self, checker, make_booking):
        assert checker.check_conflict("T1", at(TUESDAY, 10), at(TUESDAY, 11), "plumbing").can_book
        checker.book(make_booking(at(TUESDAY, 10)))
        assert not checker.check_conflict(
            "T1", at(TUESDAY, 10), at(TUESDAY, 11), "plumbing"
        ).can_book


class TestBook:
    def test_book_persists(self, checker, store, make_booking):
        booking = checker.book(make_booking(at(TUESDAY, 10)))
        assert store.get_booking(booking.id) == booking

    def test_overlapping_book_raises(self, checker, store, make_booking):
        checker.book(make_booking(at(TUESDAY, 10)))
        with pytest.raises(BookingConflictError) as exc_info:
            checker.book(make_booking(at(TUESDAY, 10, 30)))
        assert exc_info.value.conflicting_booking_id == "B1"
        assert len(store.list_bookings()) == 1

    def test_no_partial_write_on_failure(self, store, make_booking):
        with pytest.raises(RuntimeError):
            with store.transaction("T1") as tx:
                tx.add(make_booking(at(TUESDAY, 10)))
                raise RuntimeError("boom")
        assert store.list_bookings() == []

    def test_concurrent_same_slot_exactly_one_wins(self, checker, make_booking):
        attempts = 8
        barrier = threading.Barrier(attempts)
        results: list[str] = []
        lock = threading.Lock()

        def attempt(i: int) -> None:
            booking = make_booking(at(TUESDAY, 10), booking_id=f"C{i}")
            barrier.wait()
            try:
                checker.book(booking)
                outcome = "created"
            except BookingConflictError:
                outcome = "conflict"
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(attempts)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("created") == 1
        assert results.count("conflict") == attempts - 1

    def test_two_concurrent_requests(self, checker, store, make_booking):
        barrier = threading.Barrier(2)
        outcomes: list[str] = []

        def attempt(booking_id: str) -> None:
            booking = make_booking(at(TUESDAY, 14), booking_id=booking_id)
            barrier.wait()
            try:
                checker.book(booking)
                outcomes.append("created")
            except BookingConflictError:
                outcomes.append("conflict")

        threads = [threading.Thread(target=attempt, args=(bid,)) for bid in ("X", "Y")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["conflict", "created"]
        assert len([b for b in store.list_bookings() if b.is_active]) == 1

    def test_committed_bookings_never_overlap_with_buffers(self, checker, store, make_booking):
        services = ["plumbing", "locksmith", "roofing"]
        bookings = [
            make_booking(
                at(TUESDAY, 9) + timedelta(minutes=15 * i),
                service_type=services[i % len(services)],
                booking_id=f"S{i}",
            )
            for i in range(24)
        ]

        def attempt(booking) -> None:
            try:
                checker.book(booking)
            except BookingConflictError:
                pass

        threads = [threading.Thread(target=attempt, args=(b,)) for b in bookings]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        booked = store.list_bookings()
        assert len(booked) > 1
        guarded = [
            guarded_interval(b.start_time, b.end_time, get_buffer(b.service_type)) for b in booked
        ]
        for (s1, e1), (s2, e2) in combinations(guarded, 2):
            assert not overlaps(s1, e1, s2, e2)

    def test_unassigned_booking_rejected(self, checker, store, make_booking):
        with pytest.raises(BookingValidationError):
            checker.book(make_booking(at(TUESDAY, 10), technician_id=None))
        assert store.list_bookings() == []

    def test_unassigned_booking_cannot_be_moved(self, checker, store, make_booking):
        with store.transaction(None) as tx:
            tx.add(make_booking(at(TUESDAY, 10), technician_id=None))
        with pytest.raises(BookingValidationError):
            checker.reschedule("B1", at(TUESDAY, 14), at(TUESDAY, 15))


class TestReschedule:
    def test_move_to_free_time(self, checker, store, make_booking):
        checker.book(make_booking(at(TUESDAY, 10)))
        moved = checker.reschedule("B1", at(TUESDAY, 14), at(TUESDAY, 15))
        assert moved.start_time == at(TUESDAY, 14)
        assert store.get_booking("B1").start_time == at(TUESDAY, 14)

    def test_overlap_with_itself_ignored(self, checker, make_booking):
        checker.book(make_booking(at(TUESDAY, 10)))
        moved = checker.reschedule("B1", at(TUESDAY, 10, 30), at(TUESDAY, 11, 30))
        assert moved.start_time == at(TUESDAY, 10, 30)

    def test_conflict_with_other_booking(self, checker, make_booking):
        checker.book(make_booking(at(TUESDAY, 10)))
        checker.book(make_booking(at(TUESDAY, 14)))
        with pytest.raises(BookingConflictError):
            checker.reschedule("B1", at(TUESDAY, 14), at(TUESDAY, 15))

    def test_missing_booking(self, checker):
        with pytest.raises(BookingNotFoundError):
            checker.reschedule("nope", at(TUESDAY, 14), at(TUESDAY, 15))


class TestSuggestions:
    def test_next_available_start_skips_conflict(self, checker, make_booking):
        checker.book(make_booking(at(TUESDAY, 10)))
        start = checker.find_next_available_start(
            "T1", at(TUESDAY, 10), "plumbing", 60, days_ahead=1
        )
        assert start == at(TUESDAY, 12)

    def test_accept_filter_applied(self, checker):
        start = checker.find_next_available_start(
            "T1", at(TUESDAY, 6), "plumbing", 60, days_ahead=1,
            accept=lambda s: s.hour >= 9,
        )
        assert start == at(TUESDAY, 9)

    def test_expert_bookings_in_window_only_active(self, checker, store, make_booking):
        checker.book(make_booking(at(TUESDAY, 10)))
        checker.book(make_booking(at(TUESDAY, 14)))
        store.update_booking_status("B2", BookingStatus.CANCELLED)
        found = checker.expert_bookings_in_window("T1", at(TUESDAY, 0), at(TUESDAY, 23))
        assert [b.id for b in found] == ["B1"]
