"""Tests for shared utility functions."""

from datetime import datetime, timedelta, timezone

from booking_core.utils import ensure_aware, normalize_phone, overlaps

T0 = datetime(2026, 10, 20, 10, 0, tzinfo=timezone.utc)


def _h(hours: float) -> datetime:
    return T0 + timedelta(hours=hours)


class TestNormalizePhone:
    def test_strips_punctuation(self):
        assert normalize_phone("(555) 123-4567") == "5551234567"

    def test_keeps_leading_plus(self):
        assert normalize_phone("+1 555.123.4567") == "+15551234567"

    def test_trims_whitespace(self):
        assert normalize_phone("  0412 345 678 ") == "0412345678"


class TestOverlaps:
    def test_overlapping_intervals(self):
        assert overlaps(_h(0), _h(2), _h(1), _h(3))

    def test_touching_intervals_do_not_overlap(self):
        assert not overlaps(_h(0), _h(1), _h(1), _h(2))

    def test_containment(self):
        assert overlaps(_h(0), _h(4), _h(1), _h(2))

    def test_disjoint(self):
        assert not overlaps(_h(0), _h(1), _h(2), _h(3))

    def test_symmetry(self):
        pairs = [
            ((0, 2), (1, 3)),
            ((0, 1), (1, 2)),
            ((0, 4), (1, 2)),
            ((0, 1), (2, 3)),
            ((1.5, 2.5), (0, 1.5)),
        ]
        for (a1, a2), (b1, b2) in pairs:
            assert overlaps(_h(a1), _h(a2), _h(b1), _h(b2)) == overlaps(
                _h(b1), _h(b2), _h(a1), _h(a2)
            )


class TestEnsureAware:
    def test_naive_becomes_utc(self):
        value = ensure_aware(datetime(2026, 10, 20, 9, 0))
        assert value.tzinfo is not None
        assert value.utcoffset() == timedelta(0)

    def test_aware_unchanged(self):
        assert ensure_aware(T0) is T0

    def test_named_zone(self):
        value = ensure_aware(datetime(2026, 7, 1, 9, 0), "America/New_York")
        assert value.utcoffset() == timedelta(hours=-4)
