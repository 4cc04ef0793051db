"""
Tests for the interval scheduler.

Covers overlap rules, cancelled/excluded bookings, daily slot partitioning
and interval pricing.
"""

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from scheduler import (
    AvailabilityWindow,
    BookingInterval,
    BookingStatus,
    can_transition,
    compute_daily_availability,
    find_conflicts,
    has_conflict,
    price_for_interval,
)

STUDIO = uuid.uuid4()
OTHER_STUDIO = uuid.uuid4()
DAY = date(2026, 3, 14)


def at(hour, minute=0, day=DAY):
    return datetime(day.year, day.month, day.day, hour, minute)


def booking(start, end, status=BookingStatus.confirmed, studio_id=STUDIO, booking_id=None):
    return BookingInterval(
        id=booking_id or uuid.uuid4(), studio_id=studio_id, start=start, end=end, status=status
    )


class TestHasConflict:
    def test_adjacent_intervals_do_not_conflict(self):
        existing = [booking(at(12), at(14))]
        assert has_conflict(STUDIO, at(10), at(12), existing) is False
        assert has_conflict(STUDIO, at(14), at(16), existing) is False

    def test_overlapping_intervals_conflict(self):
        existing = [booking(at(12), at(14))]
        assert has_conflict(STUDIO, at(10), at(13), existing) is True

    def test_contained_and_containing_intervals_conflict(self):
        existing = [booking(at(10), at(16))]
        assert has_conflict(STUDIO, at(11), at(12), existing) is True
        assert has_conflict(STUDIO, at(9), at(17), existing) is True

    def test_identical_interval_conflicts(self):
        existing = [booking(at(10), at(11))]
        assert has_conflict(STUDIO, at(10), at(11), existing) is True

    def test_conflict_is_symmetric(self):
        pairs = [
            ((at(10), at(13)), (at(12), at(14))),
            ((at(10), at(12)), (at(12), at(14))),
            ((at(9), at(18)), (at(11), at(12))),
            ((at(8), at(9)), (at(15), at(16))),
        ]
        for (s1, e1), (s2, e2) in pairs:
            forward = has_conflict(STUDIO, s1, e1, [booking(s2, e2)])
            backward = has_conflict(STUDIO, s2, e2, [booking(s1, e1)])
            assert forward == backward

    def test_cancelled_booking_never_conflicts(self):
        existing = [booking(at(10), at(12), status=BookingStatus.cancelled)]
        assert has_conflict(STUDIO, at(10), at(12), existing) is False

    @pytest.mark.parametrize(
        "status", [BookingStatus.pending, BookingStatus.confirmed, BookingStatus.completed]
    )
    def test_active_statuses_conflict(self, status):
        existing = [booking(at(10), at(12), status=status)]
        assert has_conflict(STUDIO, at(11), at(13), existing) is True

    def test_other_studio_is_ignored(self):
        existing = [booking(at(10), at(12), studio_id=OTHER_STUDIO)]
        assert has_conflict(STUDIO, at(10), at(12), existing) is False

    def test_excluded_booking_does_not_conflict_with_itself(self):
        own_id = uuid.uuid4()
        existing = [booking(at(10), at(12), booking_id=own_id)]
        assert has_conflict(STUDIO, at(10), at(13), existing, exclude_booking_id=own_id) is False
        assert has_conflict(STUDIO, at(10), at(13), existing) is True

    def test_exclusion_keeps_other_bookings(self):
        own_id = uuid.uuid4()
        existing = [booking(at(10), at(12), booking_id=own_id), booking(at(12), at(14))]
        assert has_conflict(STUDIO, at(11), at(13), existing, exclude_booking_id=own_id) is True

    def test_no_bookings(self):
        assert has_conflict(STUDIO, at(10), at(12), []) is False

    def test_find_conflicts_returns_overlapping_only(self):
        hit = booking(at(11), at(12))
        existing = [booking(at(8), at(10)), hit, booking(at(13), at(14))]
        assert find_conflicts(STUDIO, at(10), at(13), existing) == [hit]


class TestBookingInterval:
    def test_start_must_precede_end(self):
        with pytest.raises(ValidationError):
            BookingInterval(studio_id=STUDIO, start=at(12), end=at(12))


class TestAvailabilityWindow:
    @pytest.mark.parametrize(
        "opening, closing",
        [(-1, 10), (10, 10), (12, 9), (0, 25)],
    )
    def test_invalid_hours_rejected(self, opening, closing):
        with pytest.raises(ValidationError):
            AvailabilityWindow(opening_hour=opening, closing_hour=closing)

    def test_full_day_allowed(self):
        window = AvailabilityWindow(opening_hour=0, closing_hour=24)
        assert window.slot_width_hours == 1

    def test_slot_width_must_divide_window(self):
        with pytest.raises(ValidationError):
            AvailabilityWindow(opening_hour=9, closing_hour=22, slot_width_hours=2)


class TestDailyAvailability:
    def test_reference_scenario(self):
        window = AvailabilityWindow(opening_hour=9, closing_hour=22)
        result = compute_daily_availability(STUDIO, DAY, window, [booking(at(10), at(12))])

        assert len(result.available_slots) == 11
        assert len(result.booked_slots) == 2
        assert [(s.start, s.end) for s in result.booked_slots] == [
            (at(10), at(11)),
            (at(11), at(12)),
        ]

    def test_slots_partition_window(self):
        window = AvailabilityWindow(opening_hour=9, closing_hour=22)
        existing = [booking(at(9, 30), at(10)), booking(at(14), at(17, 15))]
        result = compute_daily_availability(STUDIO, DAY, window, existing)

        slots = sorted(result.available_slots + result.booked_slots, key=lambda s: s.start)
        assert len(slots) == window.closing_hour - window.opening_hour
        assert slots[0].start == at(9)
        assert slots[-1].end == at(22)
        for previous, current in zip(slots, slots[1:]):
            assert previous.end == current.start

    def test_each_list_is_ascending(self):
        window = AvailabilityWindow(opening_hour=9, closing_hour=22)
        existing = [booking(at(15), at(16)), booking(at(10), at(11))]
        result = compute_daily_availability(STUDIO, DAY, window, existing)

        for slots in (result.available_slots, result.booked_slots):
            starts = [s.start for s in slots]
            assert starts == sorted(starts)

    def test_partial_overlap_books_whole_slot(self):
        window = AvailabilityWindow(opening_hour=9, closing_hour=12)
        result = compute_daily_availability(STUDIO, DAY, window, [booking(at(10, 45), at(11, 15))])
        assert [(s.start, s.end) for s in result.booked_slots] == [
            (at(10), at(11)),
            (at(11), at(12)),
        ]

    def test_cancelled_and_foreign_bookings_leave_day_free(self):
        window = AvailabilityWindow(opening_hour=9, closing_hour=22)
        existing = [
            booking(at(10), at(12), status=BookingStatus.cancelled),
            booking(at(13), at(15), studio_id=OTHER_STUDIO),
        ]
        result = compute_daily_availability(STUDIO, DAY, window, existing)
        assert result.booked_slots == []
        assert len(result.available_slots) == 13

    def test_booking_from_previous_day_spills_into_morning(self):
        window = AvailabilityWindow(opening_hour=0, closing_hour=6)
        late_session = booking(datetime(2026, 3, 13, 22), at(2))
        result = compute_daily_availability(STUDIO, DAY, window, [late_session])
        assert [s.start for s in result.booked_slots] == [at(0), at(1)]

    def test_bookings_on_other_days_are_ignored(self):
        window = AvailabilityWindow(opening_hour=9, closing_hour=22)
        tomorrow = date(2026, 3, 15)
        result = compute_daily_availability(
            STUDIO, DAY, window, [booking(at(10, day=tomorrow), at(12, day=tomorrow))]
        )
        assert result.booked_slots == []

    def test_time_of_day_is_ignored(self):
        window = AvailabilityWindow(opening_hour=9, closing_hour=11)
        result = compute_daily_availability(STUDIO, at(17, 42), window, [])
        assert [s.start for s in result.available_slots] == [at(9), at(10)]

    def test_wider_slots(self):
        window = AvailabilityWindow(opening_hour=8, closing_hour=20, slot_width_hours=4)
        result = compute_daily_availability(STUDIO, DAY, window, [booking(at(13), at(14))])
        assert [(s.start, s.end) for s in result.booked_slots] == [(at(12), at(16))]
        assert [s.start for s in result.available_slots] == [at(8), at(16)]


class TestPriceForInterval:
    def test_fractional_hours(self):
        assert price_for_interval(50, at(10), at(13, 30)) == 175.0

    def test_whole_hours(self):
        assert price_for_interval(80, at(9), at(11)) == 160.0

    def test_no_rounding(self):
        assert price_for_interval(10, at(10), at(10, 20)) == pytest.approx(10 / 3)


class TestStatusTransitions:
    @pytest.mark.parametrize(
        "current, new",
        [
            (BookingStatus.pending, BookingStatus.confirmed),
            (BookingStatus.confirmed, BookingStatus.completed),
            (BookingStatus.pending, BookingStatus.cancelled),
            (BookingStatus.confirmed, BookingStatus.cancelled),
        ],
    )
    def test_allowed(self, current, new):
        assert can_transition(current, new) is True

    @pytest.mark.parametrize(
        "current, new",
        [
            (BookingStatus.pending, BookingStatus.completed),
            (BookingStatus.confirmed, BookingStatus.pending),
            (BookingStatus.completed, BookingStatus.cancelled),
            (BookingStatus.cancelled, BookingStatus.pending),
            (BookingStatus.completed, BookingStatus.completed),
        ],
    )
    def test_rejected(self, current, new):
        assert can_transition(current, new) is False


class TestAwareDatetimes:
    def test_aware_day_with_aware_bookings(self):
        window = AvailabilityWindow(opening_hour=9, closing_hour=22)
        start = datetime(2026, 3, 14, 10, tzinfo=timezone.utc)
        end = datetime(2026, 3, 14, 12, tzinfo=timezone.utc)

        result = compute_daily_availability(
            STUDIO, datetime(2026, 3, 14, tzinfo=timezone.utc), window, [booking(start, end)]
        )

        assert [(s.start, s.end) for s in result.booked_slots] == [
            (start, datetime(2026, 3, 14, 11, tzinfo=timezone.utc)),
            (datetime(2026, 3, 14, 11, tzinfo=timezone.utc), end),
        ]
        assert len(result.available_slots) == 11
        assert all(s.start.utcoffset() == timedelta(0) for s in result.available_slots)

    def test_aware_conflict(self):
        existing = [
            booking(
                datetime(2026, 3, 14, 12, tzinfo=timezone.utc),
                datetime(2026, 3, 14, 14, tzinfo=timezone.utc),
            )
        ]
        assert has_conflict(
            STUDIO,
            datetime(2026, 3, 14, 10, tzinfo=timezone.utc),
            datetime(2026, 3, 14, 13, tzinfo=timezone.utc),
            existing,
        ) is True
