"""
Interval Scheduler

Pure booking arithmetic over half-open intervals [start, end):
- conflict detection against a studio's existing bookings
- partitioning of a business day into available / booked slots
- interval pricing

Nothing here touches the database. Callers load the bookings, call these
functions, and apply the result inside their own transaction.
"""

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Iterable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator

ONE_HOUR = timedelta(hours=1)


class BookingStatus(str, Enum):
    # Member names equal their values so the database stores the lowercase string
    pending = "pending"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"


TERMINAL_STATUSES = frozenset({BookingStatus.completed, BookingStatus.cancelled})

ALLOWED_TRANSITIONS = {
    BookingStatus.pending: frozenset({BookingStatus.confirmed, BookingStatus.cancelled}),
    BookingStatus.confirmed: frozenset({BookingStatus.completed, BookingStatus.cancelled}),
    BookingStatus.completed: frozenset(),
    BookingStatus.cancelled: frozenset(),
}


def is_active(status: BookingStatus) -> bool:
    return status != BookingStatus.cancelled


def can_transition(current: BookingStatus, new: BookingStatus) -> bool:
    """True if a booking in `current` may move to `new`. Staying put is always allowed for non-terminal states."""
    if current == new:
        return current not in TERMINAL_STATUSES
    return new in ALLOWED_TRANSITIONS[current]


class BookingInterval(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[Any] = None
    studio_id: Any
    start: datetime
    end: datetime
    status: BookingStatus = BookingStatus.pending

    @model_validator(mode="after")
    def _check_order(self):
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class AvailabilityWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    opening_hour: int = 9
    closing_hour: int = 22
    slot_width_hours: int = 1

    @model_validator(mode="after")
    def _check_bounds(self):
        if not 0 <= self.opening_hour < self.closing_hour <= 24:
            raise ValueError("hours must satisfy 0 <= opening_hour < closing_hour <= 24")
        if self.slot_width_hours < 1:
            raise ValueError("slot_width_hours must be at least 1")
        if (self.closing_hour - self.opening_hour) % self.slot_width_hours:
            raise ValueError("opening hours must divide evenly into slots")
        return self


class Slot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class DailyAvailability(BaseModel):
    available_slots: List[Slot]
    booked_slots: List[Slot]


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Strict half-open overlap. Touching endpoints do not overlap."""
    return start_a < end_b and end_a > start_b


def find_conflicts(
    studio_id: Any,
    start: datetime,
    end: datetime,
    bookings: Iterable[BookingInterval],
    exclude_booking_id: Optional[Any] = None,
) -> List[BookingInterval]:
    """
    Active bookings of `studio_id` overlapping [start, end).

    Cancelled bookings, bookings of other studios and the booking with
    `exclude_booking_id` (the one being edited) are skipped.
    """
    return [
        booking
        for booking in bookings
        if booking.studio_id == studio_id
        and is_active(booking.status)
        and (exclude_booking_id is None or booking.id != exclude_booking_id)
        and overlaps(start, end, booking.start, booking.end)
    ]


def has_conflict(
    studio_id: Any,
    start: datetime,
    end: datetime,
    bookings: Iterable[BookingInterval],
    exclude_booking_id: Optional[Any] = None,
) -> bool:
    return bool(find_conflicts(studio_id, start, end, bookings, exclude_booking_id))


def compute_daily_availability(
    studio_id: Any,
    day: Union[date, datetime],
    window: AvailabilityWindow,
    bookings: Iterable[BookingInterval],
) -> DailyAvailability:
    """
    Split the window of `day` into fixed-width slots and classify each one.

    A slot touched by any active booking is booked as a whole. The two
    returned lists are in ascending start order and together cover
    [opening_hour, closing_hour) exactly.
    """
    # An aware day keeps its zone so slots compare with aware bookings
    tzinfo = None
    if isinstance(day, datetime):
        tzinfo = day.tzinfo
        day = day.date()
    midnight = datetime.combine(day, time.min, tzinfo=tzinfo)

    # Only bookings reaching into the window can mark a slot
    window_start = midnight + window.opening_hour * ONE_HOUR
    window_end = midnight + window.closing_hour * ONE_HOUR
    relevant = find_conflicts(studio_id, window_start, window_end, bookings)

    available: List[Slot] = []
    booked: List[Slot] = []
    for hour in range(window.opening_hour, window.closing_hour, window.slot_width_hours):
        slot_start = midnight + hour * ONE_HOUR
        slot_end = slot_start + window.slot_width_hours * ONE_HOUR
        slot = Slot(start=slot_start, end=slot_end)
        if has_conflict(studio_id, slot_start, slot_end, relevant):
            booked.append(slot)
        else:
            available.append(slot)

    return DailyAvailability(available_slots=available, booked_slots=booked)


def price_for_interval(hourly_rate: float, start: datetime, end: datetime) -> float:
    """hourly_rate times the duration in (fractional) hours. No rounding."""
    return hourly_rate * ((end - start) / ONE_HOUR)
