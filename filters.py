"""
Booking list filters.

Each optional field of BookingFilter that is set contributes one predicate.
Predicates are combined with AND, either in memory (`predicates`/`apply`)
or translated to SQL where clauses (`clauses`) for the list endpoint.
"""

import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional

from pydantic import BaseModel

from models import Booking
from scheduler import BookingStatus

Predicate = Callable[[Any], bool]


class BookingFilter(BaseModel):
    """
    Optional list filters, ANDed.

    `GET /bookings` goes through `clauses()` so filtering happens in the
    query. `predicates()`, `matches()` and `apply()` evaluate the same
    conditions over bookings already in memory and must stay in step with
    `clauses()`; the filter tests check the two paths against each other.
    """

    status: Optional[BookingStatus] = None
    client_id: Optional[uuid.UUID] = None
    engineer_id: Optional[uuid.UUID] = None
    studio_id: Optional[uuid.UUID] = None
    # Date range only applies when both ends are given
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def _has_date_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None

    def predicates(self) -> List[Predicate]:
        preds: List[Predicate] = []

        for field in ("status", "client_id", "engineer_id", "studio_id"):
            expected = getattr(self, field)
            if expected is not None:
                preds.append(lambda b, f=field, v=expected: getattr(b, f) == v)

        if self._has_date_range():
            lo, hi = self.start_date, self.end_date
            preds.append(lambda b: lo <= b.start_time <= hi)

        return preds

    def clauses(self) -> list:
        where = []
        if self.status is not None:
            where.append(Booking.status == self.status)
        if self.client_id is not None:
            where.append(Booking.client_id == self.client_id)
        if self.engineer_id is not None:
            where.append(Booking.engineer_id == self.engineer_id)
        if self.studio_id is not None:
            where.append(Booking.studio_id == self.studio_id)
        if self._has_date_range():
            where.append(Booking.start_time.between(self.start_date, self.end_date))
        return where

    def matches(self, booking) -> bool:
        return all(pred(booking) for pred in self.predicates())

    def apply(self, bookings: Iterable[Any]) -> List[Any]:
        preds = self.predicates()
        return [b for b in bookings if all(pred(b) for pred in preds)]
