"""Per-day availability of a rentable item and date-range selection rules.

Everything here is a pure function of the bookings handed in and of an
explicit ``today``; nothing reads the clock or touches the database.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Iterator, List, Optional, Set, Tuple

from pydantic import BaseModel

from .booking_status import BLOCKING_STATUSES, BOOKED_STATUSES, BookingStatus

DEFAULT_HORIZON_DAYS = 90


class DayStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    PENDING = "pending"
    PAST = "past"


class InvalidDateError(ValueError):
    """Raised for date values that are not well-formed ``YYYY-MM-DD`` strings."""


class DateSelection(BaseModel):
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_empty(self) -> bool:
        return self.start is None

    @property
    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None


def parse_local_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` into a calendar date without any timezone shift."""

    parts = value.split("-") if isinstance(value, str) else []
    well_formed = len(parts) == 3 and [len(p) for p in parts] == [4, 2, 2]
    if not well_formed or not all(p.isascii() and p.isdigit() for p in parts):
        raise InvalidDateError(f"Invalid date {value!r}: expected YYYY-MM-DD")
    year, month, day = (int(p) for p in parts)
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidDateError(f"Invalid date {value!r}: {exc}") from exc


def coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_local_date(value)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day of the inclusive span, in order."""

    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


class AvailabilityCalendar:
    """Availability of a single item, built from all of its bookings.

    ``bookings`` may contain any status; cancelled ones are ignored here.
    Each booking only needs ``start_date``, ``end_date`` and ``status``.
    """

    def __init__(self, bookings: Iterable[Any], today: date, horizon_days: int = DEFAULT_HORIZON_DAYS) -> None:
        self.today = coerce_date(today)
        self.horizon_days = horizon_days
        self._booked: Set[date] = set()
        self._pending: Set[date] = set()
        for booking in bookings:
            status = BookingStatus(booking.status)
            if status not in BLOCKING_STATUSES:
                continue
            start, end = coerce_date(booking.start_date), coerce_date(booking.end_date)
            if end < start:
                raise InvalidDateError(f"Booking ends before it starts: {start.isoformat()} > {end.isoformat()}")
            target = self._booked if status in BOOKED_STATUSES else self._pending
            target.update(iter_days(start, end))

    def classify(self, day: date) -> DayStatus:
        day = coerce_date(day)
        if day < self.today:
            return DayStatus.PAST
        if day in self._booked:
            return DayStatus.BOOKED
        if day in self._pending:
            return DayStatus.PENDING
        return DayStatus.AVAILABLE

    def is_available(self, day: date) -> bool:
        return self.classify(day) == DayStatus.AVAILABLE

    def is_range_selectable(self, start: date, end: date) -> bool:
        start, end = coerce_date(start), coerce_date(end)
        low, high = min(start, end), max(start, end)
        return all(self.is_available(day) for day in iter_days(low, high))

    def select_date(self, current: DateSelection, clicked: date) -> DateSelection:
        """Two-click range builder.

        The first click anchors, the second closes the range. A second click
        whose span crosses a blocked day drops the old anchor and anchors on
        the clicked day instead. Clicks on days that are not available leave
        the selection unchanged.
        """

        clicked = coerce_date(clicked)
        if not self.is_available(clicked):
            return current
        if current.start is None or current.end is not None:
            return DateSelection(start=clicked)

        new_start, new_end = min(current.start, clicked), max(current.start, clicked)
        if not self.is_range_selectable(new_start, new_end):
            return DateSelection(start=clicked)
        return DateSelection(start=new_start, end=new_end)

    def find_next_available_anchor(self, start: date, within_days: Optional[int] = None) -> Optional[date]:
        start = coerce_date(start)
        window = self.horizon_days if within_days is None else within_days
        for offset in range(window):
            day = start + timedelta(days=offset)
            if self.is_available(day):
                return day
        return None

    def quick_select(self, days: int, start: Optional[date] = None) -> DateSelection:
        """Find the first fully available ``days``-long window from ``start``.

        Falls back to a single-day selection on the first available day in the
        search horizon, or to an empty selection.
        """

        start = self.today if start is None else coerce_date(start)
        if days < 1:
            return DateSelection()

        length = timedelta(days=days - 1)
        for offset in range(self.horizon_days):
            window_start = start + timedelta(days=offset)
            if self.is_range_selectable(window_start, window_start + length):
                return DateSelection(start=window_start, end=window_start + length)

        anchor = self.find_next_available_anchor(start)
        if anchor is None:
            return DateSelection()
        return DateSelection(start=anchor)

    def availability_map(self, start: date, days: int) -> List[Tuple[date, DayStatus]]:
        start = coerce_date(start)
        return [(day, self.classify(day)) for day in (start + timedelta(days=i) for i in range(max(days, 0)))]
