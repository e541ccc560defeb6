"""Booking lifecycle: the closed status set and the transitions between them."""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvalidTransitionError(ValueError):
    """Raised when a booking is asked to move to a status it cannot reach."""

    def __init__(self, current: BookingStatus, target: BookingStatus) -> None:
        super().__init__(f"Invalid booking transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target


OWNER = "owner"
BORROWER = "borrower"

# Dates covered by these statuses are shown as booked.
BOOKED_STATUSES: FrozenSet[BookingStatus] = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.ACTIVE, BookingStatus.COMPLETED}
)
# Pending requests hold their dates as well, so an outstanding owner decision
# cannot be double-booked.
BLOCKING_STATUSES: FrozenSet[BookingStatus] = BOOKED_STATUSES | {BookingStatus.PENDING}

TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.PENDING, BookingStatus.CANCELLED, BookingStatus.ACTIVE, BookingStatus.COMPLETED}
    ),
    BookingStatus.ACTIVE: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

_OWNER_ONLY = frozenset({OWNER})
_EITHER_PARTY = frozenset({OWNER, BORROWER})


def can_transition(current: BookingStatus | str, target: BookingStatus | str) -> bool:
    return BookingStatus(target) in TRANSITIONS[BookingStatus(current)]


def assert_transition(current: BookingStatus | str, target: BookingStatus | str) -> None:
    current, target = BookingStatus(current), BookingStatus(target)
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def allowed_actors(current: BookingStatus | str, target: BookingStatus | str) -> FrozenSet[str]:
    """Return the parties ("owner", "borrower") allowed to trigger a transition.

    An empty set means the transition does not exist at all.
    """

    current, target = BookingStatus(current), BookingStatus(target)
    if not can_transition(current, target):
        return frozenset()
    if target == BookingStatus.CANCELLED:
        # Borrower withdraws a request or cancels; owner rejects or cancels.
        return _EITHER_PARTY
    return _OWNER_ONLY


def can_delete(status: BookingStatus | str, is_borrower: bool) -> bool:
    status = BookingStatus(status)
    if status == BookingStatus.CANCELLED:
        return True
    return is_borrower and status == BookingStatus.PENDING
