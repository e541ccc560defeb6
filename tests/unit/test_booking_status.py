"""Unit tests for the booking lifecycle rules."""
import pytest

from common.booking_status import (
    BORROWER,
    OWNER,
    BookingStatus,
    InvalidTransitionError,
    allowed_actors,
    assert_transition,
    can_delete,
    can_transition,
)

PENDING = BookingStatus.PENDING
CONFIRMED = BookingStatus.CONFIRMED
ACTIVE = BookingStatus.ACTIVE
COMPLETED = BookingStatus.COMPLETED
CANCELLED = BookingStatus.CANCELLED


class TestTransitions:
    """Test the transition table."""

    @pytest.mark.parametrize(
        "current, target",
        [
            (PENDING, CONFIRMED),
            (PENDING, CANCELLED),
            (CONFIRMED, PENDING),
            (CONFIRMED, CANCELLED),
            (CONFIRMED, ACTIVE),
            (CONFIRMED, COMPLETED),
            (ACTIVE, COMPLETED),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target) is True
        assert_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (PENDING, ACTIVE),
            (PENDING, COMPLETED),
            (PENDING, PENDING),
            (ACTIVE, CANCELLED),
            (ACTIVE, PENDING),
            (COMPLETED, PENDING),
            (CANCELLED, CONFIRMED),
            (CANCELLED, PENDING),
        ],
    )
    def test_rejected(self, current, target):
        assert can_transition(current, target) is False
        with pytest.raises(InvalidTransitionError) as exc_info:
            assert_transition(current, target)
        assert exc_info.value.current == current
        assert exc_info.value.target == target

    def test_terminal_statuses(self):
        for status in BookingStatus:
            assert can_transition(COMPLETED, status) is False
            assert can_transition(CANCELLED, status) is False

    def test_plain_strings_are_accepted(self):
        assert can_transition("pending", "confirmed") is True

    def test_unknown_status_is_an_error(self):
        with pytest.raises(ValueError):
            can_transition("pending", "archived")


class TestActors:
    def test_either_party_can_cancel(self):
        assert allowed_actors(PENDING, CANCELLED) == {OWNER, BORROWER}
        assert allowed_actors(CONFIRMED, CANCELLED) == {OWNER, BORROWER}

    @pytest.mark.parametrize("current, target", [(PENDING, CONFIRMED), (CONFIRMED, PENDING), (ACTIVE, COMPLETED)])
    def test_owner_only(self, current, target):
        assert allowed_actors(current, target) == {OWNER}

    def test_impossible_transition_has_no_actors(self):
        assert allowed_actors(COMPLETED, CANCELLED) == set()


class TestDelete:
    def test_cancelled_can_be_deleted_by_anyone(self):
        assert can_delete(CANCELLED, is_borrower=False) is True
        assert can_delete(CANCELLED, is_borrower=True) is True

    def test_borrower_withdraws_pending(self):
        assert can_delete(PENDING, is_borrower=True) is True
        assert can_delete(PENDING, is_borrower=False) is False

    @pytest.mark.parametrize("status", [CONFIRMED, ACTIVE, COMPLETED])
    def test_live_bookings_are_kept(self, status):
        assert can_delete(status, is_borrower=True) is False
