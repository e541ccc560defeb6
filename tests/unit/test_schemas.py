"""Unit tests for schema validation."""
import os
from datetime import date

import pytest
from pydantic import ValidationError

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from common.models import ItemCondition, RoleEnum
from common.schemas import (
    BookingCreate,
    BookingStatusUpdate,
    ItemCreate,
    ReviewCreate,
    SelectRequest,
    UserCreate,
)


class TestUserSchemas:
    """Test user-related schemas."""

    def test_user_create_valid(self):
        """Test valid user creation schema."""
        user = UserCreate(
            name="John Doe",
            username="johndoe",
            email="john@example.com",
            password="SecurePass123!",
            role=RoleEnum.REGULAR,
        )

        assert user.name == "John Doe"
        assert user.username == "johndoe"
        assert user.email == "john@example.com"
        assert user.role == RoleEnum.REGULAR
        assert user.phone is None

    def test_user_create_invalid_email(self):
        """Test user creation with invalid email."""
        with pytest.raises(ValidationError):
            UserCreate(
                name="Test User",
                username="testuser",
                email="invalid-email",
                password="Password123",
            )

    def test_user_create_short_password(self):
        with pytest.raises(ValidationError):
            UserCreate(name="Test", username="test", email="t@example.com", password="short")


class TestItemSchemas:
    """Test item-related schemas."""

    def test_item_create_defaults(self):
        """Test item creation with default values."""
        item = ItemCreate(title="Tent", daily_rate=150)

        assert item.condition == ItemCondition.GOOD
        assert item.deposit_amount == 0
        assert item.is_available is True
        assert item.images == []

    def test_item_negative_rate_rejected(self):
        with pytest.raises(ValidationError):
            ItemCreate(title="Tent", daily_rate=-1)


class TestBookingSchemas:
    """Test booking-related schemas."""

    def test_booking_create_valid(self):
        """Test valid booking creation schema."""
        booking = BookingCreate(item_id=1, start_date="2024-06-10", end_date="2024-06-12")

        assert booking.item_id == 1
        assert booking.start_date == date(2024, 6, 10)
        assert booking.end_date == date(2024, 6, 12)

    def test_single_day_booking(self):
        booking = BookingCreate(item_id=1, start_date="2024-06-10", end_date="2024-06-10")

        assert booking.start_date == booking.end_date

    def test_booking_end_before_start_rejected(self):
        """Test that a reversed range is rejected."""
        with pytest.raises(ValidationError):
            BookingCreate(item_id=1, start_date="2024-06-12", end_date="2024-06-10")

    def test_status_update_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            BookingStatusUpdate(status="archived")

    def test_select_request_defaults_to_empty_selection(self):
        request = SelectRequest(clicked="2024-06-10")

        assert request.current.is_empty
        assert request.clicked == date(2024, 6, 10)


class TestReviewSchemas:
    """Test review-related schemas."""

    def test_review_create_minimal(self):
        """Test review creation with minimal required data."""
        review = ReviewCreate(booking_id=2, rating=4)

        assert review.booking_id == 2
        assert review.rating == 4
        assert review.comment is None

    def test_review_rating_validation(self):
        """Test review rating must be between 1 and 5."""
        assert ReviewCreate(booking_id=1, rating=1).rating == 1
        assert ReviewCreate(booking_id=1, rating=5).rating == 5

        with pytest.raises(ValidationError):
            ReviewCreate(booking_id=1, rating=0, comment="Too low")

        with pytest.raises(ValidationError):
            ReviewCreate(booking_id=1, rating=6, comment="Too high")
