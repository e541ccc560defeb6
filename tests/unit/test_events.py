"""Unit tests for booking event publishing."""
import json
from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from common.booking_status import BookingStatus
from common.config import get_settings
from common.events import BOOKING_CREATED, booking_event, publish_booking_event


@pytest.fixture()
def booking():
    return SimpleNamespace(
        id=5,
        item_id=2,
        borrower_id=3,
        owner_id=1,
        status=BookingStatus.PENDING,
        start_date=date(2024, 6, 10),
        end_date=date(2024, 6, 12),
    )


@pytest.fixture()
def broker_enabled(monkeypatch):
    monkeypatch.setattr(get_settings(), "event_broker_enabled", True)


class TestBookingEvent:
    def test_payload(self, booking):
        assert booking_event(BOOKING_CREATED, booking) == {
            "event": "booking_created",
            "booking_id": 5,
            "item_id": 2,
            "borrower_id": 3,
            "owner_id": 1,
            "status": "pending",
            "start_date": "2024-06-10",
            "end_date": "2024-06-12",
        }


class TestPublish:
    def test_disabled_broker_is_skipped(self, booking):
        with patch("common.events.pika.BlockingConnection") as connection:
            assert publish_booking_event(BOOKING_CREATED, booking) is False
        connection.assert_not_called()

    def test_publishes_persistent_message(self, booking, broker_enabled):
        with patch("common.events.pika.BlockingConnection") as connection:
            channel = connection.return_value.channel.return_value
            assert publish_booking_event(BOOKING_CREATED, booking) is True

        channel.queue_declare.assert_called_once_with(queue="bookings", durable=True)
        kwargs = channel.basic_publish.call_args.kwargs
        assert kwargs["routing_key"] == "bookings"
        assert json.loads(kwargs["body"])["booking_id"] == 5
        assert kwargs["properties"].delivery_mode == 2
        connection.return_value.close.assert_called_once()

    def test_broker_failure_is_swallowed(self, booking, broker_enabled):
        with patch("common.events.pika.BlockingConnection", side_effect=OSError("unreachable")):
            assert publish_booking_event(BOOKING_CREATED, booking) is False

    def test_connection_closed_when_publish_fails(self, booking, broker_enabled):
        with patch("common.events.pika.BlockingConnection") as connection:
            connection.return_value.channel.return_value.basic_publish.side_effect = RuntimeError("nack")
            assert publish_booking_event(BOOKING_CREATED, booking) is False
        connection.return_value.close.assert_called_once()
