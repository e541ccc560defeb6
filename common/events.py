"""Booking events published to RabbitMQ for downstream consumers."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict

import pika

from .config import get_settings
from .models import Booking

logger = logging.getLogger(__name__)

BOOKING_CREATED = "booking_created"
BOOKING_STATUS_CHANGED = "booking_status_changed"
BOOKING_DELETED = "booking_deleted"


def booking_event(event: str, booking: Booking) -> Dict[str, Any]:
    return {
        "event": event,
        "booking_id": booking.id,
        "item_id": booking.item_id,
        "borrower_id": booking.borrower_id,
        "owner_id": booking.owner_id,
        "status": booking.status.value,
        "start_date": booking.start_date.isoformat(),
        "end_date": booking.end_date.isoformat(),
    }


def publish_booking_event(event: str, booking: Booking) -> bool:
    """Publish one event on the durable bookings queue.

    Returns whether the message was handed to the broker; failures are
    logged and never raised, the booking itself has already been saved.
    """

    settings = get_settings()
    if not settings.event_broker_enabled:
        return False

    message = booking_event(event, booking)
    try:
        connection = pika.BlockingConnection(pika.ConnectionParameters(host=settings.rabbitmq_host))
        try:
            channel = connection.channel()
            channel.queue_declare(queue=settings.bookings_queue, durable=True)
            channel.basic_publish(
                exchange="",
                routing_key=settings.bookings_queue,
                body=json.dumps(message),
                properties=pika.BasicProperties(delivery_mode=2),
            )
        finally:
            connection.close()
    except Exception:
        logger.exception("Failed to publish %s for booking %s", event, booking.id)
        return False
    logger.info("Published %s for booking %s", event, booking.id)
    return True
