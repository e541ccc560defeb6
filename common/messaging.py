"""Notifications and chat messages produced around bookings.

Notification and chat-channel helpers used as booking side effects are
best-effort: they commit on their own, roll back and log on failure, and
never raise into the booking flow that called them.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from .booking_status import BookingStatus
from .content_filter import FilterResult, filter_inappropriate_content, log_inappropriate_content
from .models import Booking, ChatMessage, ChatRoom, Notification, NotificationType
from .pricing import rental_days

logger = logging.getLogger(__name__)


def notify(
    db: Session, user_id: int, title: str, message: str, type_: NotificationType
) -> Optional[Notification]:
    notification = Notification(user_id=user_id, title=title, message=message, type=type_, is_read=False)
    try:
        db.add(notification)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to create %s notification for user %s", type_.value, user_id)
        return None
    return notification


def _stage_chat_message(
    db: Session, room: ChatRoom, sender_id: int, text: str, reply_to_id: Optional[int] = None
) -> Tuple[ChatMessage, FilterResult]:
    result = filter_inappropriate_content(text)
    now = datetime.utcnow()
    chat_message = ChatMessage(
        room_id=room.id,
        sender_id=sender_id,
        message=result.filtered_text,
        reply_to_id=reply_to_id,
        created_at=now,
    )
    db.add(chat_message)
    room.last_message = result.filtered_text
    room.last_message_time = now
    return chat_message, result


def post_chat_message(
    db: Session, room: ChatRoom, sender_id: int, text: str, reply_to_id: Optional[int] = None
) -> Tuple[ChatMessage, FilterResult]:
    """Store a filtered message and bump the room's last-message preview."""

    chat_message, result = _stage_chat_message(db, room, sender_id, text, reply_to_id)
    db.commit()
    db.refresh(chat_message)
    log_inappropriate_content(result, sender_id, "chat_message", chat_message.id)
    return chat_message, result


def booking_summary(booking: Booking) -> str:
    days = rental_days(booking.start_date, booking.end_date)
    summary = (
        f"Booking request for \"{booking.item.title}\": {booking.start_date.isoformat()} to "
        f"{booking.end_date.isoformat()} ({days} {'day' if days == 1 else 'days'}, total {booking.total_amount})."
    )
    if booking.message:
        summary = f"{summary}\n\n{booking.message}"
    return summary


def open_booking_chat(db: Session, booking: Booking) -> Optional[ChatRoom]:
    """Create the borrower/owner room for a new booking with a summary message.

    The room and its first message are committed together, so a failure
    leaves neither behind.
    """

    try:
        room = ChatRoom(
            booking_id=booking.id,
            item_id=booking.item_id,
            owner_id=booking.owner_id,
            borrower_id=booking.borrower_id,
        )
        db.add(room)
        db.flush()
        chat_message, result = _stage_chat_message(db, room, booking.borrower_id, booking_summary(booking))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to open chat room for booking %s", booking.id)
        return None
    db.refresh(room)
    log_inappropriate_content(result, booking.borrower_id, "chat_message", chat_message.id)
    return room


def notify_booking_request(db: Session, booking: Booking, borrower_name: str) -> Optional[Notification]:
    return notify(
        db,
        booking.owner_id,
        "New rental request",
        f"{borrower_name} would like to rent \"{booking.item.title}\" "
        f"from {booking.start_date.isoformat()} to {booking.end_date.isoformat()}.",
        NotificationType.BOOKING_REQUEST,
    )


def notify_transition(
    db: Session,
    booking: Booking,
    previous: BookingStatus,
    actor_id: int,
    reason: Optional[str] = None,
) -> Optional[Notification]:
    title = booking.item.title
    current = booking.status
    if current == BookingStatus.CONFIRMED:
        return notify(
            db,
            booking.borrower_id,
            "Booking confirmed",
            f"Your booking of \"{title}\" was confirmed. You can now contact the owner.",
            NotificationType.BOOKING_CONFIRMED,
        )
    if current == BookingStatus.CANCELLED:
        recipient = booking.borrower_id if actor_id == booking.owner_id else booking.owner_id
        declined = previous == BookingStatus.PENDING and actor_id == booking.owner_id
        text = (
            f"Your booking request for \"{title}\" was declined."
            if declined
            else f"The booking of \"{title}\" was cancelled."
        )
        if reason:
            text = f"{text} Reason: {reason}"
        return notify(
            db,
            recipient,
            "Booking declined" if declined else "Booking cancelled",
            text,
            NotificationType.BOOKING_CANCELLED,
        )
    if current == BookingStatus.PENDING:
        return notify(
            db,
            booking.borrower_id,
            "Booking confirmation withdrawn",
            f"The confirmation of your booking of \"{title}\" was withdrawn.",
            NotificationType.BOOKING_UPDATE,
        )
    return notify(
        db,
        booking.borrower_id,
        f"Booking {current.value}",
        f"Your booking of \"{title}\" is now {current.value}.",
        NotificationType.BOOKING_UPDATE,
    )
