from contextlib import asynccontextmanager
from datetime import datetime
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import or_
from sqlalchemy.orm import Session

from common.config import get_settings
from common.content_filter import filter_inappropriate_content, log_inappropriate_content
from common.database import Base, engine, get_db
from common.dependencies import get_current_user
from common.logging_middleware import add_audit_middleware
from common.messaging import notify, post_chat_message
from common.models import ChatMessage, ChatRoom, MessageReaction, Notification, NotificationType, User
from common.rate_limit import READ_LIMIT, WRITE_LIMIT, apply_rate_limiter, limiter
from common.schemas import (
    ChatMessageCreate,
    ChatMessageRead,
    ChatMessageUpdate,
    ChatRoomRead,
    NotificationRead,
    ReactionCreate,
    ReactionRead,
    SentMessageRead,
    UnreadCount,
)

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Messages Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "messages")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "messages"}


def _room_for_participant(db: Session, room_id: int, current_user: User) -> ChatRoom:
    room = db.get(ChatRoom, room_id)
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat room not found")
    if current_user.id not in room.participant_ids():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return room


def _message_for_participant(db: Session, message_id: int, current_user: User) -> ChatMessage:
    chat_message = db.get(ChatMessage, message_id)
    if not chat_message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if current_user.id not in chat_message.room.participant_ids():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return chat_message


def _own_message(db: Session, message_id: int, current_user: User) -> ChatMessage:
    chat_message = _message_for_participant(db, message_id, current_user)
    if chat_message.sender_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the sender can change a message")
    return chat_message


def _unread_query(db: Session, user_id: int):
    return (
        db.query(ChatMessage)
        .join(ChatRoom, ChatMessage.room_id == ChatRoom.id)
        .filter(
            or_(ChatRoom.owner_id == user_id, ChatRoom.borrower_id == user_id),
            ChatMessage.sender_id != user_id,
            ChatMessage.is_read.is_(False),
        )
    )


@app.get("/chat/rooms", response_model=List[ChatRoomRead])
@limiter.limit(READ_LIMIT)
def list_rooms(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[ChatRoom]:
    rooms = (
        db.query(ChatRoom)
        .filter(or_(ChatRoom.owner_id == current_user.id, ChatRoom.borrower_id == current_user.id))
        .all()
    )
    return sorted(rooms, key=lambda r: r.last_message_time or r.created_at, reverse=True)


@app.get("/chat/rooms/{room_id}", response_model=ChatRoomRead)
@limiter.limit(READ_LIMIT)
def get_room(
    request: Request,
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ChatRoom:
    return _room_for_participant(db, room_id, current_user)


@app.get("/chat/rooms/{room_id}/messages", response_model=List[ChatMessageRead])
@limiter.limit(READ_LIMIT)
def room_messages(
    request: Request,
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[ChatMessage]:
    _room_for_participant(db, room_id, current_user)
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.room_id == room_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )


@app.post("/chat/rooms/{room_id}/messages", response_model=SentMessageRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
def send_message(
    request: Request,
    room_id: int,
    message_in: ChatMessageCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SentMessageRead:
    room = _room_for_participant(db, room_id, current_user)
    if message_in.reply_to_id is not None:
        replied = db.get(ChatMessage, message_in.reply_to_id)
        if replied is None or replied.room_id != room.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Replied message is not in this room")

    chat_message, result = post_chat_message(db, room, current_user.id, message_in.message, message_in.reply_to_id)
    notify(
        db,
        room.counterpart_of(current_user.id),
        "New message",
        f"{current_user.name}: {result.filtered_text[:120]}",
        NotificationType.NEW_MESSAGE,
    )
    return SentMessageRead(
        message=ChatMessageRead.model_validate(chat_message),
        was_filtered=result.was_filtered,
        filtered_words=result.filtered_words,
    )


@app.put("/chat/messages/{message_id}", response_model=SentMessageRead)
@limiter.limit(WRITE_LIMIT)
def edit_message(
    request: Request,
    message_id: int,
    message_update: ChatMessageUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SentMessageRead:
    chat_message = _own_message(db, message_id, current_user)
    result = filter_inappropriate_content(message_update.message)
    chat_message.message = result.filtered_text
    chat_message.is_edited = True
    chat_message.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(chat_message)
    log_inappropriate_content(result, current_user.id, "chat_message_edit", chat_message.id)
    return SentMessageRead(
        message=ChatMessageRead.model_validate(chat_message),
        was_filtered=result.was_filtered,
        filtered_words=result.filtered_words,
    )


@app.delete("/chat/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
def delete_message(
    request: Request,
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    chat_message = _own_message(db, message_id, current_user)
    db.query(ChatMessage).filter(ChatMessage.reply_to_id == chat_message.id).update(
        {ChatMessage.reply_to_id: None}, synchronize_session=False
    )
    db.delete(chat_message)
    db.commit()


@app.post("/chat/rooms/{room_id}/read", response_model=UnreadCount)
@limiter.limit(WRITE_LIMIT)
def mark_room_read(
    request: Request,
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UnreadCount:
    _room_for_participant(db, room_id, current_user)
    db.query(ChatMessage).filter(
        ChatMessage.room_id == room_id,
        ChatMessage.sender_id != current_user.id,
        ChatMessage.is_read.is_(False),
    ).update({ChatMessage.is_read: True}, synchronize_session=False)
    db.commit()
    return UnreadCount(count=_unread_query(db, current_user.id).count())


@app.get("/chat/unread-count", response_model=UnreadCount)
@limiter.limit(READ_LIMIT)
def unread_message_count(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UnreadCount:
    return UnreadCount(count=_unread_query(db, current_user.id).count())


@app.post("/chat/messages/{message_id}/reactions", response_model=ReactionRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
def add_reaction(
    request: Request,
    message_id: int,
    reaction_in: ReactionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageReaction:
    _message_for_participant(db, message_id, current_user)
    existing = (
        db.query(MessageReaction)
        .filter(
            MessageReaction.message_id == message_id,
            MessageReaction.user_id == current_user.id,
            MessageReaction.emoji == reaction_in.emoji,
        )
        .first()
    )
    if existing:
        return existing
    reaction = MessageReaction(message_id=message_id, user_id=current_user.id, emoji=reaction_in.emoji)
    db.add(reaction)
    db.commit()
    db.refresh(reaction)
    return reaction


@app.delete("/chat/messages/{message_id}/reactions", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
def remove_reaction(
    request: Request,
    message_id: int,
    emoji: str = Query(..., min_length=1, max_length=16),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    _message_for_participant(db, message_id, current_user)
    reaction = (
        db.query(MessageReaction)
        .filter(
            MessageReaction.message_id == message_id,
            MessageReaction.user_id == current_user.id,
            MessageReaction.emoji == emoji,
        )
        .first()
    )
    if not reaction:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reaction not found")
    db.delete(reaction)
    db.commit()


@app.get("/notifications", response_model=List[NotificationRead])
@limiter.limit(READ_LIMIT)
def list_notifications(
    request: Request,
    unread_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Notification]:
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


@app.get("/notifications/unread-count", response_model=UnreadCount)
@limiter.limit(READ_LIMIT)
def unread_notification_count(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UnreadCount:
    count = (
        db.query(Notification)
        .filter(Notification.user_id == current_user.id, Notification.is_read.is_(False))
        .count()
    )
    return UnreadCount(count=count)


@app.post("/notifications/read-all", response_model=UnreadCount)
@limiter.limit(WRITE_LIMIT)
def mark_all_notifications_read(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UnreadCount:
    db.query(Notification).filter(
        Notification.user_id == current_user.id, Notification.is_read.is_(False)
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return UnreadCount(count=0)


@app.post("/notifications/{notification_id}/read", response_model=NotificationRead)
@limiter.limit(WRITE_LIMIT)
def mark_notification_read(
    request: Request,
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification or notification.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
    return notification
