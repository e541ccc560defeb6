"""Pydantic schemas shared across the microservices."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from .availability import DateSelection, DayStatus
from .booking_status import BookingStatus
from .models import ItemCondition, NotificationType, ReviewType, RoleEnum
from .pricing import PriceBreakdown


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserBase(BaseModel):
    name: str = Field(..., max_length=100)
    username: str = Field(..., max_length=50)
    email: EmailStr
    role: RoleEnum = RoleEnum.REGULAR


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=255)


class PrivacySettings(BaseModel):
    show_email: bool = False
    show_phone: bool = False
    show_address: bool = False
    show_bio: bool = True


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=255)
    bio: Optional[str] = Field(None, max_length=2000)
    password: Optional[str] = Field(None, min_length=8)
    privacy: Optional[PrivacySettings] = None


class UserRead(BaseModel):
    id: int
    name: str
    username: str
    email: str
    role: RoleEnum
    phone: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    reputation_score: float
    show_email: bool
    show_phone: bool
    show_address: bool
    show_bio: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PublicProfile(BaseModel):
    id: int
    name: str
    username: str
    reputation_score: float
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime


class CategoryCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = Field(None, max_length=50)


class CategoryRead(CategoryCreate):
    id: int

    model_config = {"from_attributes": True}


class ItemBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = None
    category_id: Optional[int] = None
    condition: ItemCondition = ItemCondition.GOOD
    daily_rate: int = Field(..., ge=0)
    deposit_amount: int = Field(0, ge=0)
    is_available: bool = True
    location: Optional[str] = Field(None, max_length=255)
    images: List[str] = Field(default_factory=list)


class ItemCreate(ItemBase):
    pass


class ItemUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = None
    category_id: Optional[int] = None
    condition: Optional[ItemCondition] = None
    daily_rate: Optional[int] = Field(None, ge=0)
    deposit_amount: Optional[int] = Field(None, ge=0)
    is_available: Optional[bool] = None
    location: Optional[str] = Field(None, max_length=255)
    images: Optional[List[str]] = None


class ItemRead(ItemBase):
    id: int
    owner_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class DateRange(BaseModel):
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _ordered(self) -> "DateRange":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BookingCreate(DateRange):
    item_id: int
    message: Optional[str] = Field(None, max_length=1000)


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=1000)


class BookingRead(BaseModel):
    id: int
    item_id: int
    borrower_id: int
    owner_id: int
    start_date: date
    end_date: date
    status: BookingStatus
    total_amount: int
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class QuoteRequest(DateRange):
    item_id: int


class QuoteRead(PriceBreakdown):
    item_id: int
    daily_rate: int
    start_date: date
    end_date: date


class CalendarDay(BaseModel):
    day: date
    status: DayStatus


class CalendarRead(BaseModel):
    item_id: int
    today: date
    days: List[CalendarDay]


class AvailabilityRead(BaseModel):
    item_id: int
    start_date: date
    end_date: date
    available: bool


class SelectRequest(BaseModel):
    current: DateSelection = Field(default_factory=DateSelection)
    clicked: date


class SelectionRead(DateSelection):
    item_id: int
    pricing: PriceBreakdown


class AnchorRead(BaseModel):
    item_id: int
    anchor: Optional[date] = None


class ReviewCreate(BaseModel):
    booking_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)


class ReviewRead(BaseModel):
    id: int
    booking_id: int
    reviewer_id: int
    reviewed_id: int
    rating: int
    comment: Optional[str] = None
    review_type: ReviewType
    is_flagged: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class RatingSummary(BaseModel):
    user_id: int
    average: float
    count: int


class NotificationRead(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: NotificationType
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatRoomRead(BaseModel):
    id: int
    booking_id: int
    item_id: int
    owner_id: int
    borrower_id: int
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ReactionRead(BaseModel):
    id: int
    user_id: int
    emoji: str

    model_config = {"from_attributes": True}


class ReplyPreview(BaseModel):
    id: int
    sender_id: int
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatMessageCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    reply_to_id: Optional[int] = None


class ChatMessageUpdate(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class ChatMessageRead(BaseModel):
    id: int
    room_id: int
    sender_id: int
    message: str
    is_read: bool
    is_edited: bool
    reply_to_id: Optional[int] = None
    reply_to: Optional[ReplyPreview] = None
    reactions: List[ReactionRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SentMessageRead(BaseModel):
    message: ChatMessageRead
    was_filtered: bool
    filtered_words: List[str]


class ReactionCreate(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=16)


class UnreadCount(BaseModel):
    count: int
