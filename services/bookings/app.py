from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from common.availability import AvailabilityCalendar
from common.booking_status import (
    BORROWER,
    OWNER,
    BookingStatus,
    allowed_actors,
    assert_transition,
    can_delete,
)
from common.config import get_settings
from common.database import Base, engine, get_db
from common.dependencies import get_current_user, get_today
from common.errors import apply_error_handlers
from common.events import BOOKING_CREATED, BOOKING_DELETED, BOOKING_STATUS_CHANGED, publish_booking_event
from common.logging_middleware import add_audit_middleware
from common.messaging import notify_booking_request, notify_transition, open_booking_chat
from common.models import Booking, Item, RoleEnum, User
from common.pricing import compute_pricing
from common.rate_limit import BOOKING_WRITE_LIMIT, READ_LIMIT, apply_rate_limiter, limiter
from common.schemas import (
    AnchorRead,
    AvailabilityRead,
    BookingCreate,
    BookingRead,
    BookingStatusUpdate,
    CalendarDay,
    CalendarRead,
    QuoteRead,
    QuoteRequest,
    SelectionRead,
    SelectRequest,
)

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Bookings Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    apply_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "bookings")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "bookings"}


def _get_item(db: Session, item_id: int) -> Item:
    item = db.get(Item, item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


def _calendar(db: Session, item_id: int, today: date) -> AvailabilityCalendar:
    # Every status is loaded; the calendar itself ignores cancelled bookings.
    bookings = db.query(Booking).filter(Booking.item_id == item_id).all()
    return AvailabilityCalendar(bookings, today, horizon_days=settings.availability_horizon_days)


def _selection_read(item: Item, start: Optional[date], end: Optional[date]) -> SelectionRead:
    return SelectionRead(
        item_id=item.id,
        start=start,
        end=end,
        pricing=compute_pricing(start, end, item.daily_rate, settings.rental_discount_tiers),
    )


def _booking_for_party(db: Session, booking_id: int, current_user: User, allow_admin: bool = False) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    is_party = current_user.id in (booking.borrower_id, booking.owner_id)
    if not is_party and not (allow_admin and current_user.role == RoleEnum.ADMIN):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return booking


@app.get("/bookings/items/{item_id}/calendar", response_model=CalendarRead)
@limiter.limit(READ_LIMIT)
def item_calendar(
    request: Request,
    item_id: int,
    start: Optional[date] = None,
    days: int = Query(default=42, ge=1),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
) -> CalendarRead:
    if days > settings.calendar_max_days:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.calendar_max_days} days can be requested at once",
        )
    _get_item(db, item_id)
    calendar = _calendar(db, item_id, today)
    return CalendarRead(
        item_id=item_id,
        today=today,
        days=[CalendarDay(day=day, status=day_status) for day, day_status in calendar.availability_map(start or today, days)],
    )


@app.get("/bookings/items/{item_id}/availability", response_model=AvailabilityRead)
@limiter.limit(READ_LIMIT)
def check_availability(
    request: Request,
    item_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
) -> AvailabilityRead:
    _get_item(db, item_id)
    low, high = min(start_date, end_date), max(start_date, end_date)
    available = _calendar(db, item_id, today).is_range_selectable(low, high)
    return AvailabilityRead(item_id=item_id, start_date=low, end_date=high, available=available)


@app.post("/bookings/items/{item_id}/select", response_model=SelectionRead)
@limiter.limit(READ_LIMIT)
def select_date(
    request: Request,
    item_id: int,
    select_in: SelectRequest,
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
) -> SelectionRead:
    item = _get_item(db, item_id)
    selection = _calendar(db, item_id, today).select_date(select_in.current, select_in.clicked)
    return _selection_read(item, selection.start, selection.end)


@app.get("/bookings/items/{item_id}/quick-select", response_model=SelectionRead)
@limiter.limit(READ_LIMIT)
def quick_select(
    request: Request,
    item_id: int,
    days: int = Query(..., ge=1, le=365),
    start: Optional[date] = None,
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
) -> SelectionRead:
    item = _get_item(db, item_id)
    selection = _calendar(db, item_id, today).quick_select(days, start)
    return _selection_read(item, selection.start, selection.end)


@app.get("/bookings/items/{item_id}/next-anchor", response_model=AnchorRead)
@limiter.limit(READ_LIMIT)
def next_anchor(
    request: Request,
    item_id: int,
    start: date = Query(...),
    within_days: Optional[int] = Query(default=None, ge=1, le=365),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
) -> AnchorRead:
    _get_item(db, item_id)
    anchor = _calendar(db, item_id, today).find_next_available_anchor(start, within_days)
    return AnchorRead(item_id=item_id, anchor=anchor)


@app.post("/bookings/quote", response_model=QuoteRead)
@limiter.limit(READ_LIMIT)
def quote(request: Request, quote_in: QuoteRequest, db: Session = Depends(get_db)) -> QuoteRead:
    item = _get_item(db, quote_in.item_id)
    pricing = compute_pricing(quote_in.start_date, quote_in.end_date, item.daily_rate, settings.rental_discount_tiers)
    return QuoteRead(
        item_id=item.id,
        daily_rate=item.daily_rate,
        start_date=quote_in.start_date,
        end_date=quote_in.end_date,
        **pricing.model_dump(),
    )


@app.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(BOOKING_WRITE_LIMIT)
def create_booking(
    request: Request,
    booking_in: BookingCreate,
    current_user: User = Depends(get_current_user),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
) -> Booking:
    item = db.get(Item, booking_in.item_id)
    if not item or not item.is_available:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found or not available")
    if item.owner_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot rent your own item")

    # Final guard against a stale calendar. Not atomic with the insert below.
    if not _calendar(db, item.id, today).is_range_selectable(booking_in.start_date, booking_in.end_date):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Selected dates are not available")

    pricing = compute_pricing(booking_in.start_date, booking_in.end_date, item.daily_rate, settings.rental_discount_tiers)
    booking = Booking(
        item_id=item.id,
        borrower_id=current_user.id,
        start_date=booking_in.start_date,
        end_date=booking_in.end_date,
        status=BookingStatus.PENDING,
        total_amount=pricing.final_price,
        message=(booking_in.message or "").strip() or None,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(
        "Booking %s created for item %s (%s..%s, %s days, total %s)",
        booking.id,
        item.id,
        booking.start_date,
        booking.end_date,
        pricing.days,
        booking.total_amount,
    )

    open_booking_chat(db, booking)
    notify_booking_request(db, booking, current_user.name)
    publish_booking_event(BOOKING_CREATED, booking)
    return booking


@app.get("/bookings/me", response_model=List[BookingRead])
@limiter.limit(READ_LIMIT)
def my_bookings(
    request: Request,
    booking_status: Optional[BookingStatus] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Booking]:
    query = db.query(Booking).filter(Booking.borrower_id == current_user.id)
    if booking_status is not None:
        query = query.filter(Booking.status == booking_status)
    return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()


@app.get("/bookings/requests", response_model=List[BookingRead])
@limiter.limit(READ_LIMIT)
def booking_requests(
    request: Request,
    booking_status: Optional[BookingStatus] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Booking]:
    query = db.query(Booking).join(Item, Booking.item_id == Item.id).filter(Item.owner_id == current_user.id)
    if booking_status is not None:
        query = query.filter(Booking.status == booking_status)
    return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()


@app.get("/bookings/{booking_id}", response_model=BookingRead)
@limiter.limit(READ_LIMIT)
def get_booking(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Booking:
    return _booking_for_party(db, booking_id, current_user, allow_admin=True)


@app.patch("/bookings/{booking_id}/status", response_model=BookingRead)
@limiter.limit(BOOKING_WRITE_LIMIT)
def update_booking_status(
    request: Request,
    booking_id: int,
    status_in: BookingStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Booking:
    booking = _booking_for_party(db, booking_id, current_user)
    previous = booking.status
    assert_transition(previous, status_in.status)

    actor = OWNER if current_user.id == booking.owner_id else BORROWER
    if actor not in allowed_actors(previous, status_in.status):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"The {actor} cannot make this change")

    booking.status = status_in.status
    reason = (status_in.reason or "").strip() or None
    if status_in.status == BookingStatus.CANCELLED and reason:
        booking.message = reason
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s moved %s -> %s by %s %s", booking.id, previous.value, booking.status.value, actor, current_user.id)

    notify_transition(db, booking, previous, current_user.id, reason)
    publish_booking_event(BOOKING_STATUS_CHANGED, booking)
    return booking


@app.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(BOOKING_WRITE_LIMIT)
def delete_booking(
    request: Request,
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    booking = _booking_for_party(db, booking_id, current_user)
    if not can_delete(booking.status, is_borrower=current_user.id == booking.borrower_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Only cancelled bookings, or your own pending requests, can be deleted",
        )
    db.delete(booking)
    db.commit()
    publish_booking_event(BOOKING_DELETED, booking)
