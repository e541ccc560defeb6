from contextlib import asynccontextmanager
import html
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func
from sqlalchemy.orm import Session

from common.booking_status import BookingStatus
from common.config import get_settings
from common.database import Base, engine, get_db
from common.dependencies import get_current_user
from common.logging_middleware import add_audit_middleware
from common.models import Booking, Review, ReviewType, RoleEnum, User
from common.rate_limit import READ_LIMIT, WRITE_LIMIT, apply_rate_limiter, limiter
from common.schemas import RatingSummary, ReviewCreate, ReviewRead, ReviewUpdate

settings = get_settings()
MODERATORS = {RoleEnum.ADMIN, RoleEnum.MODERATOR}


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Reviews Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "reviews")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "reviews"}


def _sanitize(comment: Optional[str]) -> Optional[str]:
    if comment is None:
        return None
    stripped = comment.strip()
    return html.escape(stripped) if stripped else None


def _rating_stats(db: Session, user_id: int) -> tuple[float, int]:
    average, count = (
        db.query(func.avg(Review.rating), func.count(Review.id)).filter(Review.reviewed_id == user_id).one()
    )
    return round(float(average or 0.0), 2), int(count or 0)


def _refresh_reputation(db: Session, user_id: int) -> None:
    user = db.get(User, user_id)
    if user is not None:
        user.reputation_score, _ = _rating_stats(db, user_id)
        db.commit()


def _editable_review(db: Session, review_id: int, current_user: User) -> Review:
    review = db.get(Review, review_id)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    if current_user.role not in MODERATORS and review.reviewer_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return review


@app.post("/reviews", response_model=ReviewRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
def submit_review(
    request: Request,
    review_in: ReviewCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Review:
    booking = db.get(Booking, review_in.booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if current_user.id == booking.borrower_id:
        # The borrower rates the lender.
        reviewed_id, review_type = booking.owner_id, ReviewType.LENDER
    elif current_user.id == booking.owner_id:
        reviewed_id, review_type = booking.borrower_id, ReviewType.BORROWER
    else:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the parties of a booking can review it")
    if booking.status != BookingStatus.COMPLETED:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Only completed rentals can be reviewed")
    existing = (
        db.query(Review)
        .filter(Review.booking_id == booking.id, Review.reviewer_id == current_user.id)
        .first()
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You already reviewed this booking")

    review = Review(
        booking_id=booking.id,
        reviewer_id=current_user.id,
        reviewed_id=reviewed_id,
        rating=review_in.rating,
        comment=_sanitize(review_in.comment),
        review_type=review_type,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    _refresh_reputation(db, reviewed_id)
    return review


@app.get("/reviews/user/{user_id}", response_model=List[ReviewRead])
@limiter.limit(READ_LIMIT)
def user_reviews(
    request: Request,
    user_id: int,
    review_type: Optional[ReviewType] = None,
    db: Session = Depends(get_db),
) -> List[Review]:
    query = db.query(Review).filter(Review.reviewed_id == user_id)
    if review_type is not None:
        query = query.filter(Review.review_type == review_type)
    return query.order_by(Review.created_at.desc(), Review.id.desc()).all()


@app.get("/reviews/user/{user_id}/summary", response_model=RatingSummary)
@limiter.limit(READ_LIMIT)
def user_rating_summary(request: Request, user_id: int, db: Session = Depends(get_db)) -> RatingSummary:
    average, count = _rating_stats(db, user_id)
    return RatingSummary(user_id=user_id, average=average, count=count)


@app.put("/reviews/{review_id}", response_model=ReviewRead)
@limiter.limit(WRITE_LIMIT)
def update_review(
    request: Request,
    review_id: int,
    review_update: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Review:
    review = _editable_review(db, review_id, current_user)
    data = review_update.model_dump(exclude_unset=True)
    if "comment" in data:
        data["comment"] = _sanitize(data["comment"])
    for key, value in data.items():
        setattr(review, key, value)
    db.commit()
    db.refresh(review)
    if "rating" in data:
        _refresh_reputation(db, review.reviewed_id)
    return review


@app.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
def delete_review(
    request: Request,
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    review = _editable_review(db, review_id, current_user)
    reviewed_id = review.reviewed_id
    db.delete(review)
    db.commit()
    _refresh_reputation(db, reviewed_id)


@app.post("/reviews/{review_id}/flag", response_model=ReviewRead)
@limiter.limit(WRITE_LIMIT)
def flag_review(
    request: Request,
    review_id: int,
    action: Literal["flag", "unflag"] = "flag",
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Review:
    if current_user.role not in MODERATORS:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Moderators only")
    review = db.get(Review, review_id)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")

    review.is_flagged = action == "flag"
    db.commit()
    db.refresh(review)
    return review
