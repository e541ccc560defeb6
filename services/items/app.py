from contextlib import asynccontextmanager
from typing import List, Literal, Optional

from circuitbreaker import circuit
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from common.cache import SimpleTTLCache, make_key
from common.config import get_settings
from common.database import Base, engine, get_db
from common.dependencies import allow_roles, get_current_user
from common.logging_middleware import add_audit_middleware
from common.models import Category, Item, ItemCondition, RoleEnum, User
from common.rate_limit import READ_LIMIT, WRITE_LIMIT, apply_rate_limiter, limiter
from common.schemas import CategoryCreate, CategoryRead, ItemCreate, ItemRead, ItemUpdate
from common.search import search_items

settings = get_settings()
item_list_cache: SimpleTTLCache[List[ItemRead]] = SimpleTTLCache(ttl=settings.item_cache_ttl)
category_cache: SimpleTTLCache[List[CategoryRead]] = SimpleTTLCache(ttl=settings.category_cache_ttl, maxsize=1)

ITEM_LIST_PREFIX = "item-list"


def _invalidate_item_cache() -> None:
    item_list_cache.pop_prefix(ITEM_LIST_PREFIX)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Items Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "items")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "items"}


@app.get("/categories", response_model=List[CategoryRead])
@limiter.limit(READ_LIMIT)
def list_categories(request: Request, db: Session = Depends(get_db)) -> List[CategoryRead]:
    return category_cache.get_or_set(
        "categories",
        lambda: [CategoryRead.model_validate(c) for c in db.query(Category).order_by(Category.name).all()],
    )


@app.post("/categories", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
def add_category(
    request: Request,
    category_in: CategoryCreate,
    _: User = Depends(allow_roles(RoleEnum.ADMIN)),
    db: Session = Depends(get_db),
) -> Category:
    if db.query(Category).filter(Category.name == category_in.name).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category already exists")
    category = Category(**category_in.model_dump())
    db.add(category)
    db.commit()
    db.refresh(category)
    category_cache.clear()
    return category


def _ensure_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is not None and db.get(Category, category_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")


def _owned_item(db: Session, item_id: int, current_user: User) -> Item:
    item = db.get(Item, item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    if item.owner_id != current_user.id and current_user.role != RoleEnum.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the owner can change this item")
    return item


@app.post("/items", response_model=ItemRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
def add_item(
    request: Request,
    item_in: ItemCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Item:
    _ensure_category(db, item_in.category_id)
    item = Item(owner_id=current_user.id, **item_in.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    _invalidate_item_cache()
    return item


@app.get("/items", response_model=List[ItemRead])
@circuit(failure_threshold=5, recovery_timeout=60, expected_exception=SQLAlchemyError)
def list_items(
    request: Request,
    q: Optional[str] = Query(default=None, max_length=100),
    category_id: Optional[int] = None,
    condition: Optional[ItemCondition] = None,
    min_rate: Optional[int] = Query(default=None, ge=0),
    max_rate: Optional[int] = Query(default=None, ge=0),
    location: Optional[str] = None,
    owner_id: Optional[int] = None,
    available_only: bool = True,
    sort: Literal["newest", "price_asc", "price_desc"] = "newest",
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
) -> List[ItemRead]:
    cache_key = make_key(
        ITEM_LIST_PREFIX,
        q,
        category_id,
        condition.value if condition else None,
        min_rate,
        max_rate,
        location,
        owner_id,
        available_only,
        sort,
        limit,
        offset,
    )
    cached = item_list_cache.get(cache_key)
    if cached is not None:
        return cached

    query = db.query(Item).options(joinedload(Item.category))
    if available_only:
        query = query.filter(Item.is_available.is_(True))
    if category_id is not None:
        query = query.filter(Item.category_id == category_id)
    if condition is not None:
        query = query.filter(Item.condition == condition)
    if min_rate is not None:
        query = query.filter(Item.daily_rate >= min_rate)
    if max_rate is not None:
        query = query.filter(Item.daily_rate <= max_rate)
    if location:
        query = query.filter(Item.location.ilike(f"%{location}%"))
    if owner_id is not None:
        query = query.filter(Item.owner_id == owner_id)

    if sort == "price_asc":
        query = query.order_by(Item.daily_rate.asc(), Item.id.asc())
    elif sort == "price_desc":
        query = query.order_by(Item.daily_rate.desc(), Item.id.asc())
    else:
        query = query.order_by(Item.created_at.desc(), Item.id.desc())

    items = query.all()
    if q:
        # Relevance wins over the requested sort; ties keep it.
        items = search_items(items, q, settings.search_min_score)

    page = [ItemRead.model_validate(item) for item in items[offset : offset + limit]]
    item_list_cache.set(cache_key, page)
    return page


@app.get("/items/{item_id}", response_model=ItemRead)
@limiter.limit(READ_LIMIT)
def get_item(request: Request, item_id: int, db: Session = Depends(get_db)) -> Item:
    item = db.get(Item, item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


@app.put("/items/{item_id}", response_model=ItemRead)
@limiter.limit(WRITE_LIMIT)
def update_item(
    request: Request,
    item_id: int,
    item_update: ItemUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Item:
    item = _owned_item(db, item_id, current_user)
    update_data = item_update.model_dump(exclude_unset=True)
    if "category_id" in update_data:
        _ensure_category(db, update_data["category_id"])
    for key, value in update_data.items():
        setattr(item, key, value)
    db.commit()
    db.refresh(item)
    _invalidate_item_cache()
    return item


@app.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
def delete_item(
    request: Request,
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    item = _owned_item(db, item_id, current_user)
    db.delete(item)
    db.commit()
    _invalidate_item_cache()
