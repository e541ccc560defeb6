from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from common import auth
from common.config import get_settings
from common.database import Base, engine, get_db
from common.dependencies import get_current_user
from common.logging_middleware import add_audit_middleware
from common.models import RoleEnum, User
from common.rate_limit import AUTH_LIMIT, READ_LIMIT, WRITE_LIMIT, apply_rate_limiter, limiter
from common.schemas import PublicProfile, Token, UserCreate, UserRead, UserUpdate

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Users Service", version="1.0.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    add_audit_middleware(fastapi_app, "users")
    return fastapi_app


app = create_app()


def _public_profile(user: User, viewer: User | None) -> PublicProfile:
    full_access = viewer is not None and (viewer.id == user.id or viewer.role == RoleEnum.ADMIN)
    return PublicProfile(
        id=user.id,
        name=user.name,
        username=user.username,
        reputation_score=user.reputation_score,
        email=user.email if full_access or user.show_email else None,
        phone=user.phone if full_access or user.show_phone else None,
        address=user.address if full_access or user.show_address else None,
        bio=user.bio if full_access or user.show_bio else None,
        created_at=user.created_at,
    )


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "users"}


@app.post("/users/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_LIMIT)
def register_user(request: Request, user_in: UserCreate, db: Session = Depends(get_db)) -> User:
    if db.query(User).filter((User.username == user_in.username) | (User.email == user_in.email)).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username or email already exists")

    # Elevated roles can only be claimed while no admin exists.
    admins_exist = db.query(User).filter(User.role == RoleEnum.ADMIN).first() is not None
    role = user_in.role if not admins_exist else RoleEnum.REGULAR

    user = User(
        name=user_in.name,
        username=user_in.username,
        email=user_in.email,
        role=role,
        phone=user_in.phone,
        address=user_in.address,
        hashed_password=auth.get_password_hash(user_in.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@app.post("/users/login", response_model=Token)
@limiter.limit(AUTH_LIMIT)
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> Token:
    user = auth.authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect username or password")
    return Token(access_token=auth.token_for_user(user))


@app.get("/users/me", response_model=UserRead)
@limiter.limit(READ_LIMIT)
def read_me(request: Request, current_user: User = Depends(get_current_user)) -> User:
    return current_user


@app.put("/users/me", response_model=UserRead)
@limiter.limit(WRITE_LIMIT)
def update_me(
    request: Request,
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    data = user_update.model_dump(exclude_unset=True, exclude={"password", "privacy"})
    if "email" in data and data["email"] != current_user.email:
        if db.query(User).filter(User.email == data["email"]).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already in use")
    for key, value in data.items():
        setattr(current_user, key, value)
    if user_update.password:
        current_user.hashed_password = auth.get_password_hash(user_update.password)
    if user_update.privacy is not None:
        for key, value in user_update.privacy.model_dump().items():
            setattr(current_user, key, value)

    db.commit()
    db.refresh(current_user)
    return current_user


@app.get("/users/{user_id}", response_model=PublicProfile)
@limiter.limit(READ_LIMIT)
def get_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PublicProfile:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _public_profile(user, current_user)


@app.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if current_user.role != RoleEnum.ADMIN and current_user.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    db.delete(user)
    db.commit()
