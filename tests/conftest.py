import os
from datetime import date
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("LOG_DIR", "./test-logs")

from common.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from common.database import Base, SessionLocal, engine  # noqa: E402
from common.dependencies import get_today  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.items import app as items_module  # noqa: E402
from services.messages.app import app as messages_app  # noqa: E402
from services.reviews.app import app as reviews_app  # noqa: E402
from services.users.app import app as users_app  # noqa: E402

TODAY = date(2024, 6, 1)
PASSWORD = "Passw0rd!"


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    items_module.item_list_cache.clear()
    items_module.category_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def users_client() -> Generator[TestClient, None, None]:
    with TestClient(users_app) as client:
        yield client


@pytest.fixture()
def items_client() -> Generator[TestClient, None, None]:
    with TestClient(items_module.app) as client:
        yield client


@pytest.fixture()
def bookings_client() -> Generator[TestClient, None, None]:
    bookings_app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(bookings_app) as client:
        yield client
    bookings_app.dependency_overrides.clear()


@pytest.fixture()
def reviews_client() -> Generator[TestClient, None, None]:
    with TestClient(reviews_app) as client:
        yield client


@pytest.fixture()
def messages_client() -> Generator[TestClient, None, None]:
    with TestClient(messages_app) as client:
        yield client


@pytest.fixture()
def make_user(users_client) -> Callable[..., dict[str, str]]:
    """Register an account and return its bearer auth header."""

    def _make(username: str, role: str = "regular") -> dict[str, str]:
        users_client.post(
            "/users/register",
            json={
                "name": username.title(),
                "username": username,
                "email": f"{username}@example.com",
                "password": PASSWORD,
                "role": role,
            },
        )
        response = users_client.post(
            "/users/login",
            data={"username": username, "password": PASSWORD},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        token = response.json()["access_token"]
        return {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture()
def listed_item(items_client, make_user) -> dict:
    """An owner ("olga") with one drill listed at 100 per day."""

    owner_headers = make_user("olga")
    response = items_client.post(
        "/items",
        json={
            "title": "Cordless drill",
            "description": "18V with two batteries",
            "daily_rate": 100,
            "location": "Brno",
        },
        headers=owner_headers,
    )
    assert response.status_code == 201
    return {"item": response.json(), "owner_headers": owner_headers}
