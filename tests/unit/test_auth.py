"""Unit tests for authentication functions."""
import os
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from common.auth import (
    authenticate_user,
    create_access_token,
    decode_token,
    get_password_hash,
    token_for_user,
    verify_password,
)
from common.models import RoleEnum, User


def stored_user(password: str) -> User:
    return User(
        id=7,
        username="olga",
        email="olga@example.com",
        name="Olga",
        role=RoleEnum.REGULAR,
        hashed_password=get_password_hash(password),
    )


def db_returning(user):
    db = MagicMock()
    db.query.return_value.filter.return_value.first.return_value = user
    return db


class TestPasswordHashing:
    """Test password hashing and verification."""

    def test_password_hash_and_verify(self):
        hashed = get_password_hash("MySecurePassword123!")

        assert hashed != "MySecurePassword123!"
        assert verify_password("MySecurePassword123!", hashed) is True
        assert verify_password("WrongPassword", hashed) is False

    def test_hashes_are_salted(self):
        assert get_password_hash("TestPassword123") != get_password_hash("TestPassword123")


class TestTokens:
    """Test JWT token creation and decoding."""

    def test_login_token_carries_username_id_and_role(self):
        user = User(id=7, username="olga", email="olga@example.com", name="Olga", role=RoleEnum.MODERATOR)

        decoded = decode_token(token_for_user(user))

        assert decoded["sub"] == "olga"
        assert decoded["user_id"] == 7
        assert decoded["role"] == "moderator"
        assert "exp" in decoded

    def test_garbage_token_is_unauthorized(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_token("invalid.token.here")

        assert exc_info.value.status_code == 401

    def test_expired_token_is_unauthorized(self):
        token = create_access_token({"sub": "olga"}, timedelta(hours=-1))

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401


class TestUserAuthentication:
    """Test login lookups."""

    @pytest.mark.parametrize("login", ["olga", "olga@example.com"])
    def test_username_or_email(self, login):
        result = authenticate_user(db_returning(stored_user("TestPass123")), login, "TestPass123")

        assert result is not None
        assert result.id == 7

    def test_wrong_password(self):
        assert authenticate_user(db_returning(stored_user("CorrectPassword")), "olga", "WrongPassword") is None

    def test_unknown_account(self):
        assert authenticate_user(db_returning(None), "nobody", "anypassword") is None
