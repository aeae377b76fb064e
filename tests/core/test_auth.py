"""Tests for bearer token verification and user resolution."""
import time
from unittest.mock import MagicMock, patch

import httpx
import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import TEST_JWT_SECRET, make_token
from core.auth import DEV_USER_SUBJECT, decode_jwt, get_current_user, get_or_create_user
from core.config import Settings
from models.user import User


def _settings(**overrides: object) -> Settings:
    values: dict = {
        "_env_file": None,
        "database_url": "sqlite+aiosqlite://",
        "dev_mode": False,
        "jwt_secret": TEST_JWT_SECRET,
    }
    values.update(overrides)
    return Settings(**values)


class TestDecodeJwt:
    """Tests for decode_jwt with a shared secret."""

    def test__decode_jwt__valid_token_returns_claims(self) -> None:
        payload = decode_jwt(make_token("user-1", email="a@example.com"), _settings())
        assert payload["sub"] == "user-1"
        assert payload["email"] == "a@example.com"

    def test__decode_jwt__wrong_secret_is_invalid(self) -> None:
        token = make_token("user-1", secret="some-other-secret-that-is-long-enough")
        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(token, _settings())
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid token"

    def test__decode_jwt__expired_token(self) -> None:
        token = make_token("user-1", exp=int(time.time()) - 60)
        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(token, _settings())
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test__decode_jwt__garbage_token(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            decode_jwt("not-a-jwt", _settings())
        assert exc_info.value.status_code == 401

    def test__decode_jwt__nothing_configured_rejects(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(make_token("user-1"), _settings(jwt_secret=""))
        assert exc_info.value.status_code == 401

    def test__decode_jwt__jwks_unreachable_returns_503(self) -> None:
        jwks_client = MagicMock()
        jwks_client.get_signing_key_from_jwt.side_effect = httpx.ConnectError("down")
        with patch("core.auth.get_jwks_client", return_value=jwks_client):
            with pytest.raises(HTTPException) as exc_info:
                decode_jwt(make_token("user-1"), _settings(auth0_domain="test.auth0.com"))
        assert exc_info.value.status_code == 503


class TestGetOrCreateUser:
    """Tests for get_or_create_user."""

    async def test__get_or_create_user__creates_once(self, db_session: AsyncSession) -> None:
        first = await get_or_create_user(db_session, auth0_id="auth0|abc", email="a@example.com")
        second = await get_or_create_user(db_session, auth0_id="auth0|abc")

        assert first.id == second.id
        count = await db_session.execute(select(func.count()).select_from(User))
        assert count.scalar_one() == 1

    async def test__get_or_create_user__updates_email(self, db_session: AsyncSession) -> None:
        await get_or_create_user(db_session, auth0_id="auth0|abc", email="old@example.com")
        user = await get_or_create_user(db_session, auth0_id="auth0|abc", email="new@example.com")
        assert user.email == "new@example.com"


class TestGetCurrentUser:
    """Tests for the get_current_user dependency."""

    async def test__get_current_user__dev_mode_returns_dev_user(
        self, db_session: AsyncSession,
    ) -> None:
        settings = _settings(dev_mode=True)
        user = await get_current_user(credentials=None, db=db_session, settings=settings)
        assert user.auth0_id == DEV_USER_SUBJECT

    async def test__get_current_user__missing_credentials(self, db_session: AsyncSession) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=None, db=db_session, settings=_settings())
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Not authenticated"

    async def test__get_current_user__missing_sub(self, db_session: AsyncSession) -> None:
        token = jwt.encode({"email": "x@example.com"}, TEST_JWT_SECRET, algorithm="HS256")
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=credentials, db=db_session, settings=_settings())
        assert exc_info.value.status_code == 401

    async def test__get_current_user__resolves_subject(self, db_session: AsyncSession) -> None:
        credentials = HTTPAuthorizationCredentials(
            scheme="Bearer", credentials=make_token("auth0|xyz"),
        )
        user = await get_current_user(credentials=credentials, db=db_session, settings=_settings())
        assert user.auth0_id == "auth0|xyz"
