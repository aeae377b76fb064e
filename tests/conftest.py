"""Pytest fixtures for testing."""
import os

# Must be set before any app imports that trigger Settings validation
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
# Ensure tests run in dev mode (bypasses auth) regardless of local .env
os.environ["DEV_MODE"] = "true"
os.environ["DB_CREATE_TABLES"] = "false"

from collections.abc import AsyncGenerator, Callable, Generator  # noqa: E402
from contextlib import AbstractAsyncContextManager, asynccontextmanager  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from models.base import Base  # noqa: E402
from models.bookmark import Bookmark  # noqa: E402

TEST_JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"


def make_token(subject: str, secret: str = TEST_JWT_SECRET, **claims: object) -> str:
    """Sign a test bearer token for the given subject."""
    return jwt.encode({"sub": subject, **claims}, secret, algorithm="HS256")


async def get_positions(db_session: AsyncSession, user_id: int) -> list[int]:
    """Return a user's bookmark positions in ascending order."""
    result = await db_session.execute(
        select(Bookmark.position)
        .where(Bookmark.user_id == user_id)
        .order_by(Bookmark.position),
    )
    return list(result.scalars().all())


async def assert_dense_positions(db_session: AsyncSession, user_id: int) -> None:
    """Assert a user's positions are exactly 0..count-1 with no duplicates."""
    positions = await get_positions(db_session, user_id)
    assert positions == list(range(len(positions)))


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """
    Create an in-memory SQLite engine with the schema.

    StaticPool keeps a single connection so every session sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the per-test database."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient]:
    """Create a dev-mode test client with database session override."""
    # Clear the settings cache so it picks up the test environment
    from core.config import get_settings

    get_settings.cache_clear()

    from api.main import app
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def token_client(
    db_session: AsyncSession,
) -> Generator[Callable[..., AbstractAsyncContextManager[AsyncClient]]]:
    """
    Factory for clients that authenticate with a signed bearer token.

    Overrides settings so dev mode is off and tokens are verified with
    TEST_JWT_SECRET. Passing subject=None yields a client with no
    Authorization header. Several clients may be open at once.
    """
    from api.main import app
    from core.config import Settings, get_settings
    from db.session import get_async_session

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    def override_get_settings() -> Settings:
        return Settings(
            _env_file=None,
            database_url="sqlite+aiosqlite:///:memory:",
            dev_mode=False,
            jwt_secret=TEST_JWT_SECRET,
        )

    @asynccontextmanager
    async def _make(
        subject: str | None,
        raise_app_exceptions: bool = True,
    ) -> AsyncGenerator[AsyncClient]:
        headers = {"Authorization": f"Bearer {make_token(subject)}"} if subject else {}
        async with AsyncClient(
            transport=ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions),
            base_url="http://test",
            headers=headers,
        ) as test_client:
            yield test_client

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_settings] = override_get_settings

    yield _make

    app.dependency_overrides.clear()
