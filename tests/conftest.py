"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DEBUG", "false")

from collections.abc import AsyncGenerator  # noqa: E402

import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from app.core.database import Base  # noqa: E402
from app.models.chat_message import ChatMessage  # noqa: E402, F401
from app.models.chat_session import ChatSession  # noqa: E402, F401
from app.models.notification import Notification  # noqa: E402, F401
from app.models.user import User  # noqa: E402
from app.realtime.connection_hub import ConnectionHub  # noqa: E402
from app.realtime.presence import InMemoryPresenceRegistry  # noqa: E402
from app.services.token_service import TokenService  # noqa: E402
from tests.helpers import (  # noqa: E402
    create_user,
    override_get_async_session,
    test_engine,
    test_session_factory,
)


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# --- Test Redis (fakeredis) ---


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Create a fresh fake Redis client."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def patch_redis(
    fake_redis: fakeredis.aioredis.FakeRedis, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Patch the global redis_client used by get_redis() and the middleware."""
    monkeypatch.setattr("app.core.redis.redis_client", fake_redis)


@pytest.fixture
def token_service(fake_redis: fakeredis.aioredis.FakeRedis) -> TokenService:
    """Create a TokenService backed by fake Redis."""
    return TokenService(fake_redis)


# --- Realtime ---


@pytest.fixture
def hub() -> ConnectionHub:
    """A connection hub isolated from the application's global one."""
    return ConnectionHub()


@pytest.fixture
def memory_registry() -> InMemoryPresenceRegistry:
    return InMemoryPresenceRegistry()


# --- DB session for tests ---


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a raw async session for repository and service tests."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def model_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "ana@test.com", role="model", username="Ana")


@pytest.fixture
async def client_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "bruno@test.com", role="client", username="Bruno")


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "carla@test.com", role="client", username="Carla")


# --- App override & client fixtures ---


def _get_app():  # type: ignore[no-untyped-def]
    """Import app lazily and apply overrides."""
    from app.core.database import get_async_session as original_dep
    from app.main import app

    app.dependency_overrides[original_dep] = override_get_async_session
    return app


@pytest.fixture
async def async_client(
    fake_redis: fakeredis.aioredis.FakeRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an unauthenticated async test client."""
    application = _get_app()
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    application.dependency_overrides.clear()
