"""Shared test infrastructure: database, users, tokens and fake sockets."""

from collections.abc import AsyncGenerator
from typing import Any

import fakeredis.aioredis
from fastapi import WebSocketDisconnect
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.security import DUMMY_HASH
from app.models.user import User
from app.services.token_service import TokenService

# --- Test DB (SQLite in-memory) ---

test_engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


async def override_get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a test database session."""
    async with test_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# --- Users ---


async def create_user(
    db_session: AsyncSession,
    email: str,
    role: str = "client",
    username: str | None = None,
    is_active: bool = True,
) -> User:
    """Insert a committed user row."""
    user = User(
        email=email,
        hashed_password=DUMMY_HASH,
        username=username or email.split("@")[0],
        role=role,
        is_active=is_active,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


# --- Token helpers ---


def make_auth_headers(
    fake_redis: fakeredis.aioredis.FakeRedis,
    user_id: int = 1,
    email: str = "test@test.com",
    role: str = "client",
) -> dict[str, str]:
    """Generate Authorization headers with a valid access token."""
    ts = TokenService(fake_redis)
    token = ts.create_access_token(user_id=user_id, email=email, role=role)
    return {"Authorization": f"Bearer {token}"}


def auth_headers_for(fake_redis: fakeredis.aioredis.FakeRedis, user: User) -> dict[str, str]:
    return make_auth_headers(fake_redis, user_id=user.id, email=user.email, role=user.role)


# --- WebSocket double ---


class FakeSocket:
    """In-memory stand-in for an accepted WebSocket.

    ``frames`` are handed out by ``receive_json`` in order; an ``Exception``
    instance in the list is raised instead. Once exhausted the client
    disconnects.
    """

    def __init__(self, frames: list[Any] | None = None, fail_sends: bool = False) -> None:
        self.frames = list(frames or [])
        self.fail_sends = fail_sends
        self.sent: list[dict[str, Any]] = []
        self.closed_with: int | None = None

    async def send_json(self, data: Any, mode: str = "text") -> None:
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def receive_json(self, mode: str = "text") -> Any:
        if not self.frames:
            raise WebSocketDisconnect(code=1000)
        frame = self.frames.pop(0)
        if isinstance(frame, Exception):
            raise frame
        return frame

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = code

    def events(self, name: str) -> list[dict[str, Any]]:
        """Payloads of every sent event called ``name``."""
        return [m["data"] for m in self.sent if m["event"] == name]
