"""Global dependencies for the application."""

from collections.abc import Callable

from fastapi import Depends, Request
from fastapi.security import HTTPBearer
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_async_session
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.redis import get_redis
from app.realtime.connection_hub import connection_hub
from app.realtime.presence import (
    InMemoryPresenceRegistry,
    PresenceRegistry,
    RedisPresenceRegistry,
)
from app.repositories.chat_repo import ChatRepository
from app.repositories.notification_repo import NotificationRepository
from app.repositories.user_repo import UserRepository
from app.services.auth_service import AuthService
from app.services.chat_service import ChatService
from app.services.fanout_service import EventFanout
from app.services.notification_service import NotificationService
from app.services.token_service import TokenService

bearer_scheme = HTTPBearer(auto_error=False)

_memory_registry = InMemoryPresenceRegistry()


# --- Realtime dependencies ---


def get_presence_registry() -> PresenceRegistry:
    """Get the presence registry selected by configuration."""
    if settings.presence.backend == "memory":
        return _memory_registry
    return RedisPresenceRegistry(get_redis(), ttl_seconds=settings.presence.ttl_seconds)


def get_event_fanout(
    registry: PresenceRegistry = Depends(get_presence_registry),
) -> EventFanout:
    """Get an EventFanout bound to this worker's connection hub."""
    return EventFanout(registry=registry, hub=connection_hub)


# --- Auth dependencies ---


class CurrentUser(BaseModel):
    """Authenticated user extracted from request state."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: str


def get_token_service() -> TokenService:
    """Get TokenService backed by the active Redis client."""
    return TokenService(get_redis())


def get_user_repository(
    session: AsyncSession = Depends(get_async_session),
) -> UserRepository:
    """Get UserRepository bound to the current session."""
    return UserRepository(session)


def get_chat_repository(
    session: AsyncSession = Depends(get_async_session),
) -> ChatRepository:
    """Get ChatRepository bound to the current session."""
    return ChatRepository(session)


def get_notification_repository(
    session: AsyncSession = Depends(get_async_session),
) -> NotificationRepository:
    """Get NotificationRepository bound to the current session."""
    return NotificationRepository(session)


def get_auth_service(
    user_repo: UserRepository = Depends(get_user_repository),
    token_service: TokenService = Depends(get_token_service),
    session: AsyncSession = Depends(get_async_session),
) -> AuthService:
    """Get AuthService with all dependencies."""
    return AuthService(
        user_repo=user_repo,
        token_service=token_service,
        session=session,
    )


def get_current_user(request: Request) -> CurrentUser:
    """Extract the authenticated user from middleware-populated state."""
    state = getattr(request, "state", None)
    user_id = getattr(state, "user_id", None) if state else None
    if user_id is None:
        raise AuthenticationError(message="Not authenticated")
    return CurrentUser(
        id=state.user_id,
        email=state.email,
        role=state.role,
    )


def require_role(*allowed_roles: str) -> Callable[..., CurrentUser]:
    """Dependency factory that enforces role-based access control."""

    def _check(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                message=f"Role '{current_user.role}' is not permitted"
            )
        return current_user

    return _check


# --- Domain services ---


def get_notification_service(
    notification_repo: NotificationRepository = Depends(get_notification_repository),
    session: AsyncSession = Depends(get_async_session),
    fanout: EventFanout = Depends(get_event_fanout),
) -> NotificationService:
    """Get NotificationService bound to the current session."""
    return NotificationService(
        notification_repo=notification_repo,
        session=session,
        fanout=fanout,
    )


def get_chat_service(
    chat_repo: ChatRepository = Depends(get_chat_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    session: AsyncSession = Depends(get_async_session),
    fanout: EventFanout = Depends(get_event_fanout),
    notifications: NotificationService = Depends(get_notification_service),
) -> ChatService:
    """Get ChatService with persistence, fan-out and notification hand-off."""
    return ChatService(
        chat_repo=chat_repo,
        user_repo=user_repo,
        session=session,
        fanout=fanout,
        notifications=notifications,
        redis_client=get_redis(),
    )
