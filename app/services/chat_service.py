"""Chat session lifecycle: start, message, block/unblock, read, payment."""

from collections.abc import AsyncGenerator, Awaitable
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

import redis.asyncio as redis
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.clock import utcnow
from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    ChatNotActiveError,
    ChatNotFoundError,
    ChatStateConflictError,
    ConcurrentUpdateError,
    InvalidArgumentError,
    ModelNotFoundError,
    QuotaExceededError,
)
from app.models.chat_message import ChatMessage
from app.models.chat_session import ChatSession
from app.models.notification import Notification
from app.repositories.chat_repo import ChatRepository
from app.repositories.user_repo import UserRepository
from app.schemas.chat_schema import (
    ChatDetail,
    ChatSummary,
    MessageResponse,
    ParticipantResponse,
)
from app.services import chat_policy
from app.services.chat_policy import ChatStatus, ParticipantRole, Refusal
from app.services.fanout_service import EventFanout
from app.services.notification_service import NotificationService

logger = structlog.get_logger()

START_LOCK_PREFIX = "chat_start_lock:"
START_LOCK_SECONDS = 10

# Delete the lock only while it still holds our token
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

CHAT_STARTED = "Chat iniciado"
CHAT_UNBLOCKED = "Chat desbloqueado"
EMPTY_MESSAGE = "Mensagem não pode estar vazia"
BLOCK_REASON_REQUIRED = "Motivo do bloqueio é obrigatório"
MODEL_ONLY = "Apenas a modelo pode bloquear/desbloquear o chat"


def chat_summary(chat: ChatSession, now: datetime | None = None) -> ChatSummary:
    """Build the list representation of a chat."""
    return ChatSummary(**_summary_fields(chat, now))


def chat_detail(chat: ChatSession, now: datetime | None = None) -> ChatDetail:
    """Build the full representation of a chat; messages must be loaded."""
    return ChatDetail(
        **_summary_fields(chat, now),
        system_message_count=chat.system_message_count,
        last_client_message_at=chat.last_client_message_at,
        last_model_message_at=chat.last_model_message_at,
        payment_amount=chat.payment_amount,
        payment_id=chat.payment_id,
        messages=[MessageResponse.model_validate(m) for m in chat.messages],
    )


def _summary_fields(chat: ChatSession, now: datetime | None) -> dict[str, Any]:
    return {
        "id": chat.id,
        "model": ParticipantResponse.model_validate(chat.model),
        "client": ParticipantResponse.model_validate(chat.client),
        "status": chat_policy.effective_status(chat, now),
        "message_count": chat.message_count,
        "client_message_count": chat.client_message_count,
        "model_message_count": chat.model_message_count,
        "last_message_at": chat.last_message_at,
        "is_paid": chat.is_paid,
        "remaining_free_messages": chat_policy.remaining_free_messages(chat),
        "expires_at": chat.expires_at,
        "blocked_by_id": chat.blocked_by_id,
        "block_reason": chat.block_reason,
        "payment_status": chat.payment_status,
        "created_at": chat.created_at,
    }


class ChatService:
    """Runs every chat state transition.

    Each mutating operation is one transaction committed before any event
    is fanned out, so a participant reacting to an event reads the new state.
    """

    def __init__(
        self,
        chat_repo: ChatRepository,
        user_repo: UserRepository,
        session: AsyncSession,
        fanout: EventFanout,
        notifications: NotificationService,
        redis_client: redis.Redis | None = None,  # type: ignore[type-arg]
    ) -> None:
        self._chat_repo = chat_repo
        self._user_repo = user_repo
        self._session = session
        self._fanout = fanout
        self._notifications = notifications
        self._redis = redis_client
        self._release_lock = (
            redis_client.register_script(RELEASE_LOCK_SCRIPT)
            if redis_client is not None
            else None
        )

    # --- Start ---

    async def start_session(
        self, model_id: int, client_id: int
    ) -> tuple[ChatSession, bool]:
        """Open a chat with a model, or return the live one.

        Returns:
            Tuple of (session with messages loaded, created).
        """
        if model_id == client_id:
            raise InvalidArgumentError("Não é possível iniciar um chat consigo mesmo")

        model = await self._user_repo.find_active_model(model_id)
        if model is None:
            raise ModelNotFoundError()

        async with self._start_lock(model_id, client_id):
            now = utcnow()
            existing = await self._chat_repo.find_active_session(
                model_id, client_id, now
            )
            if existing is not None:
                chat = await self._reload(existing.id)
                return chat, False

            async with self._atomic():
                lapsed = await self._chat_repo.expire_lapsed_sessions(
                    model_id, client_id, now
                )
                if lapsed:
                    logger.info(
                        "Lapsed chats marked expired",
                        model_id=model_id,
                        client_id=client_id,
                        count=lapsed,
                    )
                chat = await self._chat_repo.create_session(
                    model_id=model_id,
                    client_id=client_id,
                    expires_at=now + settings.chat.session_ttl,
                )
                await self._chat_repo.append_message(
                    chat,
                    sender_id=client_id,
                    content=CHAT_STARTED,
                    message_type="system",
                    role=None,
                    now=now,
                )

        chat = await self._reload(chat.id)
        logger.info(
            "Chat started", session_id=chat.id, model_id=model_id, client_id=client_id
        )

        client_profile = self._client_profile(chat)
        delivered = await self._fanout.send_to_user(
            model_id,
            "new_chat",
            {"chat_id": chat.id, "client": client_profile},
        )
        if not delivered:
            name = client_profile.get("username") if client_profile else None
            await self._hand_off(
                self._notifications.notify_new_chat(model_id, chat, name),
                session_id=chat.id,
            )
        return chat, True

    # --- Messages ---

    async def send_message(
        self, session_id: int, actor_id: int, content: str
    ) -> ChatMessage:
        """Append a text message after the access and quota checks."""
        if not content or not content.strip():
            raise InvalidArgumentError(EMPTY_MESSAGE)
        if len(content) > settings.chat.max_message_length:
            raise InvalidArgumentError(
                f"Mensagem não pode ter mais que "
                f"{settings.chat.max_message_length} caracteres"
            )

        chat = await self._chat_repo.find_session_by_id(session_id)
        if chat is None:
            raise ChatNotFoundError()
        role = chat_policy.resolve_role(chat, actor_id)
        if role is None:
            raise AuthorizationError(message=chat_policy.ACCESS_DENIED_REASON)

        now = utcnow()
        decision = chat_policy.can_send_message(chat, actor_id, now)
        if not decision.allowed:
            if decision.refusal is Refusal.EXPIRED:
                await self._mark_expired(chat)
            logger.info(
                "Message refused",
                session_id=session_id,
                actor_id=actor_id,
                refusal=decision.refusal,
            )
            raise self._refusal_error(decision)

        async with self._atomic():
            message = await self._chat_repo.append_message(
                chat,
                sender_id=actor_id,
                content=content,
                message_type="text",
                role=role,
                now=now,
            )

        recipient_id = (
            chat.model_id if role is ParticipantRole.CLIENT else chat.client_id
        )
        payload = {
            "chat_id": chat.id,
            "message": MessageResponse.model_validate(message).model_dump(mode="json"),
        }
        delivered = await self._fanout.send_to_user(recipient_id, "new_message", payload)
        if not delivered:
            await self._hand_off(
                self._notifications.notify_new_message(recipient_id, message, chat),
                session_id=chat.id,
            )
        return message

    # --- Moderation ---

    async def toggle_block(
        self, session_id: int, actor_id: int, reason: str | None = None
    ) -> ChatSession:
        """Unblock a blocked chat, otherwise block it with ``reason``."""
        chat = await self._load_for_moderation(session_id, actor_id)
        if chat.status == ChatStatus.BLOCKED:
            return await self._unblock(chat, actor_id)
        return await self._block(chat, actor_id, reason)

    async def block(self, session_id: int, actor_id: int, reason: str) -> ChatSession:
        chat = await self._load_for_moderation(session_id, actor_id)
        return await self._block(chat, actor_id, reason)

    async def unblock(self, session_id: int, actor_id: int) -> ChatSession:
        chat = await self._load_for_moderation(session_id, actor_id)
        return await self._unblock(chat, actor_id)

    async def _load_for_moderation(self, session_id: int, actor_id: int) -> ChatSession:
        chat = await self._chat_repo.find_session_by_id(session_id)
        if chat is None:
            raise ChatNotFoundError()
        role = chat_policy.resolve_role(chat, actor_id)
        if role is None:
            raise AuthorizationError(message=chat_policy.ACCESS_DENIED_REASON)
        if role is not ParticipantRole.MODEL:
            raise AuthorizationError(message=MODEL_ONLY)
        return chat

    async def _block(
        self, chat: ChatSession, actor_id: int, reason: str | None
    ) -> ChatSession:
        reason = (reason or "").strip()
        if not reason:
            raise InvalidArgumentError(BLOCK_REASON_REQUIRED)

        now = utcnow()
        await self._ensure_transition(chat, ChatStatus.ACTIVE, now)

        async with self._atomic():
            chat.status = ChatStatus.BLOCKED
            chat.blocked_by_id = actor_id
            chat.block_reason = reason
            await self._chat_repo.append_message(
                chat,
                sender_id=actor_id,
                content=f"Chat bloqueado: {reason}",
                message_type="system",
                role=None,
                now=now,
            )

        logger.info("Chat blocked", session_id=chat.id, blocked_by=actor_id)
        await self._fanout.send_to_session(
            chat,
            "chat_blocked",
            {"chat_id": chat.id, "blocker_id": actor_id, "reason": reason},
        )
        return await self._reload(chat.id)

    async def _unblock(self, chat: ChatSession, actor_id: int) -> ChatSession:
        now = utcnow()
        await self._ensure_transition(chat, ChatStatus.BLOCKED, now)

        async with self._atomic():
            chat.status = ChatStatus.ACTIVE
            chat.blocked_by_id = None
            chat.block_reason = None
            await self._chat_repo.append_message(
                chat,
                sender_id=chat.model_id,
                content=CHAT_UNBLOCKED,
                message_type="system",
                role=None,
                now=now,
            )

        logger.info("Chat unblocked", session_id=chat.id, unblocked_by=actor_id)
        await self._fanout.send_to_session(
            chat,
            "chat_unblocked",
            {"chat_id": chat.id, "unblocker_id": actor_id},
        )
        return await self._reload(chat.id)

    async def _ensure_transition(
        self, chat: ChatSession, required: ChatStatus, now: datetime
    ) -> None:
        """Raise unless ``chat`` is in ``required`` status and not expired."""
        if chat_policy.is_past_expiry(chat, now):
            await self._mark_expired(chat)
            raise ChatStateConflictError(chat_policy.EXPIRED_REASON)
        if chat.status != required:
            if required is ChatStatus.BLOCKED:
                raise ChatStateConflictError("Chat não está bloqueado")
            raise ChatStateConflictError(f"Chat {chat.status}")

    # --- Reads ---

    async def get_session(self, session_id: int, actor_id: int) -> ChatSession:
        """Return a chat with its messages; the counterpart's messages become read.

        Non-participants get ``ChatNotFoundError`` so ids cannot be probed.
        """
        chat = await self._chat_repo.find_session_by_id(session_id)
        if chat is None or not chat_policy.can_access(chat, actor_id):
            raise ChatNotFoundError()

        marked = await self._chat_repo.mark_messages_read(chat.id, actor_id, utcnow())
        if marked:
            await self._session.commit()
        return await self._reload(chat.id)

    async def list_sessions(
        self, user_id: int, status: ChatStatus = ChatStatus.ACTIVE
    ) -> list[ChatSession]:
        return await self._chat_repo.list_sessions_for_user(user_id, status, utcnow())

    # --- Payment collaborator ---

    async def record_payment(
        self,
        session_id: int,
        payment_id: str,
        amount: Decimal,
        status: str,
    ) -> ChatSession:
        """Mirror a payment confirmation onto the chat.

        A ``completed`` payment unlocks unlimited client messaging; later
        updates never lock it again.
        """
        chat = await self._chat_repo.find_session_by_id(session_id)
        if chat is None:
            raise ChatNotFoundError()

        newly_paid = status == "completed" and not chat.is_paid
        notification = None
        async with self._atomic():
            chat.payment_id = payment_id
            chat.payment_amount = amount
            chat.payment_status = status
            if status == "completed":
                chat.is_paid = True
            if newly_paid:
                notification = await self._notifications.notify_payment_received(
                    chat, amount
                )

        logger.info(
            "Chat payment recorded",
            session_id=chat.id,
            payment_status=status,
            is_paid=chat.is_paid,
        )
        await self._fanout.send_to_session(
            chat,
            "chat_payment_updated",
            {
                "chat_id": chat.id,
                "payment_status": status,
                "is_paid": chat.is_paid,
            },
        )
        if notification is not None:
            await self._notifications.publish(notification)
        return await self._reload(chat.id)

    # --- Helpers ---

    async def _reload(self, session_id: int) -> ChatSession:
        chat = await self._chat_repo.find_session_with_messages(session_id)
        if chat is None:
            raise ChatNotFoundError()
        return chat

    async def _mark_expired(self, chat: ChatSession) -> None:
        """Persist the expiry a write attempt just observed."""
        if chat.status not in (ChatStatus.ACTIVE, ChatStatus.BLOCKED):
            return
        chat_id = chat.id
        try:
            async with self._atomic():
                chat.status = ChatStatus.EXPIRED
                chat.blocked_by_id = None
                chat.block_reason = None
        except ConcurrentUpdateError:
            # Whoever won the race saw the same expiry
            logger.debug("Expiry already recorded", session_id=chat_id)

    @staticmethod
    def _refusal_error(
        decision: chat_policy.SendDecision,
    ) -> ChatNotActiveError | QuotaExceededError | AuthorizationError:
        reason = decision.reason or chat_policy.ACCESS_DENIED_REASON
        if decision.refusal is Refusal.QUOTA:
            return QuotaExceededError(reason)
        if decision.refusal is Refusal.ACCESS:
            return AuthorizationError(message=reason)
        return ChatNotActiveError(reason)

    @staticmethod
    def _client_profile(chat: ChatSession) -> dict[str, Any] | None:
        """Best-effort display data for the client; never fails the caller."""
        try:
            return ParticipantResponse.model_validate(chat.client).model_dump()
        except Exception:
            logger.exception("Client profile enrichment failed", session_id=chat.id)
            return None

    async def _hand_off(
        self, create: Awaitable[Notification], session_id: int
    ) -> None:
        """Persist a notification for an offline participant, fire-and-forget."""
        try:
            notification = await create
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            logger.exception("Notification hand-off failed", session_id=session_id)
            return
        logger.debug(
            "Notification queued",
            session_id=session_id,
            notification_id=notification.id,
            user_id=notification.user_id,
        )

    @asynccontextmanager
    async def _atomic(self) -> AsyncGenerator[None, None]:
        """Commit the enclosed writes as one unit, mapping version clashes."""
        try:
            yield
            await self._session.commit()
        except StaleDataError as e:
            await self._session.rollback()
            logger.info("Concurrent chat update rejected")
            raise ConcurrentUpdateError from e
        except Exception:
            await self._session.rollback()
            raise

    @asynccontextmanager
    async def _start_lock(self, model_id: int, client_id: int) -> AsyncGenerator[None, None]:
        """Serialize concurrent starts for one model/client pair."""
        if self._redis is None or self._release_lock is None:
            yield
            return
        key = f"{START_LOCK_PREFIX}{model_id}:{client_id}"
        token = uuid4().hex
        acquired = await self._redis.set(key, token, ex=START_LOCK_SECONDS, nx=True)
        if not acquired:
            raise ConcurrentUpdateError()
        try:
            yield
        finally:
            released = await self._release_lock(keys=[key], args=[token])
            if not released:
                logger.warning("Start lock lapsed before release", lock=key)
