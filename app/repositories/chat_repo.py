"""Chat repository for session and message database operations."""

from datetime import datetime

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.chat_message import ChatMessage
from app.models.chat_session import ChatSession
from app.services.chat_policy import ChatStatus, ParticipantRole


class ChatRepository:
    """Encapsulates chat session and message database queries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_session_by_id(self, session_id: int) -> ChatSession | None:
        """Find a chat session by primary key, without its messages."""
        result = await self._session.execute(
            select(ChatSession).where(ChatSession.id == session_id)
        )
        return result.scalar_one_or_none()

    async def find_session_with_messages(self, session_id: int) -> ChatSession | None:
        """Find a chat session and eagerly load its message log."""
        result = await self._session.execute(
            select(ChatSession)
            .where(ChatSession.id == session_id)
            .options(selectinload(ChatSession.messages))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_active_session(
        self, model_id: int, client_id: int, now: datetime
    ) -> ChatSession | None:
        """Find the live ``active`` session for a model/client pair."""
        result = await self._session.execute(
            select(ChatSession)
            .where(
                ChatSession.model_id == model_id,
                ChatSession.client_id == client_id,
                ChatSession.status == ChatStatus.ACTIVE,
                ChatSession.expires_at >= now,
            )
            .order_by(ChatSession.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def expire_lapsed_sessions(
        self, model_id: int, client_id: int, now: datetime
    ) -> int:
        """Store ``expired`` on this pair's live rows whose expiry has passed."""
        result = await self._session.execute(
            update(ChatSession)
            .where(
                ChatSession.model_id == model_id,
                ChatSession.client_id == client_id,
                ChatSession.status.in_((ChatStatus.ACTIVE, ChatStatus.BLOCKED)),
                ChatSession.expires_at < now,
            )
            .values(
                status=ChatStatus.EXPIRED,
                blocked_by_id=None,
                block_reason=None,
                version=ChatSession.version + 1,
            )
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    async def create_session(
        self,
        model_id: int,
        client_id: int,
        expires_at: datetime,
    ) -> ChatSession:
        """Create a new active chat session."""
        session = ChatSession(
            model_id=model_id,
            client_id=client_id,
            status=ChatStatus.ACTIVE,
            expires_at=expires_at,
        )
        self._session.add(session)
        await self._session.flush()
        await self._session.refresh(session)
        return session

    async def append_message(
        self,
        chat: ChatSession,
        sender_id: int,
        content: str,
        message_type: str,
        role: ParticipantRole | None,
        now: datetime,
    ) -> ChatMessage:
        """Insert a message and bump the session counters in one flush.

        ``role`` selects the per-role counter for text messages; system
        messages always count towards ``system_message_count``.
        """
        message = ChatMessage(
            session_id=chat.id,
            sender_id=sender_id,
            content=content,
            type=message_type,
            created_at=now,
        )
        self._session.add(message)

        chat.message_count += 1
        chat.last_message_at = now
        if message_type == "system":
            chat.system_message_count += 1
        elif role is ParticipantRole.CLIENT:
            chat.client_message_count += 1
            chat.last_client_message_at = now
        elif role is ParticipantRole.MODEL:
            chat.model_message_count += 1
            chat.last_model_message_at = now

        await self._session.flush()
        return message

    async def list_sessions_for_user(
        self, user_id: int, status: ChatStatus, now: datetime
    ) -> list[ChatSession]:
        """List sessions the user participates in, most recent activity first.

        The status filter follows the computed-on-read rule: ``active`` rows
        past their expiry are listed as ``expired``.
        """
        stmt = select(ChatSession).where(
            or_(ChatSession.model_id == user_id, ChatSession.client_id == user_id)
        )

        if status is ChatStatus.ACTIVE:
            stmt = stmt.where(
                ChatSession.status == ChatStatus.ACTIVE,
                ChatSession.expires_at >= now,
            )
        elif status is ChatStatus.EXPIRED:
            stmt = stmt.where(
                or_(
                    ChatSession.status == ChatStatus.EXPIRED,
                    and_(
                        ChatSession.status == ChatStatus.ACTIVE,
                        ChatSession.expires_at < now,
                    ),
                )
            )
        else:
            stmt = stmt.where(ChatSession.status == status)

        stmt = stmt.order_by(
            ChatSession.last_message_at.desc(),
            ChatSession.id.desc(),
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def find_session_ids_for_user(self, user_id: int) -> list[int]:
        """Return ids of every session the user takes part in."""
        result = await self._session.execute(
            select(ChatSession.id).where(
                or_(ChatSession.model_id == user_id, ChatSession.client_id == user_id)
            )
        )
        return list(result.scalars().all())

    async def mark_messages_read(
        self, session_id: int, reader_id: int, now: datetime
    ) -> int:
        """Stamp ``read_at`` on unread messages sent by the other participant."""
        result = await self._session.execute(
            update(ChatMessage)
            .where(
                ChatMessage.session_id == session_id,
                ChatMessage.sender_id != reader_id,
                ChatMessage.read_at.is_(None),
            )
            .values(read_at=now)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    async def purge_expired(self, now: datetime) -> int:
        """Hard-delete sessions (and their messages) whose expiry has passed."""
        expired_ids = (
            select(ChatSession.id).where(ChatSession.expires_at < now)
        ).scalar_subquery()
        await self._session.execute(
            delete(ChatMessage).where(ChatMessage.session_id.in_(expired_ids))
        )
        result = await self._session.execute(
            delete(ChatSession)
            .where(ChatSession.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
