"""Durable notifications for users who missed a live event."""

from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.exceptions import NotificationNotFoundError
from app.models.chat_message import ChatMessage
from app.models.chat_session import ChatSession
from app.models.notification import Notification
from app.repositories.notification_repo import NotificationRepository
from app.schemas.notification_schema import NotificationResponse
from app.services.fanout_service import EventFanout

logger = structlog.get_logger()

PREVIEW_LENGTH = 100


def preview(content: str) -> str:
    """Shorten message content for a notification body."""
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[:PREVIEW_LENGTH] + "..."


class NotificationService:
    """Creates, lists and acknowledges notifications.

    Records are written in the caller's transaction; the live ``notification``
    push happens only once the caller has committed (see ``publish``).
    """

    def __init__(
        self,
        notification_repo: NotificationRepository,
        session: AsyncSession,
        fanout: EventFanout,
    ) -> None:
        self._repo = notification_repo
        self._session = session
        self._fanout = fanout

    async def notify_new_message(
        self, recipient_id: int, message: ChatMessage, chat: ChatSession
    ) -> Notification:
        return await self._repo.create(
            user_id=recipient_id,
            type="new_message",
            title="Nova Mensagem",
            message=preview(message.content),
            data={
                "chat_id": chat.id,
                "message_id": message.id,
                "sender_id": message.sender_id,
            },
            priority="medium",
        )

    async def notify_new_chat(
        self, model_id: int, chat: ChatSession, client_name: str | None
    ) -> Notification:
        who = client_name or "Um cliente"
        return await self._repo.create(
            user_id=model_id,
            type="new_chat",
            title="Novo Chat",
            message=f"{who} iniciou uma conversa com você",
            data={"chat_id": chat.id, "client_id": chat.client_id},
            priority="medium",
        )

    async def notify_payment_received(
        self, chat: ChatSession, amount: Decimal
    ) -> Notification:
        return await self._repo.create(
            user_id=chat.model_id,
            type="payment_received",
            title="Pagamento Recebido",
            message=f"Você recebeu um pagamento de R$ {amount:.2f}",
            data={
                "chat_id": chat.id,
                "payment_id": chat.payment_id,
                "amount": str(amount),
                "client_id": chat.client_id,
            },
            priority="high",
        )

    async def publish(self, notification: Notification) -> bool:
        """Push a committed notification to its owner if they are online."""
        payload = NotificationResponse.model_validate(notification).model_dump(
            mode="json"
        )
        return await self._fanout.send_to_user(
            notification.user_id, "notification", {"notification": payload}
        )

    async def list_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Notification], int]:
        """Return a page of notifications and the unread total."""
        notifications = await self._repo.find_for_user(
            user_id, unread_only=unread_only, limit=limit, offset=offset
        )
        unread = await self._repo.count_unread(user_id)
        return notifications, unread

    async def unread_count(self, user_id: int) -> int:
        return await self._repo.count_unread(user_id)

    async def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        """Mark one of the user's notifications as read (idempotent)."""
        notification = await self._repo.find_owned(notification_id, user_id)
        if notification is None:
            raise NotificationNotFoundError()
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self._session.commit()
        return notification

    async def mark_all_as_read(self, user_id: int) -> int:
        updated = await self._repo.mark_all_read(user_id, utcnow())
        await self._session.commit()
        logger.info("Notifications marked read", user_id=user_id, updated=updated)
        return updated
