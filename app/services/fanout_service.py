"""Best-effort delivery of chat events to connected participants."""

from typing import Any

import structlog

from app.models.chat_session import ChatSession
from app.realtime.connection_hub import ConnectionHub, room_name
from app.realtime.presence import PresenceRegistry

logger = structlog.get_logger()


class EventFanout:
    """Push events to whoever is online right now.

    Offline targets are skipped silently: there is no queue and no retry,
    a participant who missed an event re-fetches state on reconnect.
    """

    def __init__(self, registry: PresenceRegistry, hub: ConnectionHub) -> None:
        self._registry = registry
        self._hub = hub

    async def is_online(self, user_id: int) -> bool:
        return await self._registry.is_online(user_id)

    async def send_to_user(self, user_id: int, event: str, data: dict[str, Any]) -> bool:
        """Deliver to the user's current connection, if it lives on this worker."""
        try:
            handle = await self._registry.get_handle(user_id)
        except Exception:
            logger.exception("Presence lookup failed", user_id=user_id, event_name=event)
            return False
        if handle is None:
            return False
        return await self._hub.send(handle, event, data)

    async def send_to_session(
        self, chat: ChatSession, event: str, data: dict[str, Any]
    ) -> int:
        """Deliver to every connection joined to the chat room plus both participants.

        Each connection receives the event at most once per call.
        """
        targets = self._hub.room_members(room_name(chat.id))
        for user_id in (chat.model_id, chat.client_id):
            try:
                handle = await self._registry.get_handle(user_id)
            except Exception:
                logger.exception(
                    "Presence lookup failed", user_id=user_id, event_name=event
                )
                continue
            if handle is not None:
                targets.add(handle)

        delivered = 0
        for handle in targets:
            if await self._hub.send(handle, event, data):
                delivered += 1
        logger.debug(
            "Session event fanned out",
            session_id=chat.id,
            event_name=event,
            delivered=delivered,
        )
        return delivered
