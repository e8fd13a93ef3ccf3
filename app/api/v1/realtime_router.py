"""WebSocket endpoint for live chat events and presence."""

from typing import Any
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import async_session_factory
from app.core.exceptions import AppException
from app.core.middleware import verify_access_token
from app.dependencies import get_presence_registry
from app.realtime.connection_hub import ConnectionHub, connection_hub, room_name
from app.realtime.presence import PresenceRegistry
from app.repositories.chat_repo import ChatRepository
from app.services import chat_policy

logger = structlog.get_logger()

router = APIRouter(tags=["realtime"])

AUTH_FAILED_CODE = 4001
SUPERSEDED_CODE = 4000


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    registry: PresenceRegistry = Depends(get_presence_registry),
) -> None:
    """Authenticate the handshake, then serve the connection until it closes."""
    if not token:
        await websocket.close(code=AUTH_FAILED_CODE, reason="Token não fornecido")
        return
    try:
        payload = await verify_access_token(token)
    except AppException as exc:
        logger.info("WebSocket handshake rejected", code=exc.code)
        await websocket.close(code=AUTH_FAILED_CODE, reason=exc.message)
        return

    await websocket.accept()
    await serve_connection(
        websocket,
        user_id=int(payload["sub"]),
        registry=registry,
        hub=connection_hub,
        session_factory=async_session_factory,
    )


async def serve_connection(
    websocket: WebSocket,
    user_id: int,
    registry: PresenceRegistry,
    hub: ConnectionHub,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    """Run one accepted connection: presence, rooms and client frames.

    The newest connection of a user wins; an older socket on this worker is
    closed, and its late disconnect leaves the new registration in place.
    """
    handle = uuid4().hex
    hub.add(handle, user_id, websocket)
    previous = await registry.register(user_id, handle)
    if previous is not None and hub.has(previous):
        await hub.close(previous, code=SUPERSEDED_CODE, reason="Nova conexão aberta")

    async with session_factory() as session:
        session_ids = await ChatRepository(session).find_session_ids_for_user(user_id)
    for session_id in session_ids:
        hub.join(handle, room_name(session_id))

    logger.info(
        "User connected", user_id=user_id, handle=handle, rooms=len(session_ids)
    )
    await hub.broadcast(
        "user_status", {"user_id": user_id, "status": "online"}, exclude=handle
    )

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                await hub.send(handle, "error", {"message": "Formato inválido"})
                continue
            await _handle_frame(frame, handle, user_id, registry, hub, session_factory)
    except WebSocketDisconnect:
        pass
    finally:
        went_offline = await registry.unregister(user_id, handle)
        hub.remove(handle)
        logger.info(
            "User disconnected", user_id=user_id, handle=handle, offline=went_offline
        )
        if went_offline:
            await hub.broadcast(
                "user_status", {"user_id": user_id, "status": "offline"}
            )


async def _handle_frame(
    frame: Any,
    handle: str,
    user_id: int,
    registry: PresenceRegistry,
    hub: ConnectionHub,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    if not isinstance(frame, dict):
        await hub.send(handle, "error", {"message": "Formato inválido"})
        return
    event = frame.get("event")
    data = frame.get("data") or {}

    if event == "ping":
        await registry.refresh(user_id, handle)
        await hub.send(handle, "pong", {})
        return

    if event in ("join_chat", "leave_chat"):
        chat_id = data.get("chat_id") if isinstance(data, dict) else None
        if not isinstance(chat_id, int):
            await hub.send(handle, "error", {"message": "chat_id é obrigatório"})
            return
        if event == "leave_chat":
            hub.leave(handle, room_name(chat_id))
            await hub.send(handle, "left_chat", {"chat_id": chat_id})
            return

        async with session_factory() as session:
            chat = await ChatRepository(session).find_session_by_id(chat_id)
            allowed = chat is not None and chat_policy.can_access(chat, user_id)
        if not allowed:
            await hub.send(
                handle, "error", {"message": chat_policy.ACCESS_DENIED_REASON}
            )
            return
        hub.join(handle, room_name(chat_id))
        await hub.send(handle, "joined_chat", {"chat_id": chat_id})
        return

    await hub.send(handle, "error", {"message": f"Evento desconhecido: {event}"})
