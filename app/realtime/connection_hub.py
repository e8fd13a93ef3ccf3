"""Process-local registry of open WebSocket connections and chat rooms."""

from typing import Any, Protocol

import structlog

logger = structlog.get_logger()


class JsonSocket(Protocol):
    """The slice of ``starlette.websockets.WebSocket`` the hub relies on."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


def room_name(session_id: int) -> str:
    return f"chat:{session_id}"


class ConnectionHub:
    """Owns the sockets accepted by this worker, keyed by connection handle."""

    def __init__(self) -> None:
        self._sockets: dict[str, JsonSocket] = {}
        self._owners: dict[str, int] = {}
        self._rooms: dict[str, set[str]] = {}

    def add(self, handle: str, user_id: int, websocket: JsonSocket) -> None:
        self._sockets[handle] = websocket
        self._owners[handle] = user_id

    def remove(self, handle: str) -> None:
        """Forget a connection and drop it from every room."""
        self._sockets.pop(handle, None)
        self._owners.pop(handle, None)
        for room in list(self._rooms):
            members = self._rooms[room]
            members.discard(handle)
            if not members:
                del self._rooms[room]

    def has(self, handle: str) -> bool:
        return handle in self._sockets

    def owner_of(self, handle: str) -> int | None:
        return self._owners.get(handle)

    def join(self, handle: str, room: str) -> None:
        if handle in self._sockets:
            self._rooms.setdefault(room, set()).add(handle)

    def leave(self, handle: str, room: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(handle)
        if not members:
            del self._rooms[room]

    def room_members(self, room: str) -> set[str]:
        return set(self._rooms.get(room, ()))

    async def send(self, handle: str, event: str, data: dict[str, Any]) -> bool:
        """Deliver one event to one connection; a failing socket is dropped."""
        websocket = self._sockets.get(handle)
        if websocket is None:
            return False
        try:
            await websocket.send_json({"event": event, "data": data})
        except Exception:
            logger.warning(
                "Dropping connection after failed send",
                handle=handle,
                event_name=event,
                exc_info=True,
            )
            self.remove(handle)
            return False
        return True

    async def broadcast(
        self, event: str, data: dict[str, Any], exclude: str | None = None
    ) -> int:
        """Send to every connection on this worker except ``exclude``."""
        delivered = 0
        for handle in list(self._sockets):
            if handle == exclude:
                continue
            if await self.send(handle, event, data):
                delivered += 1
        return delivered

    async def close(self, handle: str, code: int = 1000, reason: str | None = None) -> None:
        """Close one connection and forget it."""
        websocket = self._sockets.get(handle)
        self.remove(handle)
        if websocket is None:
            return
        try:
            await websocket.close(code=code, reason=reason)
        except Exception:
            logger.debug("Socket already closed", handle=handle)

    async def close_all(self) -> None:
        """Close every socket, used on application shutdown."""
        for handle, websocket in list(self._sockets.items()):
            try:
                await websocket.close(code=1001)
            except Exception:
                logger.debug("Socket already closed", handle=handle)
            self.remove(handle)


# Global connection hub for this worker
connection_hub = ConnectionHub()
