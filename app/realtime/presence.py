"""Presence registry: which user currently holds which live connection.

Each user maps to at most one connection handle; registering a new handle
replaces the previous one (last connection wins). Removal is keyed on the
handle so a superseded connection closing late cannot evict its successor.
"""

import asyncio
from abc import ABC, abstractmethod

import redis.asyncio as redis

PRESENCE_PREFIX = "presence:user:"


class PresenceRegistry(ABC):
    """Contract shared by the in-process and Redis-backed registries."""

    @abstractmethod
    async def register(self, user_id: int, handle: str) -> str | None:
        """Bind ``handle`` to ``user_id`` and return the handle it replaced."""

    @abstractmethod
    async def unregister(self, user_id: int, handle: str) -> bool:
        """Remove the entry only if ``handle`` is still the current one."""

    @abstractmethod
    async def get_handle(self, user_id: int) -> str | None:
        """Current connection handle of ``user_id``."""

    async def is_online(self, user_id: int) -> bool:
        return await self.get_handle(user_id) is not None

    async def refresh(self, user_id: int, handle: str) -> bool:
        """Extend the entry's lifetime; a no-op for registries without TTLs."""
        return await self.get_handle(user_id) == handle


class InMemoryPresenceRegistry(PresenceRegistry):
    """Single-process registry.

    Only correct while the application runs as one worker; multiple workers
    need ``RedisPresenceRegistry``.
    """

    def __init__(self) -> None:
        self._handles: dict[int, str] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: int, handle: str) -> str | None:
        async with self._lock:
            previous = self._handles.get(user_id)
            self._handles[user_id] = handle
            return previous

    async def unregister(self, user_id: int, handle: str) -> bool:
        async with self._lock:
            if self._handles.get(user_id) != handle:
                return False
            del self._handles[user_id]
            return True

    async def get_handle(self, user_id: int) -> str | None:
        return self._handles.get(user_id)

    def online_user_ids(self) -> set[int]:
        return set(self._handles)


class RedisPresenceRegistry(PresenceRegistry):
    """Registry shared by every worker through Redis.

    Entries carry a TTL so that a crashed worker's users eventually read as
    offline; clients keep them alive with heartbeats.
    """

    # Delete only if we still own the key
    UNREGISTER_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    # Extend the TTL only if we still own the key
    REFRESH_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("expire", KEYS[1], ARGV[2])
    else
        return 0
    end
    """

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int) -> None:  # type: ignore[type-arg]
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._unregister = redis_client.register_script(self.UNREGISTER_SCRIPT)
        self._refresh = redis_client.register_script(self.REFRESH_SCRIPT)

    @staticmethod
    def _key(user_id: int) -> str:
        return f"{PRESENCE_PREFIX}{user_id}"

    async def register(self, user_id: int, handle: str) -> str | None:
        previous = await self._redis.set(
            self._key(user_id), handle, ex=self._ttl, get=True
        )
        return _decode(previous)

    async def unregister(self, user_id: int, handle: str) -> bool:
        removed = await self._unregister(keys=[self._key(user_id)], args=[handle])
        return bool(removed)

    async def get_handle(self, user_id: int) -> str | None:
        return _decode(await self._redis.get(self._key(user_id)))

    async def refresh(self, user_id: int, handle: str) -> bool:
        extended = await self._refresh(
            keys=[self._key(user_id)], args=[handle, self._ttl]
        )
        return bool(extended)


def _decode(value: bytes | str | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode()
    return value
