"""Unit tests for the presence registries."""

import fakeredis.aioredis
import pytest

from app.realtime.presence import (
    PRESENCE_PREFIX,
    InMemoryPresenceRegistry,
    PresenceRegistry,
    RedisPresenceRegistry,
)


@pytest.fixture(params=["memory", "redis"])
def registry(
    request: pytest.FixtureRequest, fake_redis: fakeredis.aioredis.FakeRedis
) -> PresenceRegistry:
    """Run every contract test against both implementations."""
    if request.param == "memory":
        return InMemoryPresenceRegistry()
    return RedisPresenceRegistry(fake_redis, ttl_seconds=60)


class TestPresenceContract:
    async def test_register_and_lookup(self, registry: PresenceRegistry) -> None:
        previous = await registry.register(1, "conn-a")

        assert previous is None
        assert await registry.get_handle(1) == "conn-a"
        assert await registry.is_online(1)
        assert not await registry.is_online(2)

    async def test_last_connection_wins(self, registry: PresenceRegistry) -> None:
        await registry.register(1, "conn-a")
        previous = await registry.register(1, "conn-b")

        assert previous == "conn-a"
        assert await registry.get_handle(1) == "conn-b"

    async def test_stale_unregister_keeps_newer_connection(
        self, registry: PresenceRegistry
    ) -> None:
        await registry.register(1, "conn-a")
        await registry.register(1, "conn-b")

        removed = await registry.unregister(1, "conn-a")

        assert removed is False
        assert await registry.get_handle(1) == "conn-b"

    async def test_unregister_current(self, registry: PresenceRegistry) -> None:
        await registry.register(1, "conn-a")

        assert await registry.unregister(1, "conn-a") is True
        assert await registry.get_handle(1) is None
        assert await registry.unregister(1, "conn-a") is False

    async def test_refresh_only_for_owner(self, registry: PresenceRegistry) -> None:
        await registry.register(1, "conn-a")

        assert await registry.refresh(1, "conn-a") is True
        assert await registry.refresh(1, "conn-x") is False
        assert await registry.refresh(2, "conn-a") is False


class TestRedisPresenceRegistry:
    async def test_entries_expire(self, fake_redis: fakeredis.aioredis.FakeRedis) -> None:
        registry = RedisPresenceRegistry(fake_redis, ttl_seconds=60)
        await registry.register(7, "conn-a")

        ttl = await fake_redis.ttl(f"{PRESENCE_PREFIX}7")
        assert 0 < ttl <= 60

    async def test_refresh_extends_ttl(
        self, fake_redis: fakeredis.aioredis.FakeRedis
    ) -> None:
        registry = RedisPresenceRegistry(fake_redis, ttl_seconds=60)
        await registry.register(7, "conn-a")
        await fake_redis.expire(f"{PRESENCE_PREFIX}7", 5)

        await registry.refresh(7, "conn-a")

        assert await fake_redis.ttl(f"{PRESENCE_PREFIX}7") > 5

    async def test_shared_between_instances(
        self, fake_redis: fakeredis.aioredis.FakeRedis
    ) -> None:
        worker_a = RedisPresenceRegistry(fake_redis, ttl_seconds=60)
        worker_b = RedisPresenceRegistry(fake_redis, ttl_seconds=60)

        await worker_a.register(7, "conn-a")

        assert await worker_b.get_handle(7) == "conn-a"


class TestInMemoryPresenceRegistry:
    async def test_online_user_ids(self) -> None:
        registry = InMemoryPresenceRegistry()
        await registry.register(1, "conn-a")
        await registry.register(2, "conn-b")
        await registry.unregister(1, "conn-a")

        assert registry.online_user_ids() == {2}
