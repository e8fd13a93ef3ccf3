"""Integration tests for chat endpoints."""

import fakeredis.aioredis
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from tests.helpers import auth_headers_for, create_user


@pytest.fixture
def model_headers(fake_redis: fakeredis.aioredis.FakeRedis, model_user: User) -> dict[str, str]:
    return auth_headers_for(fake_redis, model_user)


@pytest.fixture
def client_headers(
    fake_redis: fakeredis.aioredis.FakeRedis, client_user: User
) -> dict[str, str]:
    return auth_headers_for(fake_redis, client_user)


async def _start(client: AsyncClient, model: User, headers: dict[str, str]) -> int:
    resp = await client.post("/api/v1/chats", json={"model_id": model.id}, headers=headers)
    assert resp.status_code == 201
    return resp.json()["data"]["id"]


class TestStartChat:
    """Tests for POST /api/v1/chats."""

    async def test_start_then_resume(
        self,
        async_client: AsyncClient,
        model_user: User,
        client_headers: dict[str, str],
    ) -> None:
        first = await async_client.post(
            "/api/v1/chats", json={"model_id": model_user.id}, headers=client_headers
        )
        assert first.status_code == 201
        body = first.json()
        assert body["message"] == "Chat iniciado"
        assert body["data"]["status"] == "active"
        assert body["data"]["remaining_free_messages"] == 5
        assert [m["type"] for m in body["data"]["messages"]] == ["system"]

        second = await async_client.post(
            "/api/v1/chats", json={"model_id": model_user.id}, headers=client_headers
        )
        assert second.status_code == 200
        assert second.json()["message"] == "Chat já existe"
        assert second.json()["data"]["id"] == body["data"]["id"]

    async def test_model_cannot_start(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        db_session: AsyncSession,
        model_user: User,
        model_headers: dict[str, str],
    ) -> None:
        other_model = await create_user(db_session, "duda@test.com", role="model")
        resp = await async_client.post(
            "/api/v1/chats", json={"model_id": other_model.id}, headers=model_headers
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "AUTHORIZATION_ERROR"

    async def test_unknown_model(
        self, async_client: AsyncClient, client_headers: dict[str, str]
    ) -> None:
        resp = await async_client.post(
            "/api/v1/chats", json={"model_id": 999}, headers=client_headers
        )
        assert resp.status_code == 404
        assert resp.json()["code"] == "MODEL_NOT_FOUND"

    async def test_invalid_body_uses_error_envelope(
        self, async_client: AsyncClient, client_headers: dict[str, str]
    ) -> None:
        resp = await async_client.post(
            "/api/v1/chats", json={"model_id": 0}, headers=client_headers
        )
        assert resp.status_code == 422
        data = resp.json()
        assert data["status"] == 422
        assert data["code"] == "VALIDATION_ERROR"

    async def test_requires_token(self, async_client: AsyncClient) -> None:
        resp = await async_client.post("/api/v1/chats", json={"model_id": 1})
        assert resp.status_code == 401
        assert resp.json()["code"] == "MISSING_TOKEN"


class TestReadChats:
    """Tests for GET /api/v1/chats and GET /api/v1/chats/{id}."""

    async def test_list_by_status(
        self,
        async_client: AsyncClient,
        model_user: User,
        model_headers: dict[str, str],
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)

        active = await async_client.get("/api/v1/chats", headers=model_headers)
        assert active.status_code == 200
        data = active.json()["data"]
        assert data["count"] == 1
        assert data["chats"][0]["id"] == chat_id
        assert data["chats"][0]["client"]["username"] == "Bruno"
        assert "messages" not in data["chats"][0]

        blocked = await async_client.get(
            "/api/v1/chats", params={"status": "blocked"}, headers=model_headers
        )
        assert blocked.json()["data"] == {"count": 0, "chats": []}

    async def test_list_rejects_unknown_status(
        self, async_client: AsyncClient, client_headers: dict[str, str]
    ) -> None:
        resp = await async_client.get(
            "/api/v1/chats", params={"status": "archived"}, headers=client_headers
        )
        assert resp.status_code == 422

    async def test_detail_for_participant(
        self,
        async_client: AsyncClient,
        model_user: User,
        model_headers: dict[str, str],
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        await async_client.post(
            f"/api/v1/chats/{chat_id}/messages",
            json={"content": "Oi!"},
            headers=client_headers,
        )

        resp = await async_client.get(f"/api/v1/chats/{chat_id}", headers=model_headers)

        assert resp.status_code == 200
        messages = resp.json()["data"]["messages"]
        assert [m["content"] for m in messages] == ["Chat iniciado", "Oi!"]
        assert messages[1]["read_at"] is not None

    async def test_detail_hidden_from_stranger(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        model_user: User,
        other_user: User,
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)

        resp = await async_client.get(
            f"/api/v1/chats/{chat_id}", headers=auth_headers_for(fake_redis, other_user)
        )

        assert resp.status_code == 404
        assert resp.json()["code"] == "CHAT_NOT_FOUND"


class TestSendMessage:
    """Tests for POST /api/v1/chats/{id}/messages."""

    async def test_send(
        self,
        async_client: AsyncClient,
        model_user: User,
        client_user: User,
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)

        resp = await async_client.post(
            f"/api/v1/chats/{chat_id}/messages",
            json={"content": "Olá"},
            headers=client_headers,
        )

        assert resp.status_code == 201
        data = resp.json()["data"]
        assert data["sender_id"] == client_user.id
        assert data["type"] == "text"

    async def test_free_quota_then_refusal(
        self,
        async_client: AsyncClient,
        model_user: User,
        model_headers: dict[str, str],
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        url = f"/api/v1/chats/{chat_id}/messages"
        for i in range(5):
            ok = await async_client.post(url, json={"content": f"m{i}"}, headers=client_headers)
            assert ok.status_code == 201

        refused = await async_client.post(url, json={"content": "m5"}, headers=client_headers)
        assert refused.status_code == 403
        assert refused.json()["code"] == "QUOTA_EXCEEDED"

        # The model is never limited
        reply = await async_client.post(url, json={"content": "oi"}, headers=model_headers)
        assert reply.status_code == 201

    @pytest.mark.parametrize("content", ["", "   ", "x" * 501])
    async def test_invalid_content_is_invalid_argument(
        self,
        async_client: AsyncClient,
        model_user: User,
        client_headers: dict[str, str],
        content: str,
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        resp = await async_client.post(
            f"/api/v1/chats/{chat_id}/messages",
            json={"content": content},
            headers=client_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_ARGUMENT"

    async def test_stranger_forbidden(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        model_user: User,
        other_user: User,
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        resp = await async_client.post(
            f"/api/v1/chats/{chat_id}/messages",
            json={"content": "intruso"},
            headers=auth_headers_for(fake_redis, other_user),
        )
        assert resp.status_code == 403

    async def test_offline_recipient_gets_notification(
        self,
        async_client: AsyncClient,
        model_user: User,
        model_headers: dict[str, str],
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        await async_client.post(
            f"/api/v1/chats/{chat_id}/messages",
            json={"content": "Tem alguém aí?"},
            headers=client_headers,
        )

        resp = await async_client.get("/api/v1/notifications", headers=model_headers)

        notifications = resp.json()["data"]["notifications"]
        assert [n["type"] for n in notifications] == ["new_message", "new_chat"]
        assert notifications[0]["data"]["chat_id"] == chat_id


class TestBlock:
    """Tests for PUT /api/v1/chats/{id}/block."""

    async def test_block_then_unblock(
        self,
        async_client: AsyncClient,
        model_user: User,
        model_headers: dict[str, str],
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        url = f"/api/v1/chats/{chat_id}/block"

        blocked = await async_client.put(url, json={"reason": "spam"}, headers=model_headers)
        assert blocked.status_code == 200
        assert blocked.json()["message"] == "Chat bloqueado com sucesso"
        assert blocked.json()["data"]["status"] == "blocked"
        assert blocked.json()["data"]["block_reason"] == "spam"

        refused = await async_client.post(
            f"/api/v1/chats/{chat_id}/messages",
            json={"content": "oi"},
            headers=client_headers,
        )
        assert refused.status_code == 403
        assert refused.json()["code"] == "CHAT_NOT_ACTIVE"

        unblocked = await async_client.put(url, json={}, headers=model_headers)
        assert unblocked.json()["message"] == "Chat desbloqueado com sucesso"
        assert unblocked.json()["data"]["status"] == "active"
        assert unblocked.json()["data"]["blocked_by_id"] is None

    async def test_block_requires_reason(
        self,
        async_client: AsyncClient,
        model_user: User,
        model_headers: dict[str, str],
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        resp = await async_client.put(
            f"/api/v1/chats/{chat_id}/block", json={}, headers=model_headers
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_ARGUMENT"

    async def test_client_cannot_block(
        self,
        async_client: AsyncClient,
        model_user: User,
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        resp = await async_client.put(
            f"/api/v1/chats/{chat_id}/block",
            json={"reason": "chato"},
            headers=client_headers,
        )
        assert resp.status_code == 403


class TestRecordPayment:
    """Tests for PUT /api/v1/chats/{id}/payment."""

    async def test_admin_unlocks_chat(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        db_session: AsyncSession,
        model_user: User,
        client_headers: dict[str, str],
    ) -> None:
        admin = await create_user(db_session, "admin@test.com", role="admin")
        chat_id = await _start(async_client, model_user, client_headers)

        resp = await async_client.put(
            f"/api/v1/chats/{chat_id}/payment",
            json={"payment_id": "pay_1", "amount": "49.90", "status": "completed"},
            headers=auth_headers_for(fake_redis, admin),
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["is_paid"] is True
        assert data["payment_status"] == "completed"
        assert data["remaining_free_messages"] is None

    async def test_participant_forbidden(
        self,
        async_client: AsyncClient,
        model_user: User,
        client_headers: dict[str, str],
    ) -> None:
        chat_id = await _start(async_client, model_user, client_headers)
        resp = await async_client.put(
            f"/api/v1/chats/{chat_id}/payment",
            json={"payment_id": "pay_1", "amount": "49.90", "status": "completed"},
            headers=client_headers,
        )
        assert resp.status_code == 403
