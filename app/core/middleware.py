"""ASGI authentication middleware."""

import json
from typing import Any

import jwt
import structlog
from starlette.types import ASGIApp, Receive, Scope, Send

from app.core import redis as redis_state
from app.core.config import settings
from app.core.exceptions import (
    AppException,
    InvalidTokenError,
    TokenBlacklistedError,
    TokenExpiredError,
)
from app.services.token_service import BLACKLIST_PREFIX

logger = structlog.get_logger()

PUBLIC_PATHS: set[str] = {
    "",
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/api/auth/register",
    "/api/auth/login",
    "/api/auth/refresh",
}


async def verify_access_token(token: str) -> dict[str, Any]:
    """Decode an access token and reject expired, foreign or revoked ones.

    Shared by the HTTP middleware and the WebSocket handshake.
    """
    secret = settings.auth.secret_key.get_secret_value()
    algorithm = settings.auth.algorithm

    try:
        payload: dict[str, Any] = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError from e
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError from e

    if payload.get("type") != "access":
        raise InvalidTokenError

    jti = payload.get("jti", "")
    client = redis_state.redis_client
    if client is not None:
        if await client.get(f"{BLACKLIST_PREFIX}{jti}") is not None:
            raise TokenBlacklistedError
    return payload


class AuthMiddleware:
    """Pure ASGI middleware for JWT validation on HTTP requests.

    WebSocket scopes pass through; the realtime endpoint authenticates
    its own handshake with ``verify_access_token``.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        if method == "OPTIONS":
            await self.app(scope, receive, send)
            return

        path = scope["path"]
        normalized = path.rstrip("/") or "/"
        if normalized in PUBLIC_PATHS or path.startswith(("/docs", "/redoc")):
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        auth_header = headers.get(b"authorization", b"").decode()

        if not auth_header.startswith("Bearer "):
            await self._send_error(
                send, 401, "MISSING_TOKEN", "Authorization header required"
            )
            return

        try:
            payload = await verify_access_token(auth_header[7:])
        except AppException as exc:
            logger.debug("Rejected request token", path=path, code=exc.code)
            await self._send_error(send, exc.status_code, exc.code, exc.message)
            return

        scope.setdefault("state", {})
        scope["state"]["user_id"] = int(payload["sub"])
        scope["state"]["email"] = payload["email"]
        scope["state"]["role"] = payload["role"]
        scope["state"]["jti"] = payload.get("jti", "")
        scope["state"]["exp"] = payload["exp"]

        await self.app(scope, receive, send)

    @staticmethod
    async def _send_error(send: Send, status: int, code: str, message: str) -> None:
        """Send a JSON error response directly."""
        body = json.dumps({"status": status, "message": message, "code": code}).encode()

        await send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": [
                    [b"content-type", b"application/json"],
                    [b"content-length", str(len(body)).encode()],
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
