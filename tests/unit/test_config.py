"""Tests for domain-specific configuration."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from app.core.config import Settings
from app.core.settings import AppConfig, ChatConfig, PresenceConfig, ServerConfig


class TestAppConfig:
    """AppConfig frozen immutability and property tests."""

    def test_frozen_immutability(self) -> None:
        config = AppConfig(name="test", env="development", debug=True)
        with pytest.raises(ValidationError):
            config.name = "changed"  # type: ignore[misc]

    def test_is_development(self) -> None:
        config = AppConfig(name="app", env="development", debug=True)
        assert config.is_development is True
        assert config.is_production is False

    def test_is_production(self) -> None:
        config = AppConfig(name="app", env="production", debug=False)
        assert config.is_production is True
        assert config.is_development is False


class TestChatConfig:
    """ChatConfig immutability and derived values."""

    def test_frozen_immutability(self) -> None:
        config = ChatConfig(
            free_client_messages=5, session_ttl_days=90, max_message_length=500
        )
        with pytest.raises(ValidationError):
            config.free_client_messages = 10  # type: ignore[misc]

    def test_session_ttl(self) -> None:
        config = ChatConfig(
            free_client_messages=5, session_ttl_days=30, max_message_length=500
        )
        assert config.session_ttl == timedelta(days=30)


class TestPresenceConfig:
    """PresenceConfig validation."""

    def test_rejects_unknown_backend(self) -> None:
        with pytest.raises(ValidationError):
            PresenceConfig(backend="memcached", ttl_seconds=60)  # type: ignore[arg-type]


class TestServerConfig:
    """ServerConfig frozen immutability tests."""

    def test_frozen_immutability(self) -> None:
        config = ServerConfig(host="0.0.0.0", port=8000, cors_origins=["*"])
        with pytest.raises(ValidationError):
            config.port = 9000  # type: ignore[misc]


class TestSettingsDomainProperties:
    """Settings domain property access tests."""

    def test_chat_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.chat.free_client_messages == 5
        assert s.chat.session_ttl == timedelta(days=90)
        assert s.chat.max_message_length == 500

    def test_chat_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHAT_FREE_CLIENT_MESSAGES", "3")
        monkeypatch.setenv("CHAT_SESSION_TTL_DAYS", "7")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.chat.free_client_messages == 3
        assert s.chat.session_ttl_days == 7

    def test_presence_property(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRESENCE_BACKEND", "memory")
        monkeypatch.setenv("PRESENCE_TTL_SECONDS", "120")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.presence.backend == "memory"
        assert s.presence.ttl_seconds == 120

    def test_invalid_presence_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRESENCE_BACKEND", "zookeeper")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_app_property(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_NAME", "my-app")
        monkeypatch.setenv("APP_ENV", "production")
        monkeypatch.setenv("DEBUG", "false")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.app.name == "my-app"
        assert s.app.env == "production"
        assert s.app.debug is False
        assert s.app.is_production is True

    def test_cors_open_in_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_ENV", "development")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.server.cors_origins == ["*"]

    def test_cors_restricted_outside_development(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("APP_ENV", "production")
        monkeypatch.setenv("FRONTEND_URL", "https://app.example.com")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.server.cors_origins == ["https://app.example.com"]

    def test_server_property(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOST", "127.0.0.1")
        monkeypatch.setenv("PORT", "9000")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.server.host == "127.0.0.1"
        assert s.server.port == 9000

    def test_flat_access_still_works(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.chat_free_client_messages == 5
        assert s.presence_backend == "redis"
        assert s.port == 5001
