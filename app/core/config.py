"""Application configuration using Pydantic Settings V2."""

from functools import cached_property
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.settings import (
    AppConfig,
    AuthConfig,
    ChatConfig,
    DatabaseConfig,
    PresenceConfig,
    RedisConfig,
    ServerConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Flat fields are loaded directly from environment variables.
    Domain properties provide grouped access (e.g. settings.chat.session_ttl).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = Field(
        default="velvet-chat",
        description="Application name",
    )
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Debug mode",
    )

    # Chat
    chat_free_client_messages: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Messages a client may send before payment is required",
    )
    chat_session_ttl_days: int = Field(
        default=90,
        ge=1,
        le=365,
        description="Days until a chat session expires",
    )
    chat_max_message_length: int = Field(
        default=500,
        ge=1,
        le=4000,
        description="Maximum characters per chat message",
    )

    # Presence
    presence_backend: Literal["redis", "memory"] = Field(
        default="redis",
        description="Where online users are tracked (redis is shared across workers)",
    )
    presence_ttl_seconds: int = Field(
        default=3600,
        ge=30,
        le=86400,
        description="Lifetime of a presence entry without a heartbeat",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=5001,
        ge=1,
        le=65535,
        description="Server port",
    )
    frontend_url: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origin outside development",
    )

    # JWT Auth
    jwt_secret_key: SecretStr = Field(
        description="JWT secret key for token signing",
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm",
    )
    jwt_access_token_expire_minutes: int = Field(
        default=30,
        ge=1,
        le=1440,
        description="Access token expiration in minutes",
    )
    jwt_refresh_token_expire_days: int = Field(
        default=7,
        ge=1,
        le=90,
        description="Refresh token expiration in days",
    )

    # Database
    database_url: SecretStr = Field(
        description="Async database URL (mysql+aiomysql://...)",
    )
    database_pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Connection pool size",
    )
    database_max_overflow: int = Field(
        default=20,
        ge=0,
        le=100,
        description="Connections allowed beyond the pool size",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )

    # --- Domain properties ---

    @cached_property
    def app(self) -> AppConfig:
        """Application environment configuration."""
        return AppConfig(
            name=self.app_name,
            env=self.app_env,
            debug=self.debug,
        )

    @cached_property
    def chat(self) -> ChatConfig:
        """Chat quota and retention configuration."""
        return ChatConfig(
            free_client_messages=self.chat_free_client_messages,
            session_ttl_days=self.chat_session_ttl_days,
            max_message_length=self.chat_max_message_length,
        )

    @cached_property
    def presence(self) -> PresenceConfig:
        """Presence registry configuration."""
        return PresenceConfig(
            backend=self.presence_backend,
            ttl_seconds=self.presence_ttl_seconds,
        )

    @cached_property
    def server(self) -> ServerConfig:
        """Server configuration."""
        origins = ["*"] if self.app_env == "development" else [self.frontend_url]
        return ServerConfig(
            host=self.host,
            port=self.port,
            cors_origins=origins,
        )

    @cached_property
    def auth(self) -> AuthConfig:
        """JWT authentication configuration."""
        return AuthConfig(
            secret_key=self.jwt_secret_key,
            algorithm=self.jwt_algorithm,
            access_token_expire_minutes=self.jwt_access_token_expire_minutes,
            refresh_token_expire_days=self.jwt_refresh_token_expire_days,
        )

    @cached_property
    def database(self) -> DatabaseConfig:
        """Database connection configuration."""
        return DatabaseConfig(
            url=self.database_url,
            pool_size=self.database_pool_size,
            max_overflow=self.database_max_overflow,
        )

    @cached_property
    def redis(self) -> RedisConfig:
        """Redis connection configuration."""
        return RedisConfig(url=self.redis_url)

    # --- Convenience properties (delegate to domain configs) ---

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app.is_development


# Global settings instance
settings = Settings()
