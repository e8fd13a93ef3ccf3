"""Database connection configuration."""

from pydantic import BaseModel, SecretStr


class DatabaseConfig(BaseModel, frozen=True):
    """Database connection settings."""

    url: SecretStr
    pool_size: int
    max_overflow: int

    @property
    def is_mysql(self) -> bool:
        """Check if the configured backend is MySQL."""
        return self.url.get_secret_value().startswith("mysql")

    @property
    def async_url(self) -> str:
        """DB URL, with utf8mb4 charset forced for MySQL."""
        base = self.url.get_secret_value()
        if self.is_mysql and "?" not in base:
            return f"{base}?charset=utf8mb4"
        return base

    @property
    def engine_options(self) -> dict[str, int | bool]:
        """Pooling options for the async engine (ignored for SQLite)."""
        if not self.is_mysql:
            return {}
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
        }
