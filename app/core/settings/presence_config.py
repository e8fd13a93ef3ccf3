"""Realtime presence configuration."""

from typing import Literal

from pydantic import BaseModel


class PresenceConfig(BaseModel, frozen=True):
    """Presence registry settings."""

    backend: Literal["redis", "memory"]
    ttl_seconds: int
