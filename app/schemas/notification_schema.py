"""Notification API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    """Single notification."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    data: dict[str, Any]
    priority: str
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Page of notifications with the unread total."""

    model_config = ConfigDict(frozen=True)

    notifications: list[NotificationResponse]
    unread_count: int


class UnreadCountResponse(BaseModel):
    """Unread notification counter."""

    model_config = ConfigDict(frozen=True)

    unread_count: int


class MarkAllReadResponse(BaseModel):
    """Result of marking every notification as read."""

    model_config = ConfigDict(frozen=True)

    updated: int
