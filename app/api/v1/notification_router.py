"""Notification endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.dependencies import CurrentUser, get_current_user, get_notification_service
from app.schemas.notification_schema import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from app.schemas.response_schema import ApiResponse, success_response
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])

NotificationServiceDep = Annotated[
    NotificationService, Depends(get_notification_service)
]
CurrentUserDep = Annotated[CurrentUser, Depends(get_current_user)]


@router.get("", response_model=ApiResponse[NotificationListResponse])
async def list_notifications(
    service: NotificationServiceDep,
    current_user: CurrentUserDep,
    unread_only: bool = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> dict:
    """List the current user's notifications, newest first."""
    notifications, unread = await service.list_notifications(
        current_user.id, unread_only=unread_only, limit=limit, offset=offset
    )
    return success_response(
        NotificationListResponse(
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
            unread_count=unread,
        )
    )


@router.get("/unread-count", response_model=ApiResponse[UnreadCountResponse])
async def unread_count(
    service: NotificationServiceDep,
    current_user: CurrentUserDep,
) -> dict:
    """Count unread notifications."""
    count = await service.unread_count(current_user.id)
    return success_response(UnreadCountResponse(unread_count=count))


@router.patch("/read-all", response_model=ApiResponse[MarkAllReadResponse])
async def mark_all_as_read(
    service: NotificationServiceDep,
    current_user: CurrentUserDep,
) -> dict:
    """Mark every notification as read."""
    updated = await service.mark_all_as_read(current_user.id)
    return success_response(MarkAllReadResponse(updated=updated))


@router.patch(
    "/{notification_id}/read", response_model=ApiResponse[NotificationResponse]
)
async def mark_as_read(
    notification_id: int,
    service: NotificationServiceDep,
    current_user: CurrentUserDep,
) -> dict:
    """Mark one notification as read."""
    notification = await service.mark_as_read(notification_id, current_user.id)
    return success_response(NotificationResponse.model_validate(notification))
