"""
Notification inbox API Endpoints

Users only ever see and change their own notifications.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from api.dependencies import CurrentActor
from api.models.appointments import MessageResponse
from api.models.notifications import (
    MarkAllReadResponse,
    NotificationResponse,
    NotificationsListResponse,
    UnreadCountResponse,
)
from database.models import NotificationType
from scheduling.services import notification_service

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=NotificationsListResponse)
async def list_notifications(
    actor: CurrentActor,
    read: bool | None = None,
    notification_type: Annotated[NotificationType | None, Query(alias="type")] = None,
    limit: Annotated[int, Query(ge=1, le=200)] = notification_service.DEFAULT_PAGE_SIZE,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> NotificationsListResponse:
    notifications, total = await notification_service.list_notifications(
        actor.user_id,
        read=read,
        notification_type=notification_type,
        limit=limit,
        offset=offset,
    )
    return NotificationsListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(actor: CurrentActor) -> UnreadCountResponse:
    return UnreadCountResponse(count=await notification_service.get_unread_count(actor.user_id))


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_as_read(actor: CurrentActor) -> MarkAllReadResponse:
    count = await notification_service.mark_all_as_read(actor.user_id)
    return MarkAllReadResponse(message="All notifications marked as read", count=count)


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(notification_id: UUID, actor: CurrentActor) -> NotificationResponse:
    notification = await notification_service.mark_as_read(actor.user_id, notification_id)
    return NotificationResponse.model_validate(notification)


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(notification_id: UUID, actor: CurrentActor) -> MessageResponse:
    await notification_service.delete_notification(actor.user_id, notification_id)
    return MessageResponse(message="Notification deleted")
