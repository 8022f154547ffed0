"""Pydantic models for the notifications API."""

from datetime import datetime
from typing import Any
from uuid import UUID

from api.models.appointments import CamelModel
from database.models import NotificationType


class NotificationResponse(CamelModel):
    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None
    read: bool
    created_at: datetime


class NotificationsListResponse(CamelModel):
    notifications: list[NotificationResponse]
    total: int


class UnreadCountResponse(CamelModel):
    count: int


class MarkAllReadResponse(CamelModel):
    message: str
    count: int
