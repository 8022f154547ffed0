"""
Notification Dispatcher - Persists inbox entries and pushes them live.

Every lifecycle change produces zero or more NotificationEvents. Each event is
stored as a row in the notifications table (the user's inbox) and published
to the user's Redis channel for connected clients.

Dispatch is fire-and-forget: it runs after the appointment change has been
committed and a failure for one recipient is logged and swallowed without
affecting other recipients or the outcome of the transition.

The module also implements the inbox operations (list, unread count, mark
read, mark all read, delete) used by the notifications API.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update

from database.connection import get_async_session
from database.models import (
    Appointment,
    AppointmentStatus,
    Notification,
    NotificationType,
    Staff,
)
from scheduling.errors import NotFoundError
from shared.redis_client import publish_to_channel, user_channel

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50

STATUS_TO_NOTIFICATION_TYPE: dict[AppointmentStatus, NotificationType] = {
    AppointmentStatus.CONFIRMED: NotificationType.APPOINTMENT_CONFIRMED,
    AppointmentStatus.CANCELLED: NotificationType.APPOINTMENT_CANCELLED,
    AppointmentStatus.COMPLETED: NotificationType.APPOINTMENT_COMPLETED,
    AppointmentStatus.NO_SHOW: NotificationType.APPOINTMENT_NO_SHOW,
}

NOTIFICATION_TITLES: dict[NotificationType, str] = {
    NotificationType.APPOINTMENT_CREATED: "New Booking",
    NotificationType.APPOINTMENT_CONFIRMED: "Appointment Confirmed",
    NotificationType.APPOINTMENT_CANCELLED: "Appointment Cancelled",
    NotificationType.APPOINTMENT_COMPLETED: "Service Completed",
    NotificationType.APPOINTMENT_NO_SHOW: "Marked as No-Show",
    NotificationType.APPOINTMENT_CLAIMED: "Appointment Claimed",
    NotificationType.STAFF_ASSIGNED: "Staff Assigned",
}


@dataclass
class NotificationEvent:
    """One notification addressed to one user."""

    user_id: UUID
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


def _describe(appointment: Appointment) -> str:
    service_name = appointment.service.name if appointment.service else "service"
    business_name = appointment.business.name if appointment.business else "the salon"
    when = appointment.date.strftime("%Y-%m-%d %H:%M")
    return f"{service_name} at {business_name} on {when}"


def _payload(appointment: Appointment, **extra: Any) -> dict[str, Any]:
    data = {
        "appointmentId": str(appointment.id),
        "businessId": str(appointment.business_id),
        "status": appointment.status.value,
        "date": appointment.date.isoformat(),
    }
    data.update(extra)
    return data


# ============================================================================
# Event builders
# ============================================================================


def build_status_events(
    appointment: Appointment,
    status: AppointmentStatus,
    actor_id: UUID,
    actor_is_owner: bool,
) -> list[NotificationEvent]:
    """
    Recipients of a status change.

    - CANCELLED: every party except the actor (customer, owner, and the
      assigned staff member's user account when linked)
    - CONFIRMED / COMPLETED / NO_SHOW: the customer, plus the owner when the
      change was made by someone other than the owner
    """
    notification_type = STATUS_TO_NOTIFICATION_TYPE[status]
    title = NOTIFICATION_TITLES[notification_type]
    description = _describe(appointment)
    owner_id = appointment.business.owner_id
    data = _payload(appointment)

    recipients: list[tuple[UUID, str]] = []

    if status == AppointmentStatus.CANCELLED:
        recipients.append((appointment.customer_id, f"Your appointment for {description} was cancelled."))
        recipients.append((owner_id, f"The appointment for {description} was cancelled."))
        staff_user_id = appointment.staff.user_id if appointment.staff else None
        if staff_user_id is not None:
            recipients.append((staff_user_id, f"Your assigned appointment for {description} was cancelled."))
        recipients = [(user_id, msg) for user_id, msg in recipients if user_id != actor_id]
    else:
        verb = {
            AppointmentStatus.CONFIRMED: "confirmed",
            AppointmentStatus.COMPLETED: "marked as completed",
            AppointmentStatus.NO_SHOW: "marked as no-show",
        }[status]
        recipients.append((appointment.customer_id, f"Your appointment for {description} was {verb}."))
        if not actor_is_owner:
            recipients.append((owner_id, f"Staff {verb} the appointment for {description}."))

    # One notification per user even when roles coincide
    seen: set[UUID] = set()
    events = []
    for user_id, message in recipients:
        if user_id in seen:
            continue
        seen.add(user_id)
        events.append(NotificationEvent(user_id, notification_type, title, message, dict(data)))
    return events


def build_claim_events(appointment: Appointment, staff: Staff) -> list[NotificationEvent]:
    """Owner learns who claimed the appointment; customer learns who will serve them."""
    description = _describe(appointment)
    data = _payload(appointment, staffId=str(staff.id), staffName=staff.name)
    return [
        NotificationEvent(
            user_id=appointment.business.owner_id,
            type=NotificationType.APPOINTMENT_CLAIMED,
            title=NOTIFICATION_TITLES[NotificationType.APPOINTMENT_CLAIMED],
            message=f"{staff.name} claimed the appointment for {description}.",
            data=dict(data),
        ),
        NotificationEvent(
            user_id=appointment.customer_id,
            type=NotificationType.STAFF_ASSIGNED,
            title=NOTIFICATION_TITLES[NotificationType.STAFF_ASSIGNED],
            message=f"{staff.name} will take care of your appointment for {description}.",
            data=dict(data),
        ),
    ]


def build_booking_events(appointment: Appointment) -> list[NotificationEvent]:
    customer_name = appointment.customer.name if appointment.customer else "A customer"
    return [
        NotificationEvent(
            user_id=appointment.business.owner_id,
            type=NotificationType.APPOINTMENT_CREATED,
            title=NOTIFICATION_TITLES[NotificationType.APPOINTMENT_CREATED],
            message=f"{customer_name} booked {_describe(appointment)}.",
            data=_payload(appointment),
        )
    ]


# ============================================================================
# Dispatch
# ============================================================================


def _serialize(notification: Notification) -> dict[str, Any]:
    return {
        "id": str(notification.id),
        "userId": str(notification.user_id),
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "data": notification.data,
        "read": notification.read,
        "createdAt": notification.created_at.isoformat() if notification.created_at else None,
    }


async def notify(
    user_id: UUID,
    event_type: NotificationType,
    title: str,
    message: str,
    payload: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Store a notification and publish it, followed by the new unread count,
    to the user's live channel.

    Args:
        user_id: Recipient
        event_type: Notification type
        title: Short title
        message: Human-readable message
        payload: Structured data for the client (appointment id, status, ...)

    Returns:
        True if the notification was stored and published, False otherwise
        (logged, not raised)
    """
    try:
        async with get_async_session() as session:
            notification = Notification(
                user_id=user_id,
                type=event_type,
                title=title,
                message=message,
                data=payload,
                read=False,
            )
            session.add(notification)
            await session.commit()
            await session.refresh(notification)
            unread = await _unread_count(session, user_id)

        channel = user_channel(user_id)
        await publish_to_channel(
            channel,
            {"event": "new_notification", "notification": _serialize(notification)},
        )
        await publish_to_channel(channel, {"event": "unread_count", "count": unread})

        logger.info(
            f"Notification dispatched | type={event_type.value}",
            extra={"user_id": user_id},
        )
        return True

    except Exception as e:
        logger.error(
            f"Failed to dispatch notification | type={event_type.value} | error={e}",
            extra={"user_id": user_id},
            exc_info=True,
        )
        return False


async def dispatch_notifications(events: list[NotificationEvent]) -> list[bool]:
    """
    Dispatch events concurrently; each recipient is attempted independently.

    Returns:
        One success flag per event, in order
    """
    if not events:
        return []

    results = await asyncio.gather(
        *(notify(e.user_id, e.type, e.title, e.message, e.data) for e in events),
        return_exceptions=True,
    )
    return [result is True for result in results]


# ============================================================================
# Inbox
# ============================================================================


async def list_notifications(
    user_id: UUID,
    read: Optional[bool] = None,
    notification_type: Optional[NotificationType] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> tuple[list[Notification], int]:
    """
    A page of the user's notifications, newest first.

    Returns:
        Tuple of (notifications, total matching the filters)
    """
    filters = [Notification.user_id == user_id]
    if read is not None:
        filters.append(Notification.read == read)
    if notification_type is not None:
        filters.append(Notification.type == notification_type)

    async with get_async_session() as session:
        result = await session.execute(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        notifications = list(result.scalars().all())

        total = await session.scalar(
            select(func.count()).select_from(Notification).where(*filters)
        )

    return notifications, total or 0


async def _unread_count(session, user_id: UUID) -> int:
    count = await session.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return count or 0


async def get_unread_count(user_id: UUID) -> int:
    async with get_async_session() as session:
        return await _unread_count(session, user_id)


async def mark_as_read(user_id: UUID, notification_id: UUID) -> Notification:
    """
    Raises:
        NotFoundError: If the notification does not exist or belongs to another user
    """
    async with get_async_session() as session:
        result = await session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification not found")

        notification.read = True
        await session.commit()
        return notification


async def mark_all_as_read(user_id: UUID) -> int:
    """Returns the number of notifications that were unread."""
    async with get_async_session() as session:
        result = await session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        await session.commit()
    return result.rowcount or 0


async def delete_notification(user_id: UUID, notification_id: UUID) -> None:
    """
    Raises:
        NotFoundError: If the notification does not exist or belongs to another user
    """
    async with get_async_session() as session:
        result = await session.execute(
            delete(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        if not result.rowcount:
            raise NotFoundError("Notification not found")
        await session.commit()
