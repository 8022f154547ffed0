"""
Appointment lifecycle - Status transitions, completion codes and cleanup.

State machine:

    PENDING ──► CONFIRMED ──► COMPLETED
       │            │    └──► NO_SHOW
       └────────────┴───────► CANCELLED

CANCELLED, COMPLETED and NO_SHOW are terminal. Who may request which
transition is decided by ``check_transition_allowed``; this module loads the
appointment, applies the change, commits, and only then dispatches
notifications.

Completion can be gated by a one-time code: the owner or assigned staff
member initiates completion, the customer receives a 6-digit code by email,
and reading it back moves the appointment to COMPLETED.
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from database import appointment_store
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus, Staff, UserRole
from scheduling.errors import BookingValidationError, NotFoundError
from scheduling.services.notification_service import (
    build_status_events,
    dispatch_notifications,
)
from scheduling.validators.transition_validator import (
    Actor,
    ActorRole,
    TransitionAction,
    check_transition_allowed,
    ensure_not_terminal,
    parse_target_status,
)
from shared.business_hours_provider import business_timezone
from shared.config import get_settings
from shared.email_client import CompletionEmailContext, EmailClient

logger = logging.getLogger(__name__)

# Leaving these statuses ends any outstanding completion verification
_CLEARS_COMPLETION_CODE = {
    AppointmentStatus.CANCELLED,
    AppointmentStatus.COMPLETED,
    AppointmentStatus.NO_SHOW,
}


@dataclass
class CompletionInitiation:
    """Outcome of initiating completion."""

    appointment: Appointment
    email_sent: bool


def generate_completion_code() -> str:
    """Uniform 6-digit code in 100000..999999."""
    return str(secrets.randbelow(900000) + 100000)


async def _load_for_action(
    session: AsyncSession,
    actor: Actor,
    appointment_id: UUID,
    action: TransitionAction,
) -> tuple[Appointment, set[ActorRole]]:
    """Fetch the appointment and authorize the action, in that order."""
    appointment = await appointment_store.find_appointment_by_id(session, appointment_id)
    if appointment is None or appointment.business is None:
        raise NotFoundError("Appointment not found")

    staff: Optional[Staff] = None
    if actor.role == UserRole.STAFF:
        staff = await appointment_store.find_staff_by_user_id(session, actor.user_id)

    roles = check_transition_allowed(actor, appointment, action, staff)
    return appointment, roles


async def _notify_status_change(
    appointment: Appointment,
    status: AppointmentStatus,
    actor: Actor,
    roles: set[ActorRole],
) -> None:
    events = build_status_events(
        appointment,
        status,
        actor_id=actor.user_id,
        actor_is_owner=ActorRole.OWNER in roles,
    )
    results = await dispatch_notifications(events)
    if not all(results):
        logger.warning(
            f"{results.count(False)} of {len(results)} notifications failed for {status.value}",
            extra={"appointment_id": appointment.id},
        )


async def update_appointment_status(
    actor: Actor, appointment_id: UUID, status: Any
) -> Appointment:
    """
    Move an appointment to CONFIRMED, CANCELLED, COMPLETED or NO_SHOW.

    Args:
        actor: Authenticated caller
        appointment_id: Appointment UUID
        status: Requested target status (validated before any lookup)

    Returns:
        The updated appointment

    Raises:
        BookingValidationError: Invalid target status or terminal appointment
        NotFoundError: Appointment does not exist
        ForbiddenError: Actor may not perform this transition
    """
    target = parse_target_status(status)

    async with get_async_session() as session:
        appointment, roles = await _load_for_action(
            session, actor, appointment_id, TransitionAction.for_status(target)
        )
        ensure_not_terminal(appointment)

        if target in _CLEARS_COMPLETION_CODE:
            await appointment_store.update_status(
                session, appointment, target, completion_otp=None, otp_expires=None
            )
        else:
            await appointment_store.update_status(session, appointment, target)
        await session.commit()

    logger.info(
        f"Appointment status changed to {target.value}",
        extra={"appointment_id": appointment_id, "user_id": actor.user_id},
    )

    await _notify_status_change(appointment, target, actor, roles)
    return appointment


async def mark_completed(actor: Actor, appointment_id: UUID) -> Appointment:
    return await update_appointment_status(actor, appointment_id, AppointmentStatus.COMPLETED)


async def mark_no_show(actor: Actor, appointment_id: UUID) -> Appointment:
    return await update_appointment_status(actor, appointment_id, AppointmentStatus.NO_SHOW)


async def initiate_completion(
    actor: Actor,
    appointment_id: UUID,
    email_client: Optional[EmailClient] = None,
    now: Optional[datetime] = None,
) -> CompletionInitiation:
    """
    Issue a completion code and email it to the customer.

    The code is stored before the email is attempted; an email failure is
    logged and reported through ``email_sent`` without undoing the code.

    Raises:
        BookingValidationError: Appointment is in a terminal status
        NotFoundError: Appointment does not exist
        ForbiddenError: Actor is not the owner or the assigned staff member
    """
    settings = get_settings()
    now = now or datetime.now(business_timezone())

    async with get_async_session() as session:
        appointment, _ = await _load_for_action(
            session, actor, appointment_id, TransitionAction.INITIATE_COMPLETION
        )
        ensure_not_terminal(appointment)

        code = generate_completion_code()
        expires_at = now + timedelta(minutes=settings.COMPLETION_OTP_EXPIRY_MINUTES)
        await appointment_store.set_completion_otp(session, appointment, code, expires_at)
        await session.commit()

    logger.info(
        "Completion code issued",
        extra={"appointment_id": appointment_id, "user_id": actor.user_id},
    )

    email_sent = False
    try:
        client = email_client or EmailClient()
        await client.send_completion_code(
            appointment.customer.email,
            code,
            CompletionEmailContext(
                customer_name=appointment.customer.name,
                service_name=appointment.service.name,
                business_name=appointment.business.name,
            ),
        )
        email_sent = True
    except Exception as e:
        logger.error(
            f"Failed to email completion code: {e}",
            extra={"appointment_id": appointment_id},
            exc_info=True,
        )

    return CompletionInitiation(appointment=appointment, email_sent=email_sent)


async def verify_completion(
    actor: Actor,
    appointment_id: UUID,
    otp: Optional[str],
    now: Optional[datetime] = None,
) -> Appointment:
    """
    Check a completion code and, on match, move the appointment to COMPLETED.

    Raises:
        BookingValidationError: Terminal appointment, no outstanding code,
            mismatching code, or an expired code
        NotFoundError: Appointment does not exist
        ForbiddenError: Actor is not the owner or the assigned staff member
    """
    settings = get_settings()
    now = now or datetime.now(business_timezone())

    async with get_async_session() as session:
        appointment, roles = await _load_for_action(
            session, actor, appointment_id, TransitionAction.VERIFY_COMPLETION
        )
        ensure_not_terminal(appointment)

        if not appointment.completion_otp:
            raise BookingValidationError("No completion code has been issued for this appointment")

        if not otp or not hmac.compare_digest(str(otp).strip(), appointment.completion_otp):
            logger.warning(
                "Completion code mismatch",
                extra={"appointment_id": appointment_id, "user_id": actor.user_id},
            )
            raise BookingValidationError("Invalid OTP")

        if (
            settings.ENFORCE_OTP_EXPIRY
            and appointment.otp_expires is not None
            and now > appointment.otp_expires
        ):
            raise BookingValidationError("Completion code has expired")

        await appointment_store.update_status(
            session,
            appointment,
            AppointmentStatus.COMPLETED,
            completion_otp=None,
            otp_expires=None,
        )
        await session.commit()

    logger.info(
        "Completion verified",
        extra={"appointment_id": appointment_id, "user_id": actor.user_id},
    )

    await _notify_status_change(appointment, AppointmentStatus.COMPLETED, actor, roles)
    return appointment


async def cleanup_expired_pending(owner_id: UUID, now: Optional[datetime] = None) -> int:
    """
    Cancel PENDING appointments dated before now across the owner's businesses.

    One bulk update; no per-appointment notifications are sent.

    Returns:
        Number of appointments cancelled
    """
    now = now or datetime.now(business_timezone())

    async with get_async_session() as session:
        count = await appointment_store.batch_cancel_expired_pending(session, owner_id, now)
        await session.commit()

    logger.info(
        f"Cleaned up {count} expired pending appointments",
        extra={"user_id": owner_id},
    )
    return count
