"""
Staff assignment - Staff members claiming unassigned appointments.

An appointment booked without a staff preference is visible to every staff
member of the business; the first one to claim it becomes its assigned staff
member and from then on can confirm, complete or mark it as no-show.
"""

import logging
from uuid import UUID

from database import appointment_store
from database.connection import get_async_session
from database.models import Appointment, UserRole
from scheduling.errors import BookingValidationError, ForbiddenError, NotFoundError
from scheduling.services.notification_service import (
    build_claim_events,
    dispatch_notifications,
)
from scheduling.validators.transition_validator import Actor

logger = logging.getLogger(__name__)


async def claim_appointment(actor: Actor, appointment_id: UUID) -> Appointment:
    """
    Assign an unassigned appointment to the calling staff member.

    Args:
        actor: Authenticated STAFF caller
        appointment_id: Appointment UUID

    Returns:
        The updated appointment

    Raises:
        ForbiddenError: Caller is not staff, or the appointment belongs to
            another business
        NotFoundError: No staff profile for the caller, or no such appointment
        BookingValidationError: Appointment already has a staff member
    """
    if actor.role != UserRole.STAFF:
        raise ForbiddenError("Not authorized")

    async with get_async_session() as session:
        staff = await appointment_store.find_staff_by_user_id(session, actor.user_id)
        if staff is None:
            raise NotFoundError("Staff profile not found")

        appointment = await appointment_store.find_appointment_by_id(session, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")

        if appointment.business_id != staff.business_id:
            logger.warning(
                "Claim rejected: appointment belongs to another business",
                extra={"appointment_id": appointment_id, "user_id": actor.user_id},
            )
            raise ForbiddenError("Not authorized - different business")

        if appointment.staff_id is not None:
            raise BookingValidationError("Appointment already assigned")

        await appointment_store.assign_staff(session, appointment, staff.id)
        await session.commit()

        # Reload so appointment.staff reflects the new assignment
        appointment = await appointment_store.find_appointment_by_id(session, appointment_id)

    logger.info(
        f"Appointment claimed by staff {staff.id}",
        extra={"appointment_id": appointment_id, "business_id": staff.business_id},
    )

    await dispatch_notifications(build_claim_events(appointment, staff))
    return appointment
