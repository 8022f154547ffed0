"""
Appointment query service - Read-only appointment listings.

- Customers see their own appointments, newest first
- Owners and staff of a business see all of its appointments, oldest first
- Staff see their assigned appointments plus unassigned ones of their business
"""

import logging
from uuid import UUID

from database import appointment_store
from database.connection import get_async_session
from database.models import Appointment, UserRole
from scheduling.errors import ForbiddenError, NotFoundError
from scheduling.validators.transition_validator import Actor

logger = logging.getLogger(__name__)


async def list_my_appointments(actor: Actor) -> list[Appointment]:
    async with get_async_session() as session:
        return await appointment_store.list_customer_appointments(session, actor.user_id)


async def list_business_appointments(actor: Actor, business_id: UUID) -> list[Appointment]:
    """
    Raises:
        NotFoundError: Business does not exist
        ForbiddenError: Caller neither owns nor works for the business
    """
    async with get_async_session() as session:
        business = await appointment_store.get_business_by_id(session, business_id)
        if business is None:
            raise NotFoundError("Business not found")

        is_owner = business.owner_id == actor.user_id
        is_staff = False
        if actor.role == UserRole.STAFF:
            staff = await appointment_store.find_staff_by_user_id(session, actor.user_id)
            is_staff = staff is not None and staff.business_id == business_id

        if not is_owner and not is_staff:
            raise ForbiddenError("Not authorized")

        return await appointment_store.list_business_appointments(session, business_id)


async def list_staff_appointments(actor: Actor) -> list[Appointment]:
    """
    Raises:
        NotFoundError: Caller has no staff profile
    """
    async with get_async_session() as session:
        staff = await appointment_store.find_staff_by_user_id(session, actor.user_id)
        if staff is None:
            raise NotFoundError("Staff profile not found")

        appointments = await appointment_store.list_staff_appointments(session, staff)

    logger.debug(
        f"Staff listing returned {len(appointments)} appointments",
        extra={"business_id": staff.business_id, "user_id": actor.user_id},
    )
    return appointments
