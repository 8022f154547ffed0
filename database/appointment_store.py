"""
Appointment store and staff directory - Database operations for the booking core.

Every function takes the caller's AsyncSession so a service can run several
reads and a write inside one transaction. Functions flush but never commit;
committing is the caller's decision.
"""

from datetime import datetime
from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.models import (
    Appointment,
    AppointmentStatus,
    Business,
    Service,
    Staff,
)


# Distinguishes "leave unchanged" from an explicit None in update_status
_UNSET: Any = object()


def _with_relations(stmt):
    return stmt.options(
        selectinload(Appointment.business),
        selectinload(Appointment.service),
        selectinload(Appointment.customer),
        selectinload(Appointment.staff),
    )


# ============================================================================
# Lookups
# ============================================================================


async def get_service_by_id(session: AsyncSession, service_id: UUID) -> Optional[Service]:
    result = await session.execute(select(Service).where(Service.id == service_id))
    return result.scalar_one_or_none()


async def get_business_by_id(session: AsyncSession, business_id: UUID) -> Optional[Business]:
    result = await session.execute(select(Business).where(Business.id == business_id))
    return result.scalar_one_or_none()


async def find_appointment_by_id(
    session: AsyncSession, appointment_id: UUID
) -> Optional[Appointment]:
    """Fetch an appointment with its business, service, customer and staff loaded."""
    result = await session.execute(
        _with_relations(select(Appointment))
        .where(Appointment.id == appointment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_for_business_on_date(
    session: AsyncSession,
    business_id: UUID,
    day_start: datetime,
    day_end: datetime,
    statuses: Iterable[AppointmentStatus],
) -> list[Appointment]:
    """
    Appointments of a business starting within [day_start, day_end].

    The service relationship is loaded so callers can compute each
    appointment's end time.
    """
    result = await session.execute(
        select(Appointment)
        .options(selectinload(Appointment.service))
        .where(
            and_(
                Appointment.business_id == business_id,
                Appointment.date >= day_start,
                Appointment.date <= day_end,
                Appointment.status.in_(list(statuses)),
            )
        )
        .order_by(Appointment.date.asc())
    )
    return list(result.scalars().all())


async def find_staff_by_user_id(session: AsyncSession, user_id: UUID) -> Optional[Staff]:
    result = await session.execute(select(Staff).where(Staff.user_id == user_id))
    return result.scalar_one_or_none()


async def find_staff_by_id(session: AsyncSession, staff_id: UUID) -> Optional[Staff]:
    result = await session.execute(select(Staff).where(Staff.id == staff_id))
    return result.scalar_one_or_none()


# ============================================================================
# Listings
# ============================================================================


async def list_customer_appointments(
    session: AsyncSession, customer_id: UUID
) -> list[Appointment]:
    """Customer's own appointments, newest first."""
    result = await session.execute(
        _with_relations(select(Appointment))
        .where(Appointment.customer_id == customer_id)
        .order_by(Appointment.date.desc())
    )
    return list(result.scalars().all())


async def list_business_appointments(
    session: AsyncSession, business_id: UUID
) -> list[Appointment]:
    """All appointments of a business, oldest first."""
    result = await session.execute(
        _with_relations(select(Appointment))
        .where(Appointment.business_id == business_id)
        .order_by(Appointment.date.asc())
    )
    return list(result.scalars().all())


async def list_staff_appointments(session: AsyncSession, staff: Staff) -> list[Appointment]:
    """Appointments assigned to the staff member plus unassigned ones in their business."""
    result = await session.execute(
        _with_relations(select(Appointment))
        .where(
            and_(
                Appointment.business_id == staff.business_id,
                or_(
                    Appointment.staff_id == staff.id,
                    Appointment.staff_id.is_(None),
                ),
            )
        )
        .order_by(Appointment.date.asc())
    )
    return list(result.scalars().all())


# ============================================================================
# Writes
# ============================================================================


async def acquire_business_booking_lock(session: AsyncSession, business_id: UUID) -> None:
    """
    Serialize appointment creation for one business.

    Takes a transaction-scoped Postgres advisory lock; it is released on
    commit or rollback.
    """
    lock_key = int.from_bytes(business_id.bytes[:8], "big", signed=True)
    await session.execute(select(func.pg_advisory_xact_lock(lock_key)))


async def create_appointment(session: AsyncSession, **fields: Any) -> Appointment:
    fields.setdefault("status", AppointmentStatus.PENDING)
    appointment = Appointment(**fields)
    session.add(appointment)
    await session.flush()
    return appointment


async def update_status(
    session: AsyncSession,
    appointment: Appointment,
    status: AppointmentStatus,
    *,
    completion_otp: Any = _UNSET,
    otp_expires: Any = _UNSET,
) -> Appointment:
    """
    Set a new status and, optionally, the completion code fields.

    Pass ``completion_otp=None, otp_expires=None`` to clear an outstanding code.
    """
    appointment.status = status
    if completion_otp is not _UNSET:
        appointment.completion_otp = completion_otp
    if otp_expires is not _UNSET:
        appointment.otp_expires = otp_expires
    await session.flush()
    return appointment


async def set_completion_otp(
    session: AsyncSession,
    appointment: Appointment,
    code: str,
    expires_at: datetime,
) -> Appointment:
    appointment.completion_otp = code
    appointment.otp_expires = expires_at
    await session.flush()
    return appointment


async def assign_staff(
    session: AsyncSession, appointment: Appointment, staff_id: UUID
) -> Appointment:
    appointment.staff_id = staff_id
    await session.flush()
    return appointment


async def batch_cancel_expired_pending(
    session: AsyncSession, owner_id: UUID, now: datetime
) -> int:
    """
    Cancel every PENDING appointment dated before ``now`` in the owner's businesses.

    Returns:
        Number of rows updated
    """
    owned_businesses = select(Business.id).where(Business.owner_id == owner_id)
    result = await session.execute(
        update(Appointment)
        .where(
            and_(
                Appointment.status == AppointmentStatus.PENDING,
                Appointment.date < now,
                Appointment.business_id.in_(owned_businesses),
            )
        )
        .values(status=AppointmentStatus.CANCELLED, completion_otp=None, otp_expires=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
