"""
Booking Transaction Handler.

Single entry point for creating appointments:
- Request validation (required fields, service and staff belong to the business)
- Slot validation against opening hours and the current time
- Overlap re-check inside a transaction that holds the business booking lock
- Database commit FIRST, owner notification AFTER commit (fire-and-forget)

Two customers racing for the same slot are serialized by the lock: the first
commits, the second sees the new appointment in its overlap check and fails
with a validation error.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from database import appointment_store
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus
from scheduling.errors import BookingValidationError, NotFoundError
from scheduling.services.availability_service import (
    day_bounds,
    get_busy_periods,
    service_duration,
)
from scheduling.services.notification_service import (
    build_booking_events,
    dispatch_notifications,
)
from shared.business_hours_provider import (
    business_timezone,
    day_of_week_for,
    get_business_hours,
)

logger = logging.getLogger(__name__)


class BookingTransaction:
    """
    Atomic transaction handler for creating appointments.

    1. Validate request fields and referenced service/staff
    2. Validate the requested start against opening hours and now
    3. Acquire the business booking lock and re-check overlap
    4. Create the appointment in PENDING and commit
    5. Notify the business owner
    """

    @staticmethod
    async def execute(
        customer_id: UUID,
        business_id: Optional[UUID],
        service_id: Optional[UUID],
        start_time: Optional[datetime],
        staff_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Execute booking transaction.

        Args:
            customer_id: Booking customer's user UUID
            business_id: Business UUID
            service_id: Service UUID (must belong to the business)
            start_time: Requested start (naive values are read as business-local)
            staff_id: Optional preferred staff member of the business
            now: Current instant (defaults to the wall clock)

        Returns:
            The committed appointment with business, service, customer and
            staff loaded

        Raises:
            BookingValidationError: Missing fields, staff of another business,
                past or out-of-hours start, or the slot is already taken
            NotFoundError: If the service does not exist in the business

        Example:
            >>> appointment = await BookingTransaction.execute(
            ...     customer_id=UUID("..."),
            ...     business_id=UUID("..."),
            ...     service_id=UUID("..."),
            ...     start_time=datetime(2025, 12, 15, 10, 0, tzinfo=UTC),
            ... )
            >>> appointment.status
            <AppointmentStatus.PENDING: 'PENDING'>
        """
        if not business_id or not service_id or not start_time:
            raise BookingValidationError("Business, service, and date are required")

        tz = business_timezone()
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=tz)
        now = now or datetime.now(tz)

        trace_id = f"{customer_id}_{start_time.isoformat()}"
        logger.info(
            f"[{trace_id}] Starting booking transaction",
            extra={"business_id": business_id, "user_id": customer_id},
        )

        async with get_async_session() as session:
            service = await appointment_store.get_service_by_id(session, service_id)
            if service is None or service.business_id != business_id:
                raise NotFoundError("Service not found")

            if staff_id is not None:
                staff = await appointment_store.find_staff_by_id(session, staff_id)
                if staff is None or staff.business_id != business_id:
                    raise BookingValidationError("Staff member does not belong to this business")

            if start_time < now:
                raise BookingValidationError("Cannot book appointments in the past")

            end_time = start_time + timedelta(minutes=service_duration(service))
            local_date = start_time.astimezone(tz).date()

            hours = await get_business_hours(business_id, day_of_week_for(local_date), session=session)
            if hours is None or not hours.is_open:
                raise BookingValidationError("Business is closed on the selected date")

            opens_at, closes_at = hours.bounds_for(local_date, tz)
            if start_time < opens_at or end_time > closes_at:
                raise BookingValidationError("Selected time is outside business hours")

            # Held until commit/rollback; concurrent bookings of this business wait here
            await appointment_store.acquire_business_booking_lock(session, business_id)

            day_start, day_end = day_bounds(local_date)
            busy_periods = await get_busy_periods(session, business_id, day_start, day_end)
            if any(period.overlaps(start_time, end_time) for period in busy_periods):
                logger.warning(
                    f"[{trace_id}] Slot conflict detected under booking lock",
                    extra={"business_id": business_id},
                )
                raise BookingValidationError("Selected time slot is no longer available")

            appointment = await appointment_store.create_appointment(
                session,
                customer_id=customer_id,
                business_id=business_id,
                service_id=service_id,
                staff_id=staff_id,
                date=start_time,
                status=AppointmentStatus.PENDING,
            )
            await session.commit()

            logger.info(
                f"[{trace_id}] Appointment committed (PENDING)",
                extra={"appointment_id": appointment.id, "business_id": business_id},
            )

            appointment = await appointment_store.find_appointment_by_id(session, appointment.id)

        # Notification failures never affect the committed booking
        await dispatch_notifications(build_booking_events(appointment))

        return appointment
