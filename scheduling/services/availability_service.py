"""
Slot Engine - Availability of a business for one service on one date.

PostgreSQL is the single source of truth: opening hours come from the
business_hours table and busy time from PENDING/CONFIRMED appointments of the
business. The slot query is a pure read; calling it twice with the same
inputs and an unchanged database returns identical results.

Overlap uses the half-open interval rule: [s1, e1) and [s2, e2) overlap iff
s1 < e2 and e1 > s2, so back-to-back appointments never conflict.

Usage:
    from scheduling.services.availability_service import get_available_slots

    slots = await get_available_slots(
        business_id=uuid,
        service_id=uuid,
        target_date=date(2025, 12, 15),
    )
    # [TimeSlot(time=datetime(...10:00), available=True), ...]
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Iterator, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from database import appointment_store
from database.connection import get_async_session
from database.models import ACTIVE_STATUSES, Appointment, Service
from scheduling.errors import BookingValidationError, NotFoundError
from shared.business_hours_provider import (
    business_timezone,
    day_of_week_for,
    get_business_hours,
)
from shared.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSlot:
    """One candidate start time and whether it can be booked."""

    time: datetime
    available: bool

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time.isoformat(), "available": self.available}


@dataclass(frozen=True)
class BusyPeriod:
    """Interval [start, end) occupied by an active appointment."""

    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start


class SlotGrid:
    """
    Candidate start times from opening time, every ``interval_minutes``,
    strictly before closing time.

    Lazy and finite; iterating again restarts from the opening time.
    """

    def __init__(self, opens_at: datetime, closes_at: datetime, interval_minutes: int):
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.opens_at = opens_at
        self.closes_at = closes_at
        self.interval = timedelta(minutes=interval_minutes)

    def __iter__(self) -> Iterator[datetime]:
        current = self.opens_at
        while current < self.closes_at:
            yield current
            current += self.interval


def service_duration(service: Optional[Service]) -> int:
    """Duration in minutes, falling back to the configured default."""
    if service is not None and service.duration_minutes:
        return service.duration_minutes
    return get_settings().DEFAULT_SERVICE_DURATION_MINUTES


def day_bounds(target_date: date) -> tuple[datetime, datetime]:
    """Business-local [00:00, 23:59:59.999999] of a calendar date."""
    tz = business_timezone()
    return (
        datetime.combine(target_date, time.min, tzinfo=tz),
        datetime.combine(target_date, time.max, tzinfo=tz),
    )


def to_busy_periods(appointments: Iterable[Appointment]) -> list[BusyPeriod]:
    return [
        BusyPeriod(
            start=appt.date,
            end=appt.date + timedelta(minutes=service_duration(appt.service)),
        )
        for appt in appointments
    ]


def build_slots(
    opens_at: datetime,
    closes_at: datetime,
    service_duration_minutes: int,
    busy_periods: list[BusyPeriod],
    now: datetime,
    interval_minutes: int,
) -> list[TimeSlot]:
    """
    Turn opening hours and busy periods into the chronological slot list.

    Candidates that start before ``now`` are skipped. Generation stops at the
    first candidate whose service would run past closing time.
    """
    duration = timedelta(minutes=service_duration_minutes)
    slots = []

    for start in SlotGrid(opens_at, closes_at, interval_minutes):
        if start < now:
            continue

        end = start + duration
        if end > closes_at:
            break

        available = not any(period.overlaps(start, end) for period in busy_periods)
        slots.append(TimeSlot(time=start, available=available))

    return slots


async def get_busy_periods(
    session: AsyncSession,
    business_id: UUID,
    day_start: datetime,
    day_end: datetime,
) -> list[BusyPeriod]:
    """
    Busy intervals of a business for appointments starting within the day.

    Only PENDING and CONFIRMED appointments occupy time; terminal statuses
    never block a slot.
    """
    appointments = await appointment_store.find_for_business_on_date(
        session, business_id, day_start, day_end, ACTIVE_STATUSES
    )
    periods = to_busy_periods(appointments)

    logger.debug(
        f"Found {len(periods)} busy periods between {day_start} and {day_end}",
        extra={"business_id": business_id},
    )
    return periods


def _normalize_date(target_date: date | datetime) -> date:
    if isinstance(target_date, datetime):
        if target_date.tzinfo is not None:
            return target_date.astimezone(business_timezone()).date()
        return target_date.date()
    return target_date


async def get_available_slots(
    business_id: Optional[UUID],
    service_id: Optional[UUID],
    target_date: Optional[date | datetime],
    now: Optional[datetime] = None,
) -> list[TimeSlot]:
    """
    Get every candidate slot of a business for a service on a date.

    Args:
        business_id: Business UUID
        service_id: Service UUID (its duration sizes each slot)
        target_date: Calendar date, interpreted in the business time zone
        now: Current instant (defaults to the wall clock)

    Returns:
        Chronological list of TimeSlot. Empty when the business is closed
        that day, has no hours configured, or the whole day is in the past.

    Raises:
        BookingValidationError: If a required argument is missing
        NotFoundError: If the service does not exist

    Example:
        >>> slots = await get_available_slots(business_id, service_id, date(2025, 12, 15))
        >>> [s.to_dict() for s in slots][:2]
        [{"time": "2025-12-15T09:00:00+00:00", "available": True},
         {"time": "2025-12-15T09:30:00+00:00", "available": False}]
    """
    if not business_id or not service_id or not target_date:
        raise BookingValidationError("Business, service, and date are required")

    settings = get_settings()
    now = now or datetime.now(business_timezone())
    check_date = _normalize_date(target_date)

    async with get_async_session() as session:
        service = await appointment_store.get_service_by_id(session, service_id)
        if service is None:
            raise NotFoundError("Service not found")

        duration = service_duration(service)

        hours = await get_business_hours(business_id, day_of_week_for(check_date), session=session)
        if hours is None or not hours.is_open:
            logger.info(
                f"No slots on {check_date}: business closed",
                extra={"business_id": business_id},
            )
            return []

        day_start, day_end = day_bounds(check_date)
        if day_end < now:
            logger.info(
                f"No slots on {check_date}: date is in the past",
                extra={"business_id": business_id},
            )
            return []

        opens_at, closes_at = hours.bounds_for(check_date)
        busy_periods = await get_busy_periods(session, business_id, day_start, day_end)

    slots = build_slots(
        opens_at,
        closes_at,
        duration,
        busy_periods,
        now,
        settings.SLOT_INTERVAL_MINUTES,
    )

    logger.info(
        f"Computed {len(slots)} slots for {check_date} "
        f"({sum(1 for s in slots if s.available)} available)",
        extra={"business_id": business_id},
    )
    return slots
