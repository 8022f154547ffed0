"""
Business Hours Provider - Single source of truth for opening hours.

Reads the per-business ``business_hours`` table and turns a row into a
``BusinessHoursWindow`` that can resolve concrete opening and closing
datetimes for a calendar date in the business-local time zone.

Design Principles:
- Database is the single source of truth (no hard-coded fallback window)
- Fails closed on malformed configuration (a day with unreadable hours is
  treated as closed rather than offering false availability)
- Database errors propagate to the caller

Usage:
    from shared.business_hours_provider import get_business_hours

    window = await get_business_hours(business_id, day_of_week_for(target_date))
    if window is None or not window.is_open:
        return []
    opens_at, closes_at = window.bounds_for(target_date)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.connection import get_async_session
from database.models import BusinessHours
from shared.config import get_settings

logger = logging.getLogger(__name__)

# Indexed by business_hours.day_of_week, which counts from Sunday
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def business_timezone() -> ZoneInfo:
    """Wall-clock zone every business operates in."""
    return ZoneInfo(get_settings().TIMEZONE)


def day_of_week_for(target_date: date) -> int:
    """Business hours day index of a date (0=Sunday ... 6=Saturday)."""
    return target_date.isoweekday() % 7


def parse_hhmm(value: str) -> time:
    """
    Parse a ``"HH:mm"`` string into a time.

    Raises:
        ValueError: If the value is not a valid 24h clock time
    """
    hours, _, minutes = value.strip().partition(":")
    if not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        raise ValueError(f"Invalid HH:mm time: {value!r}")
    return time(int(hours), int(minutes))


@dataclass(frozen=True)
class BusinessHoursWindow:
    """Opening hours of one business on one day of the week."""

    day_of_week: int
    is_open: bool
    start_time: str
    end_time: str

    def bounds_for(self, target_date: date, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
        """
        Opening and closing datetimes for a calendar date.

        Args:
            target_date: Calendar date the window is applied to
            tz: Business-local zone (defaults to the configured TIMEZONE)

        Returns:
            Tuple of timezone-aware (opens_at, closes_at)
        """
        tz = tz or business_timezone()
        opens_at = datetime.combine(target_date, parse_hhmm(self.start_time), tzinfo=tz)
        closes_at = datetime.combine(target_date, parse_hhmm(self.end_time), tzinfo=tz)
        return opens_at, closes_at


def _to_window(row: BusinessHours) -> Optional[BusinessHoursWindow]:
    window = BusinessHoursWindow(
        day_of_week=row.day_of_week,
        is_open=row.is_open,
        start_time=row.start_time,
        end_time=row.end_time,
    )
    if not window.is_open:
        return window

    try:
        opens = parse_hhmm(window.start_time)
        closes = parse_hhmm(window.end_time)
    except ValueError as e:
        logger.warning(
            f"Malformed business hours for {DAY_NAMES[row.day_of_week]}: {e}. "
            f"Treating day as closed.",
            extra={"business_id": row.business_id},
        )
        return None

    if closes <= opens:
        logger.warning(
            f"Business hours for {DAY_NAMES[row.day_of_week]} close at or before "
            f"opening ({window.start_time}-{window.end_time}). Treating day as closed.",
            extra={"business_id": row.business_id},
        )
        return None

    return window


async def _fetch_hours(
    session: AsyncSession, business_id: UUID, day_of_week: int
) -> Optional[BusinessHours]:
    result = await session.execute(
        select(BusinessHours).where(
            BusinessHours.business_id == business_id,
            BusinessHours.day_of_week == day_of_week,
        )
    )
    return result.scalar_one_or_none()


async def get_business_hours(
    business_id: UUID,
    day_of_week: int,
    session: AsyncSession | None = None,
) -> Optional[BusinessHoursWindow]:
    """
    Get the opening hours of a business for a day of the week.

    Args:
        business_id: Business UUID
        day_of_week: Day of week (0=Sunday, 1=Monday, ..., 6=Saturday)
        session: Optional session to read with; a short-lived one is opened otherwise

    Returns:
        BusinessHoursWindow, or None when no row exists or the configured
        hours are unusable. A window with ``is_open=False`` means closed.

    Example:
        >>> window = await get_business_hours(business_id, 3)  # Wednesday
        >>> window.start_time, window.end_time
        ('09:00', '18:00')
    """
    if not (0 <= day_of_week <= 6):
        logger.error(f"Invalid day_of_week: {day_of_week}. Must be 0-6.")
        return None

    if session is not None:
        row = await _fetch_hours(session, business_id, day_of_week)
    else:
        async with get_async_session() as own_session:
            row = await _fetch_hours(own_session, business_id, day_of_week)

    if row is None:
        logger.debug(
            f"No business hours configured for {DAY_NAMES[day_of_week]}",
            extra={"business_id": business_id},
        )
        return None

    return _to_window(row)
