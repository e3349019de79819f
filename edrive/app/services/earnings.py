"""
Driver earnings aggregation.

Earnings are the fares of a driver's COMPLETED requests. The fare is frozen
at accept time, so summing the same window twice always gives the same total.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.exceptions import ValidationError
from edrive.app.models.ride_enums import RideStatus
from edrive.app.models.ride_request import RideRequest


def _naive_utc(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


async def _sum_completed(
    db: AsyncSession,
    driver_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None
) -> Tuple[Decimal, int]:
    query = select(
        func.coalesce(func.sum(RideRequest.fare), 0),
        func.count(RideRequest.id)
    ).where(
        RideRequest.driver_id == driver_id,
        RideRequest.status == RideStatus.COMPLETED
    )
    if start is not None:
        query = query.where(RideRequest.completed_at >= _naive_utc(start))
    if end is not None:
        query = query.where(RideRequest.completed_at < _naive_utc(end))

    result = await db.execute(query)
    total, count = result.one()
    return Decimal(str(total)).quantize(Decimal("0.01")), count


async def earnings_between(
    db: AsyncSession,
    driver_id: int,
    start: datetime,
    end: datetime
) -> Tuple[Decimal, int]:
    """
    Sum of fares over completed requests with completed_at in [start, end).

    Returns:
        (total, number of completed trips)

    Raises:
        ValidationError: start is after end
    """
    if _naive_utc(start) > _naive_utc(end):
        raise ValidationError("start must not be after end", details={"start": str(start), "end": str(end)})
    return await _sum_completed(db, driver_id, start, end)


async def earnings_summary(db: AsyncSession, driver_id: int, now: Optional[datetime] = None) -> dict:
    """Today (since UTC midnight), last 7 days and lifetime totals."""
    now = _naive_utc(now) if now else datetime.utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    # Include trips completed in the current second
    upper = now + timedelta(seconds=1)

    today, _ = await _sum_completed(db, driver_id, midnight, upper)
    week, _ = await _sum_completed(db, driver_id, now - timedelta(days=7), upper)
    lifetime, completed = await _sum_completed(db, driver_id)

    return {
        "driver_id": driver_id,
        "today": today,
        "last_7_days": week,
        "lifetime": lifetime,
        "completed_trips": completed,
    }
