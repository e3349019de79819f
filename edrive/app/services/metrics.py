"""
Dispatch metrics for the admin control center.

Read-only aggregates over rides, users and complaints.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.models.complaint import Complaint
from edrive.app.models.driver_profile import DriverProfile
from edrive.app.models.enums import UserRole
from edrive.app.models.ride_enums import ACTIVE_RIDE_STATUSES, RideStatus, DriverStatus, ComplaintStatus
from edrive.app.models.ride_request import RideRequest
from edrive.app.models.user import User
from edrive.app.schemas.complaint import DispatchMetrics


class MetricsService:

    @staticmethod
    async def get_dispatch_metrics(db: AsyncSession, now: Optional[datetime] = None) -> DispatchMetrics:
        """Ride counts per status, revenue, live load and review queues."""
        now = now or datetime.utcnow()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

        # 1. Rides per status (every status present, zero if none)
        rides_by_status = {s.value: 0 for s in RideStatus}
        result = await db.execute(
            select(RideRequest.status, func.count(RideRequest.id)).group_by(RideRequest.status)
        )
        for ride_status, count in result.all():
            rides_by_status[RideStatus(ride_status).value] = count

        # 2. Revenue: fares of completed rides, lifetime and since UTC midnight
        completed = RideRequest.status == RideStatus.COMPLETED
        revenue = (await db.execute(
            select(func.coalesce(func.sum(RideRequest.fare), 0)).where(completed)
        )).scalar()
        today_revenue, today_completed = (await db.execute(
            select(func.coalesce(func.sum(RideRequest.fare), 0), func.count(RideRequest.id)).where(
                completed,
                RideRequest.completed_at >= midnight
            )
        )).one()

        # 3. Users per role
        users_by_role = {role.value: 0 for role in UserRole}
        result = await db.execute(select(User.role, func.count(User.id)).group_by(User.role))
        for role, count in result.all():
            users_by_role[UserRole(role).value] = count

        # 4. Review queues
        awaiting_review = (await db.execute(
            select(func.count(DriverProfile.id)).where(DriverProfile.status == DriverStatus.PENDING)
        )).scalar() or 0
        open_complaints = (await db.execute(
            select(func.count(Complaint.id)).where(Complaint.status != ComplaintStatus.CLOSED)
        )).scalar() or 0

        return DispatchMetrics(
            rides_by_status=rides_by_status,
            completed_revenue=float(revenue or 0),
            today_completed=today_completed,
            today_revenue=float(today_revenue or 0),
            live_rides=sum(rides_by_status[s.value] for s in ACTIVE_RIDE_STATUSES),
            users_by_role=users_by_role,
            drivers_awaiting_review=awaiting_review,
            open_complaints=open_complaints
        )
