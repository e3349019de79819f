"""
Safety service: user blocks and incident reports.

Both actions are taken from inside a trip; the target is always the other
participant of that trip, resolved server-side from the bound request.
"""

import logging
from typing import Optional, Set, List

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.exceptions import InsufficientPermissionsError, ValidationError
from edrive.app.models.ride_request import RideRequest
from edrive.app.models.ride_enums import ReportReason
from edrive.app.models.safety import UserBlock, SafetyReport
from edrive.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)


def resolve_counterpart(trip: RideRequest, user_id: int) -> int:
    """
    The other participant of `trip` from `user_id`'s point of view.

    Raises:
        InsufficientPermissionsError: caller is not part of the trip
        ValidationError: no driver is bound yet
    """
    if user_id not in (trip.passenger_id, trip.driver_id):
        raise InsufficientPermissionsError("You are not a participant of this trip")
    other = trip.other_participant(user_id)
    if other is None:
        raise ValidationError("This trip has no other participant yet", details={"trip_id": trip.id})
    return other


async def blocked_user_ids(db: AsyncSession, user_id: int) -> Set[int]:
    """Users hidden from `user_id`: blocked by them, or who blocked them."""
    result = await db.execute(
        select(UserBlock.blocker_id, UserBlock.blocked_id).where(
            or_(UserBlock.blocker_id == user_id, UserBlock.blocked_id == user_id)
        )
    )
    hidden = set()
    for blocker_id, blocked_id in result.all():
        hidden.add(blocked_id if blocker_id == user_id else blocker_id)
    return hidden


async def is_blocked_pair(db: AsyncSession, user_a: int, user_b: int) -> bool:
    return user_b in await blocked_user_ids(db, user_a)


async def block_user(db: AsyncSession, trip: RideRequest, blocker_id: int, actor_email: Optional[str] = None) -> UserBlock:
    """
    Block the other participant of a trip. Blocking twice is a no-op.

    Returns:
        The (new or existing) block record
    """
    blocked_id = resolve_counterpart(trip, blocker_id)

    result = await db.execute(
        select(UserBlock).where(
            UserBlock.blocker_id == blocker_id,
            UserBlock.blocked_id == blocked_id
        )
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing

    block = UserBlock(blocker_id=blocker_id, blocked_id=blocked_id, trip_id=trip.id)
    db.add(block)
    await db.commit()
    await db.refresh(block)

    logger.info("User %s blocked user %s (trip %s)", blocker_id, blocked_id, trip.id)
    await log_event(
        db=db,
        action=AuditAction.USER_BLOCKED,
        actor_id=blocker_id,
        actor_email=actor_email,
        target_user_id=blocked_id,
        ride_request_id=trip.id
    )
    return block


async def report_user(
    db: AsyncSession,
    trip: RideRequest,
    reporter_id: int,
    reason: ReportReason,
    details: Optional[str] = None,
    actor_email: Optional[str] = None
) -> SafetyReport:
    """File an incident report against the other participant of a trip."""
    reported_id = resolve_counterpart(trip, reporter_id)

    report = SafetyReport(
        reporter_id=reporter_id,
        reported_id=reported_id,
        trip_id=trip.id,
        reason=ReportReason(reason).value,
        details=(details or "").strip() or "No additional comments"
    )
    db.add(report)
    await db.commit()
    await db.refresh(report)

    logger.warning("Incident reported on trip %s: %s", trip.id, report.reason)
    await log_event(
        db=db,
        action=AuditAction.INCIDENT_REPORTED,
        actor_id=reporter_id,
        actor_email=actor_email,
        target_user_id=reported_id,
        ride_request_id=trip.id,
        metadata={"reason": report.reason, "report_id": report.id}
    )
    return report


async def list_reports(db: AsyncSession, limit: int = 100) -> List[SafetyReport]:
    """Most recent first (admin review queue)."""
    result = await db.execute(
        select(SafetyReport).order_by(SafetyReport.created_at.desc(), SafetyReport.id.desc()).limit(limit)
    )
    return result.scalars().all()
