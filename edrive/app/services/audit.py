"""
Audit logging service for tracking ride lifecycle and moderation events.

Provides centralized logging for dispute handling and safety review.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from edrive.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    USER_CREATED = "USER_CREATED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    TOKEN_REVOKED = "TOKEN_REVOKED"

    # Ride lifecycle
    RIDE_REQUESTED = "RIDE_REQUESTED"
    OFFER_SUBMITTED = "OFFER_SUBMITTED"
    OFFER_ACCEPTED = "OFFER_ACCEPTED"
    TRIP_STARTED = "TRIP_STARTED"
    TRIP_COMPLETED = "TRIP_COMPLETED"
    RIDE_CANCELLED = "RIDE_CANCELLED"

    # Driver onboarding
    DRIVER_ONBOARDED = "DRIVER_ONBOARDED"
    DRIVER_APPROVED = "DRIVER_APPROVED"
    DRIVER_REJECTED = "DRIVER_REJECTED"

    # Safety
    USER_BLOCKED = "USER_BLOCKED"
    INCIDENT_REPORTED = "INCIDENT_REPORTED"
    COMPLAINT_FILED = "COMPLAINT_FILED"
    COMPLAINT_UPDATED = "COMPLAINT_UPDATED"

    # Admin tooling
    RIDE_DELETED = "RIDE_DELETED"
    USER_SUSPENDED = "USER_SUSPENDED"
    USER_REACTIVATED = "USER_REACTIVATED"
    NOTIFICATION_BROADCAST = "NOTIFICATION_BROADCAST"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_email: Optional[str] = None,
    target_user_id: Optional[int] = None,
    ride_request_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Log a ride or moderation event to the audit log.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action
        actor_email: Email of actor
        target_user_id: ID of user being acted upon (if applicable)
        ride_request_id: Ride the event belongs to (if applicable)
        metadata: Additional context as JSON
        ip_address: IP address of the request

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_email=actor_email,
        action=action,
        target_user_id=target_user_id,
        ride_request_id=ride_request_id,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    email: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log an authentication event (login success/failure).
    """
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_email=email,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_ride_audit_trail(
    db: AsyncSession,
    ride_request_id: str,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve the audit trail of a single ride, oldest first.

    Args:
        db: Database session
        ride_request_id: Ride to get history for
        limit: Maximum number of records to return
    """
    query = select(AuditLog).where(
        AuditLog.ride_request_id == ride_request_id
    ).order_by(AuditLog.id).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


async def get_audit_trail(
    db: AsyncSession,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
