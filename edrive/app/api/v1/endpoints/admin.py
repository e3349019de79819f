"""
Admin API Endpoints.

Driver approval, moderation and user management with audit logging.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from edrive.app.db.session import get_db
from edrive.app.models.user import User
from edrive.app.models.enums import UserRole
from edrive.app.models.ride_enums import DriverStatus, ComplaintStatus
from edrive.app.schemas.admin import (
    UserListResponse, UserListItem, SuspendUserRequest,
    AdminActionResponse, AuditTrailResponse, AuditLogResponse
)
from edrive.app.schemas.complaint import ComplaintResponse, ComplaintStatusUpdate, DispatchMetrics
from edrive.app.schemas.driver import DriverProfileResponse, DriverDecision
from edrive.app.schemas.trip import ReportResponse
from edrive.app.core.guards import require_admin
from edrive.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from edrive.app.services.audit import log_event, AuditAction, get_audit_trail, get_ride_audit_trail
from edrive.app.services.complaints import list_complaints, update_complaint_status
from edrive.app.services.driver_service import list_profiles, set_driver_status
from edrive.app.services.metrics import MetricsService
from edrive.app.services.ride_store import hard_delete_request
from edrive.app.services.safety import list_reports

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    role: Optional[UserRole] = Query(None),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List users (admin-only).

    Returns paginated user list with role and status information.
    """
    count_query = select(func.count(User.id))
    query = select(User)
    if role:
        count_query = count_query.where(User.role == role)
        query = query.where(User.role == role)

    total = (await db.execute(count_query)).scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(page_size))
    users = result.scalars().all()

    return UserListResponse(
        users=[UserListItem.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size
    )


async def _get_target_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    target_user = result.scalar_one_or_none()
    if not target_user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return target_user


@router.post("/users/{user_id}/suspend", response_model=AdminActionResponse)
async def suspend_user(
    user_id: int,
    request: SuspendUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Suspend a user and revoke all their active tokens (admin-only).

    This immediately terminates all user sessions.
    """
    target_user = await _get_target_user(db, user_id)

    if target_user.role == UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot suspend another admin user"
        )

    if not target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already suspended"
        )

    target_user.is_active = False
    await db.commit()

    await revoke_all_user_tokens(user_id)

    await log_event(
        db=db,
        action=AuditAction.USER_SUSPENDED,
        actor_id=admin["user_id"],
        actor_email=admin.get("sub"),
        target_user_id=target_user.id,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.email}' has been suspended",
        user_id=user_id,
        action=AuditAction.USER_SUSPENDED
    )


@router.post("/users/{user_id}/reactivate", response_model=AdminActionResponse)
async def reactivate_user(
    user_id: int,
    request: SuspendUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Reactivate a suspended user and clear token revocations (admin-only).
    """
    target_user = await _get_target_user(db, user_id)

    if target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already active"
        )

    target_user.is_active = True
    await db.commit()

    await clear_user_token_revocation(user_id)

    await log_event(
        db=db,
        action=AuditAction.USER_REACTIVATED,
        actor_id=admin["user_id"],
        actor_email=admin.get("sub"),
        target_user_id=target_user.id,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.email}' has been reactivated",
        user_id=user_id,
        action=AuditAction.USER_REACTIVATED
    )


@router.get("/drivers", response_model=List[DriverProfileResponse])
async def list_drivers(
    status_filter: Optional[DriverStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Driver profiles, oldest submission first (review queue)."""
    return await list_profiles(db, status_filter, limit)


@router.patch("/drivers/{user_id}/approve", response_model=DriverProfileResponse)
async def approve_driver(
    user_id: int = Path(..., description="Driver user ID"),
    decision: Optional[DriverDecision] = None,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Approve a driver; they start seeing the request feed."""
    return await set_driver_status(db, user_id, DriverStatus.APPROVED, admin, decision.note if decision else None)


@router.patch("/drivers/{user_id}/reject", response_model=DriverProfileResponse)
async def reject_driver(
    user_id: int = Path(..., description="Driver user ID"),
    decision: Optional[DriverDecision] = None,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Reject a driver submission; the driver may resubmit."""
    return await set_driver_status(db, user_id, DriverStatus.REJECTED, admin, decision.note if decision else None)


@router.delete("/requests/{request_id}", response_model=AdminActionResponse)
async def delete_ride_request(
    request_id: str = Path(..., description="Ride request ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Hard-delete a ride request with its offers, chat and locations."""
    await hard_delete_request(db, request_id, admin)
    return AdminActionResponse(
        success=True,
        message=f"Ride request '{request_id}' has been deleted",
        ride_request_id=request_id,
        action=AuditAction.RIDE_DELETED
    )


@router.get("/requests/{request_id}/audit-trail", response_model=AuditTrailResponse)
async def ride_audit_trail(
    request_id: str = Path(..., description="Ride request ID"),
    limit: int = Query(100, ge=1, le=500),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Every audited event of one ride, oldest first (dispute handling)."""
    logs = await get_ride_audit_trail(db, request_id, limit)
    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )


@router.get("/reports", response_model=List[ReportResponse])
async def list_safety_reports(
    limit: int = Query(100, ge=1, le=500),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Incident reports, most recent first."""
    return await list_reports(db, limit)


@router.get("/complaints", response_model=List[ComplaintResponse])
async def list_hq_complaints(
    status_filter: Optional[ComplaintStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Complaints to HQ, most recent first."""
    return await list_complaints(db, status_filter, limit)


@router.patch("/complaints/{complaint_id}", response_model=ComplaintResponse)
async def set_complaint_status(
    update: ComplaintStatusUpdate,
    complaint_id: int = Path(..., description="Complaint ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Mark a complaint investigating or closed, with an optional note."""
    return await update_complaint_status(db, complaint_id, update.status, admin, update.note)


@router.get("/metrics", response_model=DispatchMetrics)
async def dispatch_metrics(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Control-center figures (admin-only).

    Ride counts per status, completed-fare revenue (lifetime and today),
    live rides, users per role and the open review queues.
    """
    return await MetricsService.get_dispatch_metrics(db)


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    action: str = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).
    """
    logs = await get_audit_trail(db=db, action=action, limit=limit)

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=len(logs)
    )
