"""
Notification API Endpoints.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from edrive.app.db.session import get_db
from edrive.app.core.dependencies import get_current_user
from edrive.app.core.exceptions import ResourceNotFoundError
from edrive.app.core.guards import require_admin
from edrive.app.services.audit import log_event, AuditAction
from edrive.app.services.notification_service import NotificationService
from edrive.app.schemas.notification import NotificationResponse, BroadcastRequest

router = APIRouter(prefix="/notifications", tags=["Notifications"])
admin_router = APIRouter(prefix="/admin/notifications", tags=["Admin - Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List current user's notifications, newest first."""
    return await NotificationService.list_for_user(db, current_user["user_id"], unread_only, limit)


@router.patch("/read-all")
async def mark_all_notifications_read(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark all notifications as read."""
    count = await NotificationService.mark_all_read(db, current_user["user_id"])
    await db.commit()
    return {"status": "success", "count": count}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int = Path(...),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read (recipient only)."""
    success = await NotificationService.mark_read(db, notification_id, current_user["user_id"])
    if not success:
        raise ResourceNotFoundError("Notification", notification_id)

    await db.commit()
    return {"status": "success"}


# --- Admin Broadcast ---

@admin_router.post("/broadcast")
async def broadcast_notification(
    req: BroadcastRequest,
    current_user: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Send a notification to every active user, or every user of one role."""
    count = await NotificationService.broadcast(
        db, req.title, req.message, req.role_filter, req.type
    )
    await db.commit()

    await log_event(
        db=db,
        action=AuditAction.NOTIFICATION_BROADCAST,
        actor_id=current_user["user_id"],
        actor_email=current_user.get("sub"),
        metadata={"title": req.title, "role": req.role_filter.value if req.role_filter else None, "recipients": count}
    )
    return {"status": "success", "recipients": count}
