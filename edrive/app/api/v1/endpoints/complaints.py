"""
Complaint API Endpoints.

Support tickets to Hafizabad HQ from passengers and drivers.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.db.session import get_db
from edrive.app.core.guards import require_role
from edrive.app.models.enums import UserRole
from edrive.app.schemas.complaint import ComplaintCreate, ComplaintResponse
from edrive.app.services.complaints import submit_complaint, list_user_complaints

router = APIRouter(prefix="/complaints", tags=["Complaints"])

require_app_user = require_role([UserRole.PASSENGER, UserRole.DRIVER])


@router.post("", response_model=ComplaintResponse, status_code=status.HTTP_201_CREATED)
async def file_complaint(
    data: ComplaintCreate,
    current_user: dict = Depends(require_app_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit a complaint to HQ (Passenger or Driver).

    Subject, message and the target's name are required.
    """
    return await submit_complaint(db, current_user["user_id"], data, actor_email=current_user.get("sub"))


@router.get("/mine", response_model=List[ComplaintResponse])
async def my_complaints(
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(require_app_user),
    db: AsyncSession = Depends(get_db)
):
    """Complaints the caller filed, newest first, with their status."""
    return await list_user_complaints(db, current_user["user_id"], limit)
