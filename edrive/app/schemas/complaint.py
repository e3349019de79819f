"""
Complaint schemas (support tickets to HQ) and dispatch metrics.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Dict, Optional
from edrive.app.models.ride_enums import ComplaintStatus


class ComplaintCreate(BaseModel):
    """
    Used by POST /complaints.

    Subject, message and the target's name are required; contact details
    and proof are optional.
    """
    subject: str = Field(..., max_length=200)
    message: str = Field(..., max_length=4000)
    target_name: str = Field(..., max_length=120)
    target_phone: Optional[str] = Field(None, max_length=30)
    target_email: Optional[EmailStr] = None
    proof_image_url: Optional[str] = Field(None, max_length=500)

    class Config:
        extra = "forbid"


class ComplaintResponse(BaseModel):
    id: int
    reporter_id: int
    subject: str
    message: str
    target_name: str
    target_phone: Optional[str] = None
    target_email: Optional[str] = None
    proof_image_url: Optional[str] = None
    status: ComplaintStatus
    resolution_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ComplaintStatusUpdate(BaseModel):
    """Used by PATCH /admin/complaints/{id}."""
    status: ComplaintStatus
    note: Optional[str] = Field(None, max_length=1000)

    class Config:
        extra = "forbid"


class DispatchMetrics(BaseModel):
    """Admin control-center figures."""
    rides_by_status: Dict[str, int]
    completed_revenue: float
    today_completed: int
    today_revenue: float
    live_rides: int
    users_by_role: Dict[str, int]
    drivers_awaiting_review: int
    open_complaints: int
