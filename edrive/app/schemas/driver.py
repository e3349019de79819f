"""
Driver onboarding and earnings schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any
from edrive.app.models.enums import VehicleCategory
from edrive.app.models.ride_enums import DriverStatus


class DriverOnboarding(BaseModel):
    """
    Vehicle and document submission.

    Image fields are references to already uploaded (and compressed) files.
    Used by POST /drivers/onboarding.
    """
    vehicle_category: VehicleCategory
    vehicle_model: str = Field(..., min_length=1, max_length=100)
    vehicle_number: str = Field(..., min_length=1, max_length=30)
    vehicle_color: Optional[str] = Field(default=None, max_length=30)
    license_image_url: str = Field(..., min_length=1, max_length=500)
    registration_image_url: str = Field(..., min_length=1, max_length=500)
    vehicle_image_url: str = Field(..., min_length=1, max_length=500)

    class Config:
        extra = "forbid"


class DocumentVerdict(BaseModel):
    """Outcome of checking one uploaded document."""
    valid: bool
    reason: str = ""
    manual_review: bool = False


class DriverProfileResponse(BaseModel):
    user_id: int
    vehicle_category: VehicleCategory
    vehicle_model: str
    vehicle_number: str
    vehicle_color: Optional[str] = None
    license_image_url: Optional[str] = None
    registration_image_url: Optional[str] = None
    vehicle_image_url: Optional[str] = None
    status: DriverStatus
    verification_results: Optional[Dict[str, Any]] = None
    manual_review_required: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DriverDecision(BaseModel):
    """Used by PATCH /admin/drivers/{id}/approve|reject."""
    note: Optional[str] = Field(default=None, max_length=500)

    class Config:
        extra = "forbid"


class EarningsWindow(BaseModel):
    start: datetime
    end: datetime
    total: float
    completed_trips: int


class EarningsSummary(BaseModel):
    """Driver dashboard figures."""
    driver_id: int
    today: float
    last_7_days: float
    lifetime: float
    completed_trips: int
    window: Optional[EarningsWindow] = None
