"""
Trip session schemas: live location, chat, safety and reviews.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from edrive.app.models.ride_enums import ReportReason


class LocationPing(BaseModel):
    """
    Location update from a trip participant.

    Used by POST /trips/{id}/location.
    """
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    rotation: Optional[float] = Field(default=None, ge=0, lt=360, description="Heading in degrees")

    class Config:
        extra = "forbid"


class PresenceResponse(BaseModel):
    trip_id: str
    user_id: int
    latitude: float
    longitude: float
    rotation: Optional[float] = None
    recorded_at: datetime

    class Config:
        from_attributes = True


class ChatMessageCreate(BaseModel):
    """Used by POST /trips/{id}/messages."""
    text: str = Field(..., max_length=1000)

    class Config:
        extra = "forbid"


class ChatMessageResponse(BaseModel):
    id: int
    trip_id: str
    sender_id: int
    text: str
    created_at: datetime

    class Config:
        from_attributes = True


class BlockResponse(BaseModel):
    blocker_id: int
    blocked_id: int
    trip_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ReportCreate(BaseModel):
    """Used by POST /trips/{id}/report."""
    reason: ReportReason
    details: Optional[str] = Field(default=None, max_length=2000)

    class Config:
        extra = "forbid"


class ReportResponse(BaseModel):
    id: int
    reporter_id: int
    reported_id: int
    trip_id: Optional[str] = None
    reason: str
    details: str
    created_at: datetime

    class Config:
        from_attributes = True


class ReviewCreate(BaseModel):
    """Used by POST /trips/{id}/reviews."""
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)

    class Config:
        extra = "forbid"


class ReviewResponse(BaseModel):
    id: int
    trip_id: str
    reviewer_id: int
    reviewee_id: int
    rating: int
    comment: str
    created_at: datetime

    class Config:
        from_attributes = True
