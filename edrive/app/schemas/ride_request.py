"""
Ride request and offer schemas.

Inputs are closed (unknown fields are rejected). Business rules such as
"fare must be positive" are enforced by the services so that they surface
as ERR_VALIDATION_001 rather than a generic 422.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from edrive.app.models.enums import VehicleCategory
from edrive.app.models.ride_enums import RideStatus, DeliveryCategory


class Place(BaseModel):
    """An address with coordinates."""
    address: str = Field(..., max_length=255)
    lat: float
    lng: float

    class Config:
        extra = "forbid"


class RideRequestCreate(BaseModel):
    """
    Schema for posting a ride or delivery request.

    Used by POST /requests.
    """
    category: VehicleCategory
    pickup: Place
    destination: Place
    fare: Decimal = Field(..., description="Proposed fare in PKR")
    instructions: str = Field(default="", max_length=1000)
    voice_note_ref: Optional[str] = Field(default=None, max_length=500, description="Reference to an uploaded voice note")
    delivery_category: Optional[DeliveryCategory] = Field(default=None, description="Only for DELIVERY requests")

    class Config:
        extra = "forbid"


class RideRequestResponse(BaseModel):
    """Full view of a ride request."""
    id: str
    passenger_id: int
    category: VehicleCategory
    delivery_category: Optional[DeliveryCategory] = None
    instructions: str
    voice_note_ref: Optional[str] = None
    pickup_address: str
    pickup_lat: float
    pickup_lng: float
    destination_address: str
    destination_lat: float
    destination_lng: float
    fare: float
    status: RideStatus
    driver_id: Optional[int] = None
    accepted_offer_id: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancelled_by: Optional[int] = None
    created_at: datetime
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OfferCreate(BaseModel):
    """
    Schema for a driver's bid.

    Used by POST /requests/{id}/offers.
    """
    fare: Decimal = Field(..., description="Offered fare in PKR")

    class Config:
        extra = "forbid"


class OfferResponse(BaseModel):
    id: str
    request_id: str
    driver_id: int
    fare: float
    created_at: datetime
    driver_name: Optional[str] = None
    driver_rating: Optional[float] = None

    class Config:
        from_attributes = True


class AcceptOfferRequest(BaseModel):
    """Used by POST /requests/{id}/accept."""
    offer_id: str = Field(..., min_length=1, max_length=40)

    class Config:
        extra = "forbid"


class CancelRequest(BaseModel):
    """Used by POST /requests/{id}/cancel. The reason is mandatory."""
    reason: str = Field(..., max_length=255)

    class Config:
        extra = "forbid"
