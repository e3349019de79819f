"""
Ride request database model.

The root entity of the ride lifecycle. Status and driver binding are only
ever changed by services/matching.py.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Float, Numeric, ForeignKey, DateTime, Enum
from edrive.app.db.session import Base
from edrive.app.models.enums import VehicleCategory
from edrive.app.models.ride_enums import RideStatus, DeliveryCategory


def generate_request_id() -> str:
    return f"req-{uuid.uuid4().hex}"


class RideRequest(Base):
    """
    Ride request model.

    A passenger's ride or delivery ask. While PENDING it collects offers;
    accepting one binds exactly one driver and freezes the fare.
    """
    __tablename__ = "ride_requests"

    id = Column(String(40), primary_key=True, default=generate_request_id)

    # Ownership
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # What was asked for
    category = Column(Enum(VehicleCategory), nullable=False, index=True)
    delivery_category = Column(Enum(DeliveryCategory), nullable=True)
    instructions = Column(Text, nullable=False, default="")
    voice_note_ref = Column(String(500), nullable=True)

    # Route
    pickup_address = Column(String(255), nullable=False)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    destination_address = Column(String(255), nullable=False)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)

    # Proposed fare, replaced by the accepted offer's fare
    fare = Column(Numeric(10, 2), nullable=False)

    # Lifecycle
    status = Column(Enum(RideStatus), default=RideStatus.PENDING, nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    accepted_offer_id = Column(String(40), nullable=True)
    cancel_reason = Column(String(255), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True, index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    def participant_ids(self) -> tuple:
        """Passenger and (if bound) driver."""
        return (self.passenger_id, self.driver_id) if self.driver_id else (self.passenger_id,)

    def other_participant(self, user_id: int):
        """The counterpart of `user_id` on this trip, or None if unbound."""
        if user_id == self.passenger_id:
            return self.driver_id
        if user_id == self.driver_id:
            return self.passenger_id
        return None

    def __repr__(self):
        return f"<RideRequest(id={self.id}, category='{self.category.value}', status='{self.status.value}')>"
