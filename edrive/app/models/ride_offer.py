"""
Ride offer (bid) database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime
from edrive.app.db.session import Base


def generate_offer_id() -> str:
    return f"bid-{uuid.uuid4().hex}"


class RideOffer(Base):
    """
    Ride offer model.

    A driver's proposed fare for a pending request. Offers are never
    updated; once the request leaves PENDING they are stale and ignored.
    """
    __tablename__ = "ride_offers"

    id = Column(String(40), primary_key=True, default=generate_offer_id)

    request_id = Column(String(40), ForeignKey("ride_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    fare = Column(Numeric(10, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<RideOffer(id={self.id}, request_id={self.request_id}, driver_id={self.driver_id}, fare={self.fare})>"
