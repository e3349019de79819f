"""
Ride review database model (post-trip rating exchange).
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, UniqueConstraint
from edrive.app.db.session import Base


class RideReview(Base):
    """
    Ride review model.

    Each participant of a completed trip may rate the other once.
    """
    __tablename__ = "ride_reviews"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(String(40), ForeignKey("ride_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reviewee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="No comment")

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("trip_id", "reviewer_id", name="uq_ride_review_trip_reviewer"),
    )

    def __repr__(self):
        return f"<RideReview(trip_id={self.trip_id}, reviewer={self.reviewer_id}, rating={self.rating})>"
