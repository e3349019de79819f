"""
Trip Presence database model.

Latest known position of each participant of a trip. Unlike a breadcrumb
trail, a new ping overwrites the previous one for the same trip and user.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, UniqueConstraint
from edrive.app.db.session import Base


class TripPresence(Base):
    """
    Trip Presence model.

    One row per (trip, user).
    """
    __tablename__ = "trip_presence"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(String(40), ForeignKey("ride_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    rotation = Column(Float, nullable=True)  # Heading in degrees, if the client sent one

    recorded_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("trip_id", "user_id", name="uq_trip_presence_trip_user"),
    )

    def __repr__(self):
        return f"<TripPresence(trip_id={self.trip_id}, user_id={self.user_id}, lat={self.latitude}, lng={self.longitude})>"
