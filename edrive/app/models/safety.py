"""
Safety database models: user blocks and incident reports.

Both are raised from inside a trip and always reference the two
participants of that trip.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, UniqueConstraint
from edrive.app.db.session import Base


class UserBlock(Base):
    """A user hiding another user's rides and offers."""
    __tablename__ = "user_blocks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    blocker_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    blocked_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    trip_id = Column(String(40), ForeignKey("ride_requests.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("blocker_id", "blocked_id", name="uq_user_block_pair"),
    )

    def __repr__(self):
        return f"<UserBlock(blocker={self.blocker_id}, blocked={self.blocked_id})>"


class SafetyReport(Base):
    """An incident report filed against the other trip participant."""
    __tablename__ = "safety_reports"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reported_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    trip_id = Column(String(40), ForeignKey("ride_requests.id", ondelete="SET NULL"), nullable=True, index=True)

    reason = Column(String(255), nullable=False)
    details = Column(Text, nullable=False, default="No additional comments")

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<SafetyReport(id={self.id}, reporter={self.reporter_id}, reported={self.reported_id})>"
