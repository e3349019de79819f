"""
Notification database model.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Enum
from edrive.app.db.session import Base
import enum


class NotificationType(str, enum.Enum):
    RIDE_REQUEST = "RIDE_REQUEST"  # Offers, acceptance, trip progress
    CHAT = "CHAT"
    SYSTEM = "SYSTEM"  # Ratings, onboarding decisions, broadcasts
    ALERT = "ALERT"  # Cancellations, ride taken by another driver


class Notification(Base):
    """
    In-App Notification.

    Written by the dispatcher after a state change commits. Delivery to the
    device (push) is external; the recipient's client flips is_read.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Content
    type = Column(Enum(NotificationType), default=NotificationType.SYSTEM, nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    metadata_payload = Column(JSON, nullable=True)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, title='{self.title}')>"
