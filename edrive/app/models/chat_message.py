"""
Trip chat message database model.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime
from edrive.app.db.session import Base


class ChatMessage(Base):
    """
    Chat message model.

    Append-only; ordered by created_at, ties broken by id (arrival order).
    """
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    trip_id = Column(String(40), ForeignKey("ride_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    text = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<ChatMessage(id={self.id}, trip_id={self.trip_id}, sender_id={self.sender_id})>"
