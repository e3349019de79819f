"""
Complaint database model.

A general complaint to HQ, not tied to a trip. The target is described by
name and contact details since they may not be a registered user.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum
from edrive.app.db.session import Base
from edrive.app.models.ride_enums import ComplaintStatus


class Complaint(Base):
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    reporter_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)

    target_name = Column(String(120), nullable=False)
    target_phone = Column(String(30), nullable=True)
    target_email = Column(String(255), nullable=True)
    proof_image_url = Column(String(500), nullable=True)

    status = Column(Enum(ComplaintStatus), default=ComplaintStatus.OPEN, nullable=False, index=True)
    resolution_note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Complaint(id={self.id}, reporter={self.reporter_id}, status={self.status})>"
