"""
Audit Log Database Model.

Tracks ride lifecycle transitions, moderation and admin actions.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from edrive.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - RIDE_REQUESTED / OFFER_SUBMITTED / OFFER_ACCEPTED
    - TRIP_STARTED / TRIP_COMPLETED / RIDE_CANCELLED
    - DRIVER_APPROVED / DRIVER_REJECTED / RIDE_DELETED
    - USER_BLOCKED / INCIDENT_REPORTED
    - LOGIN_SUCCESS / LOGIN_FAILED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Who or what was acted upon
    target_user_id = Column(Integer, index=True, nullable=True)
    ride_request_id = Column(String(40), index=True, nullable=True)

    # Additional context
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email})>"
