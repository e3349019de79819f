"""
Driver profile database model.

Holds the vehicle a driver registered with and the onboarding review state.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, JSON
from sqlalchemy.sql import func
from edrive.app.db.session import Base
from edrive.app.models.enums import VehicleCategory
from edrive.app.models.ride_enums import DriverStatus


class DriverProfile(Base):
    """
    Driver profile model.

    One per driver account. Only APPROVED drivers see the pending feed
    and may submit offers.
    """
    __tablename__ = "driver_profiles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)

    # Vehicle
    vehicle_category = Column(Enum(VehicleCategory), nullable=False, index=True)
    vehicle_model = Column(String(100), nullable=False)
    vehicle_number = Column(String(30), nullable=False)
    vehicle_color = Column(String(30), nullable=True)

    # Document references (blob storage is external, only URLs are stored)
    license_image_url = Column(String(500), nullable=True)
    registration_image_url = Column(String(500), nullable=True)
    vehicle_image_url = Column(String(500), nullable=True)

    # Review
    status = Column(Enum(DriverStatus), default=DriverStatus.PENDING, nullable=False, index=True)
    verification_results = Column(JSON, nullable=True)
    manual_review_required = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<DriverProfile(user_id={self.user_id}, category='{self.vehicle_category.value}', status='{self.status.value}')>"
