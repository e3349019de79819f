"""
Ride-related enumerations.
"""

import enum


class RideStatus(str, enum.Enum):
    """Ride request status enumeration."""
    PENDING = "pending"  # Open for offers
    ACCEPTED = "accepted"  # Passenger picked an offer, driver bound
    ONGOING = "ongoing"  # Driver has started the trip
    COMPLETED = "completed"  # Trip finished, fare final
    CANCELLED = "cancelled"  # Cancelled by passenger or bound driver


ACTIVE_RIDE_STATUSES = (RideStatus.PENDING, RideStatus.ACCEPTED, RideStatus.ONGOING)
TERMINAL_RIDE_STATUSES = (RideStatus.COMPLETED, RideStatus.CANCELLED)


class DeliveryCategory(str, enum.Enum):
    """What a DELIVERY request carries."""
    FOOD = "FOOD"
    MEDICINE = "MEDICINE"
    PARCEL = "PARCEL"
    DOC = "DOC"


class DriverStatus(str, enum.Enum):
    """Driver onboarding status."""
    PENDING = "pending"  # Submitted, awaiting admin review
    APPROVED = "approved"
    REJECTED = "rejected"
    DISABLED = "disabled"


class DocumentType(str, enum.Enum):
    """Documents checked during driver onboarding."""
    DRIVING_LICENSE = "Driving License"
    VEHICLE_REGISTRATION = "Vehicle Registration Document"
    VEHICLE_PHOTO = "Vehicle Photo (with visible plate)"


class ReportReason(str, enum.Enum):
    """Reasons a participant can pick when reporting the other party."""
    MISBEHAVIOR = "Misbehavior / Rude"
    EXTRA_FARE = "Asking for extra fare"
    SAFETY = "Safety concerns"
    RECKLESS_DRIVING = "Reckless driving"
    WRONG_IDENTITY = "Wrong identity"
    HARASSMENT = "Harassment"


class ComplaintStatus(str, enum.Enum):
    """Lifecycle of a complaint sent to HQ."""
    OPEN = "open"
    INVESTIGATING = "investigating"
    CLOSED = "closed"
