"""
User roles and vehicle categories.

Defines the role types and the closed set of service categories
shared by riders, drivers and ride requests.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Operations staff (driver approval, moderation)
        PASSENGER: Posts ride and delivery requests (default role)
        DRIVER: Bids on requests and runs trips
    """
    ADMIN = "ADMIN"
    PASSENGER = "PASSENGER"
    DRIVER = "DRIVER"


class VehicleCategory(str, enum.Enum):
    """
    Service category of a request, and vehicle type of a driver.

    A MOTO driver also serves DELIVERY requests, see services/eligibility.py.
    """
    MOTO = "MOTO"
    RICKSHAW = "RICKSHAW"
    CAR = "CAR"
    DELIVERY = "DELIVERY"
