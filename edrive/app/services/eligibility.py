"""
Driver eligibility filter.

Decides which pending requests a driver is shown. A MOTO driver also
carries deliveries; every other vehicle type only serves its own category.
"""

from typing import List

from edrive.app.models.enums import VehicleCategory


def is_driver_eligible(driver_category: VehicleCategory, request_category: VehicleCategory) -> bool:
    """True if a driver of `driver_category` may see and bid on a `request_category` request."""
    driver_category = VehicleCategory(driver_category)
    request_category = VehicleCategory(request_category)

    if driver_category == VehicleCategory.MOTO:
        return request_category in (VehicleCategory.MOTO, VehicleCategory.DELIVERY)
    return driver_category == request_category


def eligible_request_categories(driver_category: VehicleCategory) -> List[VehicleCategory]:
    """All request categories a driver of `driver_category` serves (for SQL filters)."""
    return [
        category for category in VehicleCategory
        if is_driver_eligible(driver_category, category)
    ]
