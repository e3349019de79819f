"""
Eligibility filter tests.
"""

import itertools

import pytest
from edrive.app.models.enums import VehicleCategory
from edrive.app.services.eligibility import is_driver_eligible, eligible_request_categories

MOTO, RICKSHAW, CAR, DELIVERY = (
    VehicleCategory.MOTO, VehicleCategory.RICKSHAW, VehicleCategory.CAR, VehicleCategory.DELIVERY
)


@pytest.mark.parametrize("driver,request_category", list(itertools.product(VehicleCategory, VehicleCategory)))
def test_rule_holds_for_every_pair(driver, request_category):
    expected = driver == request_category or (driver == MOTO and request_category in (MOTO, DELIVERY))
    assert is_driver_eligible(driver, request_category) is expected


def test_moto_drivers_also_carry_deliveries():
    assert eligible_request_categories(MOTO) == [MOTO, DELIVERY]


def test_other_vehicles_serve_their_own_category_only():
    assert eligible_request_categories(CAR) == [CAR]
    assert eligible_request_categories(RICKSHAW) == [RICKSHAW]
    assert eligible_request_categories(DELIVERY) == [DELIVERY]
    assert not is_driver_eligible(CAR, DELIVERY)


def test_accepts_raw_strings():
    assert is_driver_eligible("MOTO", "DELIVERY")
    assert not is_driver_eligible("RICKSHAW", "CAR")
