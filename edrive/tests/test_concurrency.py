"""
Concurrency Tests.

Validates that the accept race has exactly one winner. Uses a file-backed
SQLite database with one connection per session, so the two accepts really
run as separate transactions.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from edrive.app.core.exceptions import AlreadyAcceptedError
from edrive.app.db.session import Base
from edrive.app.models.driver_profile import DriverProfile
from edrive.app.models.enums import UserRole, VehicleCategory
from edrive.app.models.ride_enums import RideStatus, DriverStatus
from edrive.app.models.ride_offer import RideOffer
from edrive.app.models.ride_request import RideRequest
from edrive.app.models.user import User
from edrive.app.services import matching


@pytest.fixture
async def race_sessions(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


async def _seed(session_factory, driver_count: int):
    async with session_factory() as db:
        passenger = User(email="p@race.test", full_name="Passenger", hashed_password="x", role=UserRole.PASSENGER)
        drivers = [
            User(email=f"d{i}@race.test", full_name=f"Driver {i}", hashed_password="x", role=UserRole.DRIVER)
            for i in range(driver_count)
        ]
        db.add_all([passenger, *drivers])
        await db.commit()

        for driver in drivers:
            db.add(DriverProfile(
                user_id=driver.id, vehicle_category=VehicleCategory.MOTO,
                vehicle_model="Suzuki GS 150", vehicle_number=f"GAF-{driver.id}", status=DriverStatus.APPROVED
            ))

        ride = RideRequest(
            passenger_id=passenger.id, category=VehicleCategory.MOTO,
            pickup_address="Kassoki Road", pickup_lat=32.07, pickup_lng=73.68,
            destination_address="Railway Station", destination_lat=32.08, destination_lng=73.69,
            fare=Decimal("150.00")
        )
        db.add(ride)
        await db.commit()

        offers = [RideOffer(request_id=ride.id, driver_id=d.id, fare=Decimal(160 + i)) for i, d in enumerate(drivers)]
        db.add_all(offers)
        await db.commit()

        return passenger.id, ride.id, [(o.id, o.driver_id) for o in offers]


async def _accept(session_factory, request_id, offer_id, passenger_id):
    async with session_factory() as db:
        try:
            ride = await matching.accept_offer(db, request_id, offer_id, passenger_id)
            return ("won", ride.driver_id)
        except AlreadyAcceptedError:
            return ("lost", None)


@pytest.mark.asyncio
async def test_concurrent_accepts_have_single_winner(race_sessions):
    passenger_id, request_id, offers = await _seed(race_sessions, driver_count=2)

    results = await asyncio.gather(*[
        _accept(race_sessions, request_id, offer_id, passenger_id) for offer_id, _ in offers
    ])

    winners = [driver_id for outcome, driver_id in results if outcome == "won"]
    assert len(winners) == 1
    assert [outcome for outcome, _ in results].count("lost") == 1

    async with race_sessions() as db:
        ride = (await db.execute(select(RideRequest).where(RideRequest.id == request_id))).scalar_one()
        assert ride.status == RideStatus.ACCEPTED
        assert ride.driver_id == winners[0]
        winning_offer = dict(offers)
        assert winning_offer[ride.accepted_offer_id] == winners[0]


@pytest.mark.asyncio
async def test_many_concurrent_accepts(race_sessions):
    passenger_id, request_id, offers = await _seed(race_sessions, driver_count=5)

    results = await asyncio.gather(*[
        _accept(race_sessions, request_id, offer_id, passenger_id) for offer_id, _ in offers
    ])

    assert sum(1 for outcome, _ in results if outcome == "won") == 1
