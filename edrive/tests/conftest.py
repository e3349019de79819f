"""
Centralized Test Configuration.
"""

import itertools
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from edrive.app.main import app
from edrive.app.db.session import get_db, Base
from edrive.app.core.jwt import create_user_token
from edrive.app.core.security import get_password_hash
import edrive.app.core.redis_client as redis_client_module
from edrive.app.models.driver_profile import DriverProfile
from edrive.app.models.enums import UserRole, VehicleCategory
from edrive.app.models.ride_enums import DriverStatus
from edrive.app.models.ride_offer import RideOffer
from edrive.app.models.ride_request import RideRequest
from edrive.app.models.user import User
from edrive.app.schemas.driver import DocumentVerdict
from edrive.app.services.document_verification import DocumentVerifier, get_document_verifier

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        return 1 if key in self.store else 0

    async def flushdb(self):
        self.store = {}


class StubVerifier(DocumentVerifier):
    """Document verifier returning a fixed verdict per document type."""

    def __init__(self, verdicts=None, default=None):
        self.verdicts = verdicts or {}
        self.default = default or DocumentVerdict(valid=True, reason="Looks good")
        self.calls = []

    async def verify_document(self, image_ref, expected_type):
        self.calls.append((image_ref, expected_type))
        return self.verdicts.get(expected_type, self.default)


@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def stub_verifier():
    """Install a StubVerifier for the onboarding endpoint."""
    verifier = StubVerifier()
    app.dependency_overrides[get_document_verifier] = lambda: verifier
    yield verifier
    app.dependency_overrides.pop(get_document_verifier, None)


_emails = itertools.count(1)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def make_user(db_session):
    """
    Factory: await make_user(role, ...) -> (User, auth headers).

    Drivers get a profile for `vehicle_category` in `driver_status`.
    """
    async def _make(
        role=UserRole.PASSENGER,
        full_name=None,
        vehicle_category=VehicleCategory.CAR,
        driver_status=DriverStatus.APPROVED
    ):
        n = next(_emails)
        user = User(
            email=f"{role.value.lower()}{n}@test.com",
            full_name=full_name or f"{role.value.title()} {n}",
            hashed_password=get_password_hash("password123"),
            role=role,
            is_active=True
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)

        if role == UserRole.DRIVER and vehicle_category is not None:
            db_session.add(DriverProfile(
                user_id=user.id,
                vehicle_category=vehicle_category,
                vehicle_model="Honda CD 70",
                vehicle_number=f"GAF-{n:03d}",
                status=driver_status
            ))
            await db_session.commit()

        return user, auth_headers(user)

    return _make


@pytest.fixture
def make_ride(db_session):
    """Factory: await make_ride(passenger, category=..., fare=...) -> pending RideRequest."""
    async def _make(passenger: User, category=VehicleCategory.CAR, fare="250.00"):
        ride = RideRequest(
            passenger_id=passenger.id,
            category=category,
            instructions="",
            pickup_address="Fawara Chowk, Hafizabad",
            pickup_lat=32.0712,
            pickup_lng=73.6880,
            destination_address="DHQ Hospital, Hafizabad",
            destination_lat=32.0801,
            destination_lng=73.6925,
            fare=Decimal(fare)
        )
        db_session.add(ride)
        await db_session.commit()
        await db_session.refresh(ride)
        return ride

    return _make


@pytest.fixture
def make_offer(db_session):
    """Factory: await make_offer(ride, driver, fare) -> RideOffer."""
    async def _make(ride: RideRequest, driver: User, fare="300.00"):
        offer = RideOffer(request_id=ride.id, driver_id=driver.id, fare=Decimal(fare))
        db_session.add(offer)
        await db_session.commit()
        await db_session.refresh(offer)
        return offer

    return _make


def ride_payload(category="CAR", fare=250, **overrides) -> dict:
    payload = {
        "category": category,
        "pickup": {"address": "Fawara Chowk, Hafizabad", "lat": 32.0712, "lng": 73.6880},
        "destination": {"address": "DHQ Hospital, Hafizabad", "lat": 32.0801, "lng": 73.6925},
        "fare": fare,
        "instructions": "Near the main gate",
    }
    payload.update(overrides)
    return payload
