"""
Database seeding script for initial users.

Creates the ADMIN account (admins cannot self-register) plus one demo
passenger and one approved MOTO captain for local development.
Run this script after database is set up but before first use.
"""

import asyncio

from sqlalchemy import select

from edrive.app.db.session import AsyncSessionLocal
from edrive.app.models.user import User
from edrive.app.models.driver_profile import DriverProfile
from edrive.app.models.enums import UserRole, VehicleCategory
from edrive.app.models.ride_enums import DriverStatus
from edrive.app.core.security import get_password_hash

ADMIN_EMAIL = "admin@edrive.pk"


async def seed_users(session_factory=AsyncSessionLocal) -> bool:
    """
    Seed initial users with different roles.

    Creates:
    - 1 ADMIN user
    - 1 PASSENGER user
    - 1 approved DRIVER (MOTO) with a driver profile

    Returns:
        False if the admin already existed and nothing was written
    """
    async with session_factory() as db:
        print("🌱 Starting user seeding...")

        result = await db.execute(select(User).where(User.email == ADMIN_EMAIL))
        if result.scalar_one_or_none():
            print("ℹ️  ADMIN user already exists, skipping seeding")
            return False

        admin_user = User(
            email=ADMIN_EMAIL,
            full_name="eDrive Operations",
            hashed_password=get_password_hash("admin123"),
            role=UserRole.ADMIN,
            city="Hafizabad",
            is_active=True
        )
        passenger = User(
            email="passenger@edrive.pk",
            full_name="Demo Passenger",
            phone_number="+923001234567",
            hashed_password=get_password_hash("passenger123"),
            role=UserRole.PASSENGER,
            city="Hafizabad",
            is_active=True
        )
        captain = User(
            email="captain@edrive.pk",
            full_name="Demo Captain",
            phone_number="+923007654321",
            hashed_password=get_password_hash("captain123"),
            role=UserRole.DRIVER,
            city="Hafizabad",
            is_active=True
        )
        db.add_all([admin_user, passenger, captain])
        await db.flush()

        db.add(DriverProfile(
            user_id=captain.id,
            vehicle_category=VehicleCategory.MOTO,
            vehicle_model="Honda CD 70",
            vehicle_number="GAF-0001",
            vehicle_color="Red",
            status=DriverStatus.APPROVED
        ))
        await db.commit()

        print("\n🎉 User seeding completed successfully!")
        print("\nSeeded users:")
        print(f"  - ADMIN:     {ADMIN_EMAIL} / admin123")
        print("  - PASSENGER: passenger@edrive.pk / passenger123")
        print("  - DRIVER:    captain@edrive.pk / captain123 (MOTO, approved)")
        print("\nNote: other users register via POST /v1/auth/register")
        return True


if __name__ == "__main__":
    asyncio.run(seed_users())
