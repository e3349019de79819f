"""
Driver API Endpoints.

Onboarding, the pending-request feed, trip history and earnings.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.db.session import get_db
from edrive.app.core.guards import require_driver
from edrive.app.core.exceptions import ValidationError
from edrive.app.models.enums import VehicleCategory
from edrive.app.models.ride_enums import RideStatus
from edrive.app.schemas.driver import DriverOnboarding, DriverProfileResponse, EarningsSummary, EarningsWindow
from edrive.app.schemas.ride_request import RideRequestResponse
from edrive.app.services import ride_store
from edrive.app.services.document_verification import DocumentVerifier, get_document_verifier
from edrive.app.services.driver_service import submit_onboarding, require_profile, require_approved_driver
from edrive.app.services.earnings import earnings_summary, earnings_between

router = APIRouter(prefix="/drivers", tags=["Drivers"])


@router.post("/onboarding", response_model=DriverProfileResponse, status_code=status.HTTP_201_CREATED)
async def onboard_driver(
    data: DriverOnboarding,
    current_user: dict = Depends(require_driver),
    verifier: DocumentVerifier = Depends(get_document_verifier),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit vehicle details and documents for review (Driver only).

    Rejected documents fail the submission with the verifier's reasons.
    The profile waits in PENDING until an admin approves it.
    """
    return await submit_onboarding(db, current_user["user_id"], data, verifier, actor_email=current_user.get("sub"))


@router.get("/me", response_model=DriverProfileResponse)
async def my_driver_profile(
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Current driver profile and approval status."""
    return await require_profile(db, current_user["user_id"])


@router.get("/feed", response_model=List[RideRequestResponse])
async def driver_feed(
    category: Optional[VehicleCategory] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Pending requests this driver may bid on, newest first (approved Driver only)."""
    driver = await require_approved_driver(db, current_user["user_id"])
    return await ride_store.list_pending_for_driver(db, driver, category=category, limit=limit)


@router.get("/trips", response_model=List[RideRequestResponse])
async def driver_trips(
    status_filter: Optional[RideStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Trips this driver was bound to, newest first."""
    return await ride_store.list_driver_trips(db, current_user["user_id"], status=status_filter, limit=limit)


@router.get("/earnings", response_model=EarningsSummary)
async def driver_earnings(
    start: Optional[datetime] = Query(None, description="Window start (inclusive)"),
    end: Optional[datetime] = Query(None, description="Window end (exclusive)"),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Earnings dashboard: today, last 7 days and lifetime.

    With `start` and `end` the response also carries the total for
    completed trips in [start, end). Giving only one of them is a 400.
    """
    if (start is None) != (end is None):
        raise ValidationError(
            "start and end must be given together",
            details={"start": start and start.isoformat(), "end": end and end.isoformat()}
        )

    driver_id = current_user["user_id"]
    summary = await earnings_summary(db, driver_id)

    window = None
    if start is not None:
        total, count = await earnings_between(db, driver_id, start, end)
        window = EarningsWindow(start=start, end=end, total=total, completed_trips=count)

    return EarningsSummary(window=window, **summary)
