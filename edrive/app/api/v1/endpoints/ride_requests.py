"""
Ride Request API Endpoints.

Passengers post requests and read the offers drivers make on them;
approved drivers browse the pending feed and bid.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.db.session import get_db
from edrive.app.core.dependencies import get_current_user
from edrive.app.core.exceptions import InsufficientPermissionsError
from edrive.app.core.guards import require_passenger, require_driver
from edrive.app.models.enums import UserRole, VehicleCategory
from edrive.app.models.ride_enums import RideStatus
from edrive.app.schemas.ride_request import (
    RideRequestCreate, RideRequestResponse, OfferCreate, OfferResponse
)
from edrive.app.services import ride_store
from edrive.app.services.driver_service import get_profile, require_approved_driver
from edrive.app.services.reviews import get_rating

router = APIRouter(prefix="/requests", tags=["Ride Requests"])


async def offer_responses(db: AsyncSession, offers) -> List[OfferResponse]:
    """Attach each bidding driver's name and rating."""
    names = await ride_store.display_names(db, [offer.driver_id for offer in offers])
    ratings = {}
    responses = []
    for offer in offers:
        if offer.driver_id not in ratings:
            ratings[offer.driver_id], _ = await get_rating(db, offer.driver_id)
        response = OfferResponse.model_validate(offer)
        response.driver_name = names.get(offer.driver_id)
        response.driver_rating = ratings[offer.driver_id]
        responses.append(response)
    return responses


@router.post("", response_model=RideRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_ride_request(
    data: RideRequestCreate,
    current_user: dict = Depends(require_passenger),
    db: AsyncSession = Depends(get_db)
):
    """
    Post a ride or delivery request (Passenger only).

    The request starts PENDING and is pushed to every eligible driver's feed.
    """
    return await ride_store.create_request(db, current_user["user_id"], data, actor_email=current_user.get("sub"))


@router.get("", response_model=List[RideRequestResponse])
async def list_ride_requests(
    status_filter: Optional[RideStatus] = Query(None, alias="status"),
    category: Optional[VehicleCategory] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    List requests visible to the caller.

    - Drivers: pending requests they are eligible for (the feed); only
      `status=pending` is meaningful.
    - Passengers: their own requests.
    """
    role = current_user.get("role")

    if role == UserRole.DRIVER.value:
        if status_filter not in (None, RideStatus.PENDING):
            return []
        driver = await require_approved_driver(db, current_user["user_id"])
        return await ride_store.list_pending_for_driver(db, driver, category=category, limit=limit)

    return await ride_store.list_passenger_requests(
        db, current_user["user_id"], status=status_filter, category=category, limit=limit
    )


@router.get("/mine", response_model=List[RideRequestResponse])
async def my_ride_requests(
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(require_passenger),
    db: AsyncSession = Depends(get_db)
):
    """Passenger ride history, newest first."""
    return await ride_store.list_passenger_requests(db, current_user["user_id"], limit=limit)


@router.get("/{request_id}", response_model=RideRequestResponse)
async def get_ride_request(
    request_id: str = Path(..., description="Ride request ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get one request (owner, bound driver, eligible driver while pending, or admin)."""
    ride = await ride_store.get_request(db, request_id)

    driver = None
    if current_user.get("role") == UserRole.DRIVER.value:
        driver = await get_profile(db, current_user["user_id"])
    if not ride_store.can_view_request(ride, current_user, driver):
        raise InsufficientPermissionsError("You cannot view this request")
    return ride


@router.post("/{request_id}/offers", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def submit_offer(
    data: OfferCreate,
    request_id: str = Path(..., description="Ride request ID"),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """
    Bid on a pending request (approved Driver only).

    Returns 409 ERR_NOT_PENDING once the request has been accepted or cancelled.
    """
    driver = await require_approved_driver(db, current_user["user_id"])
    ride = await ride_store.get_request(db, request_id)

    offer = await ride_store.create_offer(
        db, ride, driver, data.fare,
        driver_name=current_user.get("full_name") or "A captain",
        actor_email=current_user.get("sub")
    )
    responses = await offer_responses(db, [offer])
    return responses[0]


@router.get("/{request_id}/offers", response_model=List[OfferResponse])
async def list_request_offers(
    request_id: str = Path(..., description="Ride request ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Offers on a pending request.

    The owning passenger sees every bid; a driver sees only their own.
    Empty once the request has left PENDING.
    """
    ride = await ride_store.get_request(db, request_id)
    user_id = current_user["user_id"]

    if user_id == ride.passenger_id or current_user.get("role") == UserRole.ADMIN.value:
        offers = await ride_store.list_offers(db, ride, viewer_id=user_id)
    elif current_user.get("role") == UserRole.DRIVER.value:
        offers = [offer for offer in await ride_store.list_offers(db, ride) if offer.driver_id == user_id]
    else:
        raise InsufficientPermissionsError("You cannot view offers on this request")

    return await offer_responses(db, offers)
