"""
Ride Lifecycle API Endpoints.

Accept, start, complete and cancel. All state changes go through the
matching coordinator, which rejects anything the state machine does not allow.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.db.session import get_db
from edrive.app.core.dependencies import get_current_user
from edrive.app.core.guards import require_passenger, require_driver
from edrive.app.schemas.ride_request import AcceptOfferRequest, CancelRequest, RideRequestResponse
from edrive.app.services import matching

router = APIRouter(prefix="/requests", tags=["Ride Lifecycle"])


@router.post("/{request_id}/accept", response_model=RideRequestResponse)
async def accept_offer(
    data: AcceptOfferRequest,
    request_id: str = Path(..., description="Ride request ID"),
    current_user: dict = Depends(require_passenger),
    db: AsyncSession = Depends(get_db)
):
    """
    Accept one offer (owning Passenger only).

    Binds the offer's driver and fare. If another accept got there first
    the response is 409 ERR_ALREADY_ACCEPTED.
    """
    return await matching.accept_offer(
        db, request_id, data.offer_id, current_user["user_id"], actor_email=current_user.get("sub")
    )


@router.post("/{request_id}/start", response_model=RideRequestResponse)
async def start_trip(
    request_id: str = Path(..., description="Ride request ID"),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Start an accepted trip (bound Driver only)."""
    return await matching.start_trip(db, request_id, current_user["user_id"], actor_email=current_user.get("sub"))


@router.post("/{request_id}/complete", response_model=RideRequestResponse)
async def complete_trip(
    request_id: str = Path(..., description="Ride request ID"),
    current_user: dict = Depends(require_driver),
    db: AsyncSession = Depends(get_db)
):
    """Complete an ongoing trip (bound Driver only)."""
    return await matching.complete_trip(db, request_id, current_user["user_id"], actor_email=current_user.get("sub"))


@router.post("/{request_id}/cancel", response_model=RideRequestResponse)
async def cancel_ride(
    data: CancelRequest,
    request_id: str = Path(..., description="Ride request ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a pending or accepted ride (Passenger or bound Driver).

    A reason is mandatory.
    """
    return await matching.cancel_ride(
        db, request_id, current_user["user_id"], data.reason, actor_email=current_user.get("sub")
    )
