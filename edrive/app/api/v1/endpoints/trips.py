"""
Trip Session API Endpoints.

Live location, chat, safety actions and ratings for an accepted request.
The trip id is the ride request id.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.db.session import get_db
from edrive.app.core.dependencies import get_current_user
from edrive.app.schemas.trip import (
    LocationPing, PresenceResponse,
    ChatMessageCreate, ChatMessageResponse,
    BlockResponse, ReportCreate, ReportResponse,
    ReviewCreate, ReviewResponse
)
from edrive.app.services import chat, presence, reviews, safety
from edrive.app.services.ride_store import get_request

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("/{trip_id}/location", response_model=PresenceResponse)
async def post_location(
    ping: LocationPing,
    trip_id: str = Path(..., description="Trip (ride request) ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Publish the caller's current position (participants, accepted/ongoing trips only)."""
    trip = await get_request(db, trip_id)
    return await presence.record_location(
        db, trip, current_user["user_id"], ping.lat, ping.lng, ping.rotation
    )


@router.get("/{trip_id}/location", response_model=List[PresenceResponse])
async def get_locations(
    trip_id: str = Path(..., description="Trip (ride request) ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Latest known position of each participant."""
    trip = await get_request(db, trip_id)
    return await presence.get_snapshot(db, trip, current_user["user_id"])


@router.post("/{trip_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    message: ChatMessageCreate,
    trip_id: str = Path(..., description="Trip (ride request) ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Send a chat message to the other participant."""
    trip = await get_request(db, trip_id)
    return await chat.post_message(
        db, trip, current_user["user_id"], message.text,
        sender_name=current_user.get("full_name") or "Your trip partner"
    )


@router.get("/{trip_id}/messages", response_model=List[ChatMessageResponse])
async def get_messages(
    trip_id: str = Path(..., description="Trip (ride request) ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Whole conversation, oldest first."""
    trip = await get_request(db, trip_id)
    return await chat.list_messages(db, trip, current_user["user_id"])


@router.post("/{trip_id}/block", response_model=BlockResponse, status_code=status.HTTP_201_CREATED)
async def block_other_party(
    trip_id: str = Path(..., description="Trip (ride request) ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Block the other participant of this trip."""
    trip = await get_request(db, trip_id)
    return await safety.block_user(db, trip, current_user["user_id"], actor_email=current_user.get("sub"))


@router.post("/{trip_id}/report", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def report_other_party(
    report: ReportCreate,
    trip_id: str = Path(..., description="Trip (ride request) ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Report the other participant of this trip."""
    trip = await get_request(db, trip_id)
    return await safety.report_user(
        db, trip, current_user["user_id"], report.reason, report.details,
        actor_email=current_user.get("sub")
    )


@router.post("/{trip_id}/reviews", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def rate_other_party(
    review: ReviewCreate,
    trip_id: str = Path(..., description="Trip (ride request) ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Rate the other participant of a completed trip (once)."""
    trip = await get_request(db, trip_id)
    return await reviews.submit_review(db, trip, current_user["user_id"], review.rating, review.comment)
