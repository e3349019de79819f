"""
Post-trip rating exchange.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.exceptions import DuplicateReviewError, ValidationError
from edrive.app.models.ride_enums import RideStatus
from edrive.app.models.ride_request import RideRequest
from edrive.app.models.ride_review import RideReview
from edrive.app.services.notification_service import notification_dispatcher
from edrive.app.services.safety import resolve_counterpart

logger = logging.getLogger(__name__)

DEFAULT_RATING = 5.0


async def submit_review(
    db: AsyncSession,
    trip: RideRequest,
    reviewer_id: int,
    rating: int,
    comment: Optional[str] = None
) -> RideReview:
    """
    Rate the other participant of a completed trip, once per trip.

    Raises:
        InsufficientPermissionsError: reviewer is not a participant
        ValidationError: trip not completed, or rating out of range
        DuplicateReviewError: reviewer already rated this trip
    """
    reviewee_id = resolve_counterpart(trip, reviewer_id)

    if trip.status != RideStatus.COMPLETED:
        raise ValidationError("Only completed trips can be rated", details={"status": trip.status.value})
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5", details={"rating": rating})

    trip_id, from_driver = trip.id, reviewer_id == trip.driver_id
    review = RideReview(
        trip_id=trip_id,
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        rating=rating,
        comment=(comment or "").strip() or "No comment"
    )
    db.add(review)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateReviewError(trip_id)
    await db.refresh(review)
    logger.info("Trip %s: user %s rated user %s with %s stars", trip_id, reviewer_id, reviewee_id, rating)

    await notification_dispatcher.rating_received(
        db, reviewee_id, trip_id, rating, from_driver=from_driver
    )
    return review


async def get_rating(db: AsyncSession, user_id: int) -> Tuple[float, int]:
    """
    Average rating received and number of reviews.

    Users without reviews get the default of 5.0.
    """
    result = await db.execute(
        select(func.avg(RideReview.rating), func.count(RideReview.id)).where(RideReview.reviewee_id == user_id)
    )
    average, count = result.one()
    if not count:
        return DEFAULT_RATING, 0
    return round(float(average), 1), count
