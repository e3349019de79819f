"""
Presence feed: latest location of each trip participant.

Only the most recent ping per (trip, user) is kept. Subscribers get every
ping as it arrives.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.exceptions import InsufficientPermissionsError, TripNotActiveError
from edrive.app.models.ride_enums import RideStatus
from edrive.app.models.ride_request import RideRequest
from edrive.app.models.trip_presence import TripPresence
from edrive.app.services.event_broker import event_broker, presence_topic, Subscription

logger = logging.getLogger(__name__)

LIVE_TRIP_STATUSES = (RideStatus.ACCEPTED, RideStatus.ONGOING)


def require_participant(trip: RideRequest, user_id: int) -> None:
    if user_id not in trip.participant_ids():
        raise InsufficientPermissionsError("You are not a participant of this trip")


async def record_location(
    db: AsyncSession,
    trip: RideRequest,
    user_id: int,
    lat: float,
    lng: float,
    rotation: Optional[float] = None
) -> TripPresence:
    """
    Store `user_id`'s latest position on an accepted or ongoing trip.

    Raises:
        InsufficientPermissionsError: caller is not passenger or bound driver
        TripNotActiveError: trip is pending or terminal
    """
    require_participant(trip, user_id)
    if trip.status not in LIVE_TRIP_STATUSES:
        raise TripNotActiveError(trip.id, trip.status.value)

    trip_id = trip.id
    now = datetime.utcnow()
    values = {"latitude": lat, "longitude": lng, "rotation": rotation, "recorded_at": now}

    presence = await _get_presence(db, trip_id, user_id)
    if presence is None:
        presence = TripPresence(trip_id=trip_id, user_id=user_id, **values)
        db.add(presence)
        try:
            await db.commit()
        except IntegrityError:
            # Concurrent first ping from the same user
            await db.rollback()
            await db.execute(
                update(TripPresence)
                .where(TripPresence.trip_id == trip_id, TripPresence.user_id == user_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            presence = await _get_presence(db, trip_id, user_id, refresh=True)
    else:
        for key, value in values.items():
            setattr(presence, key, value)
        await db.commit()

    event_broker.publish(
        presence_topic(trip_id),
        "presence.updated",
        {
            "trip_id": trip_id,
            "user_id": user_id,
            "lat": lat,
            "lng": lng,
            "rotation": rotation,
            "recorded_at": now.isoformat(),
        }
    )
    return presence


async def _get_presence(db: AsyncSession, trip_id: str, user_id: int, refresh: bool = False) -> Optional[TripPresence]:
    query = select(TripPresence).where(
        TripPresence.trip_id == trip_id,
        TripPresence.user_id == user_id
    )
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_snapshot(db: AsyncSession, trip: RideRequest, user_id: int) -> List[TripPresence]:
    """Latest ping of every participant that has sent one."""
    require_participant(trip, user_id)
    result = await db.execute(
        select(TripPresence).where(TripPresence.trip_id == trip.id).order_by(TripPresence.user_id)
    )
    return result.scalars().all()


def subscribe_presence(trip: RideRequest) -> Subscription:
    return event_broker.subscribe(presence_topic(trip.id))
