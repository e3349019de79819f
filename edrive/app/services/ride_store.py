"""
Ride request and offer store.

Persistence, lookup and listing of ride requests and driver offers, plus
the realtime feeds drivers and passengers subscribe to. Status changes after
creation belong to services/matching.py.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.exceptions import (
    ActiveRideExistsError,
    InsufficientPermissionsError,
    RequestNotPendingError,
    ResourceNotFoundError,
    ValidationError,
)
from edrive.app.models.driver_profile import DriverProfile
from edrive.app.models.enums import UserRole, VehicleCategory
from edrive.app.models.ride_enums import RideStatus, ACTIVE_RIDE_STATUSES
from edrive.app.models.chat_message import ChatMessage
from edrive.app.models.ride_offer import RideOffer
from edrive.app.models.ride_request import RideRequest
from edrive.app.models.ride_review import RideReview
from edrive.app.models.safety import UserBlock, SafetyReport
from edrive.app.models.trip_presence import TripPresence
from edrive.app.models.user import User
from edrive.app.schemas.ride_request import RideRequestCreate, RideRequestResponse, OfferResponse
from edrive.app.services.audit import log_event, AuditAction
from edrive.app.services.eligibility import is_driver_eligible, eligible_request_categories
from edrive.app.services.event_broker import event_broker, Subscription, pending_topic, offers_topic
from edrive.app.services.notification_service import notification_dispatcher
from edrive.app.services.safety import blocked_user_ids, is_blocked_pair

logger = logging.getLogger(__name__)

MAX_FARE = Decimal("99999999.99")


def validate_fare(fare) -> Decimal:
    """Positive, finite, at most two decimal places after rounding."""
    try:
        value = Decimal(str(fare))
    except (InvalidOperation, ValueError):
        raise ValidationError("Fare must be a number", details={"fare": str(fare)})

    if not value.is_finite() or value <= 0:
        raise ValidationError("Fare must be greater than zero", details={"fare": str(fare)})
    if value > MAX_FARE:
        raise ValidationError("Fare is too large", details={"fare": str(fare)})
    return value.quantize(Decimal("0.01"))


def _validate_place(name: str, address: str, lat: float, lng: float) -> None:
    if not address or not address.strip():
        raise ValidationError(f"{name} address is required", details={"field": name})
    if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
        raise ValidationError(f"{name} coordinates are out of range", details={"field": name, "lat": lat, "lng": lng})


def serialize_request(ride: RideRequest) -> dict:
    return RideRequestResponse.model_validate(ride).model_dump(mode="json")


def serialize_offer(offer: RideOffer) -> dict:
    return OfferResponse.model_validate(offer).model_dump(mode="json")


async def get_request(db: AsyncSession, request_id: str) -> RideRequest:
    """
    Load a ride request.

    Raises:
        ResourceNotFoundError: unknown id
    """
    result = await db.execute(select(RideRequest).where(RideRequest.id == request_id))
    ride = result.scalar_one_or_none()
    if not ride:
        raise ResourceNotFoundError("Ride request", request_id)
    return ride


async def get_active_request(db: AsyncSession, passenger_id: int) -> Optional[RideRequest]:
    result = await db.execute(
        select(RideRequest).where(
            RideRequest.passenger_id == passenger_id,
            RideRequest.status.in_(ACTIVE_RIDE_STATUSES)
        ).order_by(RideRequest.created_at.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def create_request(
    db: AsyncSession,
    passenger_id: int,
    data: RideRequestCreate,
    actor_email: Optional[str] = None
) -> RideRequest:
    """
    Post a new ride or delivery request in PENDING state.

    Validates the whole input before writing anything, then publishes the
    request to the pending feed.

    Raises:
        ValidationError: bad fare, address or coordinates
        ActiveRideExistsError: the passenger already has an open request
    """
    fare = validate_fare(data.fare)
    _validate_place("pickup", data.pickup.address, data.pickup.lat, data.pickup.lng)
    _validate_place("destination", data.destination.address, data.destination.lat, data.destination.lng)

    category = VehicleCategory(data.category)
    if data.delivery_category is not None and category != VehicleCategory.DELIVERY:
        raise ValidationError(
            "delivery_category is only allowed on DELIVERY requests",
            details={"category": category.value}
        )

    active = await get_active_request(db, passenger_id)
    if active:
        raise ActiveRideExistsError(active.id)

    ride = RideRequest(
        passenger_id=passenger_id,
        category=category,
        delivery_category=data.delivery_category,
        instructions=(data.instructions or "").strip(),
        voice_note_ref=data.voice_note_ref,
        pickup_address=data.pickup.address.strip(),
        pickup_lat=data.pickup.lat,
        pickup_lng=data.pickup.lng,
        destination_address=data.destination.address.strip(),
        destination_lat=data.destination.lat,
        destination_lng=data.destination.lng,
        fare=fare,
        status=RideStatus.PENDING,
    )
    db.add(ride)
    await db.commit()
    await db.refresh(ride)

    logger.info("Ride request %s created (%s, Rs %s)", ride.id, category.value, fare)
    await log_event(
        db=db,
        action=AuditAction.RIDE_REQUESTED,
        actor_id=passenger_id,
        actor_email=actor_email,
        ride_request_id=ride.id,
        metadata={"category": category.value, "fare": str(fare)}
    )

    event_broker.publish(pending_topic(), "request.created", serialize_request(ride))
    return ride


def can_view_request(ride: RideRequest, user: dict, driver: Optional[DriverProfile] = None) -> bool:
    """
    Owner, bound driver and admins always; approved eligible drivers while pending.
    """
    user_id = user.get("user_id")
    if user.get("role") == UserRole.ADMIN.value:
        return True
    if user_id in (ride.passenger_id, ride.driver_id):
        return True
    if ride.status == RideStatus.PENDING and driver is not None:
        return is_driver_eligible(driver.vehicle_category, ride.category)
    return False


async def list_pending_for_driver(
    db: AsyncSession,
    driver: DriverProfile,
    category: Optional[VehicleCategory] = None,
    limit: int = 50
) -> List[RideRequest]:
    """
    Pending requests the driver may bid on, newest first.

    Requests from passengers the driver blocked (or who blocked the driver)
    are left out.
    """
    categories = eligible_request_categories(driver.vehicle_category)
    if category is not None:
        categories = [c for c in categories if c == VehicleCategory(category)]
        if not categories:
            return []

    query = select(RideRequest).where(
        RideRequest.status == RideStatus.PENDING,
        RideRequest.category.in_(categories)
    )
    hidden = await blocked_user_ids(db, driver.user_id)
    if hidden:
        query = query.where(RideRequest.passenger_id.not_in(hidden))

    query = query.order_by(RideRequest.created_at.desc(), RideRequest.id).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def list_passenger_requests(
    db: AsyncSession,
    passenger_id: int,
    status: Optional[RideStatus] = None,
    category: Optional[VehicleCategory] = None,
    limit: int = 50
) -> List[RideRequest]:
    """Passenger history, newest first."""
    query = select(RideRequest).where(RideRequest.passenger_id == passenger_id)
    if status is not None:
        query = query.where(RideRequest.status == status)
    if category is not None:
        query = query.where(RideRequest.category == VehicleCategory(category))
    query = query.order_by(RideRequest.created_at.desc()).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def list_driver_trips(
    db: AsyncSession,
    driver_id: int,
    status: Optional[RideStatus] = None,
    limit: int = 50
) -> List[RideRequest]:
    """Requests the driver was bound to (any status past pending), newest first."""
    query = select(RideRequest).where(RideRequest.driver_id == driver_id)
    if status is not None:
        query = query.where(RideRequest.status == status)
    query = query.order_by(RideRequest.accepted_at.desc(), RideRequest.created_at.desc()).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def create_offer(
    db: AsyncSession,
    ride: RideRequest,
    driver: DriverProfile,
    fare,
    driver_name: str = "A captain",
    actor_email: Optional[str] = None
) -> RideOffer:
    """
    Submit a driver's bid on a pending request.

    The pending check is best effort: an offer that slips in while the
    request is being accepted is stale and never honoured by accept.

    Raises:
        RequestNotPendingError: the request no longer takes bids
        InsufficientPermissionsError: vehicle category not eligible, or a block exists
        ValidationError: non-positive fare
    """
    if ride.status != RideStatus.PENDING:
        raise RequestNotPendingError(ride.id, ride.status.value)

    if not is_driver_eligible(driver.vehicle_category, ride.category):
        raise InsufficientPermissionsError(
            f"A {driver.vehicle_category.value} driver cannot bid on {ride.category.value} requests"
        )

    if ride.passenger_id == driver.user_id:
        raise InsufficientPermissionsError("You cannot bid on your own request")

    if await is_blocked_pair(db, driver.user_id, ride.passenger_id):
        raise InsufficientPermissionsError("You cannot bid on this request")

    amount = validate_fare(fare)

    offer = RideOffer(request_id=ride.id, driver_id=driver.user_id, fare=amount)
    db.add(offer)
    await db.commit()
    await db.refresh(offer)

    logger.info("Offer %s on %s by driver %s (Rs %s)", offer.id, ride.id, driver.user_id, amount)
    await log_event(
        db=db,
        action=AuditAction.OFFER_SUBMITTED,
        actor_id=driver.user_id,
        actor_email=actor_email,
        target_user_id=ride.passenger_id,
        ride_request_id=ride.id,
        metadata={"offer_id": offer.id, "fare": str(amount)}
    )

    event_broker.publish(offers_topic(ride.id), "offer.created", serialize_offer(offer))
    await notification_dispatcher.new_offer(db, ride.passenger_id, ride.id, driver_name, amount)
    return offer


async def get_offer(db: AsyncSession, request_id: str, offer_id: str) -> RideOffer:
    """
    Raises:
        ResourceNotFoundError: unknown offer, or offer made on another request
    """
    result = await db.execute(
        select(RideOffer).where(
            RideOffer.id == offer_id,
            RideOffer.request_id == request_id
        )
    )
    offer = result.scalar_one_or_none()
    if not offer:
        raise ResourceNotFoundError("Offer", offer_id)
    return offer


async def list_offers(db: AsyncSession, ride: RideRequest, viewer_id: Optional[int] = None) -> List[RideOffer]:
    """
    Offers on a pending request, oldest first.

    Empty once the request has left PENDING: those offers are stale.
    Offers from drivers blocked by (or blocking) the viewer are hidden.
    """
    if ride.status != RideStatus.PENDING:
        return []

    query = select(RideOffer).where(RideOffer.request_id == ride.id)
    if viewer_id is not None:
        hidden = await blocked_user_ids(db, viewer_id)
        if hidden:
            query = query.where(RideOffer.driver_id.not_in(hidden))

    query = query.order_by(RideOffer.created_at, RideOffer.id)
    result = await db.execute(query)
    return result.scalars().all()


async def list_bidder_ids(db: AsyncSession, request_id: str) -> List[int]:
    result = await db.execute(
        select(RideOffer.driver_id).where(RideOffer.request_id == request_id).distinct()
    )
    return list(result.scalars().all())


async def display_names(db: AsyncSession, user_ids) -> dict:
    """user_id -> full_name for the given ids."""
    ids = [uid for uid in set(user_ids) if uid is not None]
    if not ids:
        return {}
    result = await db.execute(select(User.id, User.full_name).where(User.id.in_(ids)))
    return {uid: name for uid, name in result.all()}


def subscribe_pending(driver_category: VehicleCategory, hidden: Iterable[int] = ()) -> Subscription:
    """
    Live feed of pending-feed events for requests a driver of
    `driver_category` is eligible for.

    Events: request.created (new request) and request.closed (left pending).
    Requests from passengers in `hidden` (see blocked_user_ids) are filtered
    out, as in list_pending_for_driver.
    """
    hidden = frozenset(hidden)

    def _visible(event: dict) -> bool:
        data = event["data"]
        category = data.get("category")
        if category is None or not is_driver_eligible(driver_category, category):
            return False
        return data.get("passenger_id") not in hidden

    return event_broker.subscribe(pending_topic(), predicate=_visible)


def subscribe_offers(ride: RideRequest, hidden: Iterable[int] = ()) -> Subscription:
    """
    Live feed of new offers on a request.

    Offers are only ever published while the request is pending, so the
    stream goes silent once it has been accepted or cancelled. Offers from
    drivers in `hidden` are filtered out.
    """
    hidden = frozenset(hidden)
    predicate = None
    if hidden:
        predicate = lambda event: event["data"].get("driver_id") not in hidden  # noqa: E731
    return event_broker.subscribe(offers_topic(ride.id), predicate=predicate)


async def hard_delete_request(db: AsyncSession, request_id: str, admin: dict) -> None:
    """
    Remove a request and everything keyed by it (admin tooling only).

    Safety records survive with their trip reference cleared.
    """
    ride = await get_request(db, request_id)

    await db.execute(delete(RideOffer).where(RideOffer.request_id == ride.id))
    await db.execute(delete(TripPresence).where(TripPresence.trip_id == ride.id))
    await db.execute(delete(ChatMessage).where(ChatMessage.trip_id == ride.id))
    await db.execute(delete(RideReview).where(RideReview.trip_id == ride.id))
    await db.execute(
        update(UserBlock).where(UserBlock.trip_id == ride.id).values(trip_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(SafetyReport).where(SafetyReport.trip_id == ride.id).values(trip_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(ride)
    await db.commit()

    logger.warning("Ride request %s hard-deleted by admin %s", request_id, admin.get("user_id"))
    await log_event(
        db=db,
        action=AuditAction.RIDE_DELETED,
        actor_id=admin.get("user_id"),
        actor_email=admin.get("sub"),
        target_user_id=ride.passenger_id,
        ride_request_id=request_id,
        metadata={"status": ride.status.value}
    )
    event_broker.publish(pending_topic(), "request.closed", {"id": request_id, "category": ride.category.value})
