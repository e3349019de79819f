"""
Matching coordinator: the ride state machine.

    pending -> accepted -> ongoing -> completed
    pending | accepted -> cancelled

Every transition is a conditional UPDATE guarded by the expected current
status, so two callers racing on the same request cannot both win. Accept
is the only contended transition: many drivers bid, one passenger picks,
and a retried accept must never bind a second driver.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.config import settings
from edrive.app.core.exceptions import (
    AlreadyAcceptedError,
    InsufficientPermissionsError,
    InvalidTransitionError,
    ResourceNotFoundError,
    ValidationError,
)
from edrive.app.core.reliability import retry_async, TRANSIENT_DB_ERRORS
from edrive.app.models.ride_enums import RideStatus
from edrive.app.models.ride_request import RideRequest
from edrive.app.services.audit import log_event, AuditAction
from edrive.app.services.event_broker import event_broker, pending_topic, request_topic
from edrive.app.services.notification_service import notification_dispatcher
from edrive.app.services.ride_store import get_request, get_offer, list_bidder_ids, serialize_request

logger = logging.getLogger(__name__)

# Allowed moves, keyed by target status
TRANSITIONS = {
    RideStatus.ACCEPTED: (RideStatus.PENDING,),
    RideStatus.ONGOING: (RideStatus.ACCEPTED,),
    RideStatus.COMPLETED: (RideStatus.ONGOING,),
    RideStatus.CANCELLED: (RideStatus.PENDING, RideStatus.ACCEPTED),
}


def can_transition(current: RideStatus, target: RideStatus) -> bool:
    return RideStatus(current) in TRANSITIONS.get(RideStatus(target), ())


async def _read_state(db: AsyncSession, request_id: str) -> RideRequest:
    """Fresh read that overwrites whatever the session has cached."""
    result = await db.execute(
        select(RideRequest)
        .where(RideRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    ride = result.scalar_one_or_none()
    if not ride:
        raise ResourceNotFoundError("Ride request", request_id)
    return ride


async def _compare_and_set_accept(
    db: AsyncSession,
    request_id: str,
    offer_id: str,
    driver_id: int,
    fare: Decimal
) -> int:
    """
    Bind the offer's driver if and only if the request is still pending.

    Takes plain values rather than the offer row: a rollback between attempts
    expires every instance in the session.

    Returns:
        Number of rows updated (1 = this caller won, 0 = someone else did)
    """
    result = await db.execute(
        update(RideRequest)
        .where(
            RideRequest.id == request_id,
            RideRequest.status == RideStatus.PENDING
        )
        .values(
            status=RideStatus.ACCEPTED,
            driver_id=driver_id,
            fare=fare,
            accepted_offer_id=offer_id,
            accepted_at=datetime.utcnow()
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


def _accepted_with(ride: RideRequest, offer_id: str) -> bool:
    return ride.status == RideStatus.ACCEPTED and ride.accepted_offer_id == offer_id


def _accept_conflict(ride: RideRequest):
    if ride.status == RideStatus.CANCELLED:
        return InvalidTransitionError(ride.status.value, RideStatus.ACCEPTED.value)
    return AlreadyAcceptedError(ride.id, ride.status.value)


async def _attempt_accept(
    db: AsyncSession,
    request_id: str,
    offer_id: str,
    driver_id: int,
    fare: Decimal
) -> RideRequest:
    try:
        updated = await _compare_and_set_accept(db, request_id, offer_id, driver_id, fare)
    except TRANSIENT_DB_ERRORS:
        await db.rollback()
        # The write may have landed before the connection dropped
        current = await _read_state(db, request_id)
        if _accepted_with(current, offer_id):
            return current
        if current.status != RideStatus.PENDING:
            raise _accept_conflict(current)
        raise

    current = await _read_state(db, request_id)
    if updated or _accepted_with(current, offer_id):
        return current
    raise _accept_conflict(current)


async def accept_offer(
    db: AsyncSession,
    request_id: str,
    offer_id: str,
    passenger_id: int,
    actor_email: Optional[str] = None
) -> RideRequest:
    """
    Accept one offer on a pending request (owning passenger only).

    Exactly one accept can succeed per request. Transient database errors are
    retried with exponential backoff; after each one the request is re-read
    to find out whether the accept actually applied.

    Raises:
        InsufficientPermissionsError: caller does not own the request
        ResourceNotFoundError: unknown request, or offer not made on it
        AlreadyAcceptedError: another accept won
        InvalidTransitionError: request was cancelled
        TransportError: database unreachable after all retries
    """
    ride = await get_request(db, request_id)
    if ride.passenger_id != passenger_id:
        raise InsufficientPermissionsError("Only the passenger who posted this request can accept offers")

    if ride.status != RideStatus.PENDING:
        raise _accept_conflict(ride)

    offer = await get_offer(db, request_id, offer_id)
    offer_id, driver_id, fare = offer.id, offer.driver_id, offer.fare

    ride = await retry_async(
        _attempt_accept, db, request_id, offer_id, driver_id, fare,
        attempts=settings.accept_retry_attempts,
        base_delay=settings.accept_retry_backoff_seconds,
        on_retry=db.rollback
    )

    logger.info("Request %s accepted: driver %s at Rs %s", ride.id, ride.driver_id, ride.fare)
    await log_event(
        db=db,
        action=AuditAction.OFFER_ACCEPTED,
        actor_id=passenger_id,
        actor_email=actor_email,
        target_user_id=ride.driver_id,
        ride_request_id=ride.id,
        metadata={"offer_id": offer_id, "fare": str(ride.fare)}
    )

    payload = serialize_request(ride)
    event_broker.publish(request_topic(ride.id), "request.accepted", payload)
    event_broker.publish(pending_topic(), "request.closed", payload)

    await notification_dispatcher.offer_accepted(db, ride.driver_id, ride.id, ride.fare)
    losers = [bidder_id for bidder_id in await list_bidder_ids(db, ride.id) if bidder_id != ride.driver_id]
    await notification_dispatcher.ride_taken(db, losers, ride.id)

    return ride


async def _conditional_transition(
    db: AsyncSession,
    ride: RideRequest,
    target: RideStatus,
    expected: Sequence[RideStatus],
    values: dict,
    driver_id: Optional[int] = None,
    applied: Optional[Callable[[RideRequest], bool]] = None
) -> RideRequest:
    """
    Move `ride` to `target` if it is still in one of `expected`.

    Retries transient errors; a retry that finds the target already reached
    by the same actor (`applied`) counts as success.
    """
    if applied is None:
        applied = lambda current: current.status == target  # noqa: E731
    request_id = ride.id

    async def _attempt() -> RideRequest:
        conditions = [RideRequest.id == request_id, RideRequest.status.in_(expected)]
        if driver_id is not None:
            conditions.append(RideRequest.driver_id == driver_id)

        result = await db.execute(
            update(RideRequest)
            .where(*conditions)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        current = await _read_state(db, request_id)
        if result.rowcount or applied(current):
            return current
        raise InvalidTransitionError(current.status.value, target.value)

    return await retry_async(
        _attempt,
        attempts=settings.accept_retry_attempts,
        base_delay=settings.accept_retry_backoff_seconds,
        on_retry=db.rollback
    )


def _require_bound_driver(ride: RideRequest, driver_id: int) -> None:
    if ride.driver_id != driver_id:
        raise InsufficientPermissionsError("This trip is not assigned to you")


async def start_trip(
    db: AsyncSession,
    request_id: str,
    driver_id: int,
    actor_email: Optional[str] = None
) -> RideRequest:
    """
    accepted -> ongoing (bound driver only).

    Raises:
        InvalidTransitionError: request is not ACCEPTED
        InsufficientPermissionsError: caller is not the bound driver
    """
    ride = await get_request(db, request_id)

    if not can_transition(ride.status, RideStatus.ONGOING):
        raise InvalidTransitionError(ride.status.value, RideStatus.ONGOING.value)
    _require_bound_driver(ride, driver_id)

    ride = await _conditional_transition(
        db, ride, RideStatus.ONGOING, TRANSITIONS[RideStatus.ONGOING],
        {"started_at": datetime.utcnow()},
        driver_id=driver_id
    )

    await log_event(
        db=db,
        action=AuditAction.TRIP_STARTED,
        actor_id=driver_id,
        actor_email=actor_email,
        target_user_id=ride.passenger_id,
        ride_request_id=ride.id
    )
    event_broker.publish(request_topic(ride.id), "request.started", serialize_request(ride))
    await notification_dispatcher.trip_started(db, ride.passenger_id, ride.id)
    return ride


async def complete_trip(
    db: AsyncSession,
    request_id: str,
    driver_id: int,
    actor_email: Optional[str] = None
) -> RideRequest:
    """
    ongoing -> completed (bound driver only). The fare is final from here on.

    Raises:
        InvalidTransitionError: request is not ONGOING
        InsufficientPermissionsError: caller is not the bound driver
    """
    ride = await get_request(db, request_id)

    if not can_transition(ride.status, RideStatus.COMPLETED):
        raise InvalidTransitionError(ride.status.value, RideStatus.COMPLETED.value)
    _require_bound_driver(ride, driver_id)

    ride = await _conditional_transition(
        db, ride, RideStatus.COMPLETED, TRANSITIONS[RideStatus.COMPLETED],
        {"completed_at": datetime.utcnow()},
        driver_id=driver_id
    )

    logger.info("Trip %s completed by driver %s (Rs %s)", ride.id, driver_id, ride.fare)
    await log_event(
        db=db,
        action=AuditAction.TRIP_COMPLETED,
        actor_id=driver_id,
        actor_email=actor_email,
        target_user_id=ride.passenger_id,
        ride_request_id=ride.id,
        metadata={"fare": str(ride.fare)}
    )
    event_broker.publish(request_topic(ride.id), "request.completed", serialize_request(ride))
    await notification_dispatcher.trip_completed(db, ride.passenger_id, ride.id, ride.fare)
    return ride


async def cancel_ride(
    db: AsyncSession,
    request_id: str,
    user_id: int,
    reason: str,
    actor_email: Optional[str] = None
) -> RideRequest:
    """
    Cancel a pending or accepted request (passenger or bound driver).

    The bound driver (if any) stays on the record for audit, and the request
    is not re-dispatched.

    Raises:
        ValidationError: blank reason
        InsufficientPermissionsError: caller is neither passenger nor bound driver
        InvalidTransitionError: request is ongoing or already terminal
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required", details={"field": "reason"})

    ride = await get_request(db, request_id)

    if not can_transition(ride.status, RideStatus.CANCELLED):
        raise InvalidTransitionError(ride.status.value, RideStatus.CANCELLED.value)
    if user_id not in (ride.passenger_id, ride.driver_id):
        raise InsufficientPermissionsError("Only the passenger or the assigned driver can cancel this ride")

    was_pending = ride.status == RideStatus.PENDING
    ride = await _conditional_transition(
        db, ride, RideStatus.CANCELLED, TRANSITIONS[RideStatus.CANCELLED],
        {
            "cancel_reason": reason,
            "cancelled_by": user_id,
            "cancelled_at": datetime.utcnow(),
        },
        applied=lambda current: current.status == RideStatus.CANCELLED and current.cancelled_by == user_id
    )

    logger.info("Request %s cancelled by user %s: %s", ride.id, user_id, reason)
    await log_event(
        db=db,
        action=AuditAction.RIDE_CANCELLED,
        actor_id=user_id,
        actor_email=actor_email,
        target_user_id=ride.other_participant(user_id),
        ride_request_id=ride.id,
        metadata={"reason": reason, "from_status": "pending" if was_pending else "accepted"}
    )

    payload = serialize_request(ride)
    event_broker.publish(request_topic(ride.id), "request.cancelled", payload)
    if was_pending:
        event_broker.publish(pending_topic(), "request.closed", payload)

    other = ride.other_participant(user_id)
    if other is not None:
        await notification_dispatcher.ride_cancelled(db, other, ride.id, reason)
    return ride


def subscribe_request(ride: RideRequest):
    """Live status changes of one request."""
    return event_broker.subscribe(request_topic(ride.id))
