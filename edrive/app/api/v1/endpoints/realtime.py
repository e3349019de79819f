"""
Realtime WebSocket endpoints.

Each socket owns exactly one broker subscription, opened after the caller
is authenticated and authorised, and released when the socket closes.
Messages are JSON objects: {"type": ..., "topic": ..., "data": ...}; the
first message is a "snapshot" of the current state.

The subscription is opened before the snapshot is read, so an event
published while the snapshot query runs is queued rather than lost.
Creation events already covered by the snapshot are skipped.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from fastapi.websockets import WebSocketState
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.db.session import get_db
from edrive.app.core.dependencies import get_websocket_user
from edrive.app.core.exceptions import AppException, InsufficientPermissionsError
from edrive.app.models.enums import UserRole
from edrive.app.schemas.notification import NotificationResponse
from edrive.app.schemas.ride_request import RideRequestResponse, OfferResponse
from edrive.app.schemas.trip import ChatMessageResponse, PresenceResponse
from edrive.app.services import chat, presence, ride_store
from edrive.app.services.driver_service import get_profile, require_approved_driver
from edrive.app.services.event_broker import Subscription
from edrive.app.services.matching import subscribe_request
from edrive.app.services.notification_service import NotificationService, subscribe_notifications
from edrive.app.services.safety import blocked_user_ids

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["Realtime"])

# Events that add an item to a list snapshot
CREATION_EVENTS = {"request.created", "offer.created", "chat.message", "notification.created"}


def _already_sent(event: dict, seen_ids: Iterable[Any]) -> bool:
    if event.get("type") not in CREATION_EVENTS:
        return False
    data = event.get("data") or {}
    return data.get("id") in seen_ids


async def _forward(websocket: WebSocket, subscription: Subscription, seen_ids: frozenset) -> None:
    async for event in subscription:
        if websocket.application_state != WebSocketState.CONNECTED:
            break
        if _already_sent(event, seen_ids):
            continue
        await websocket.send_json(event)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Client messages (pings) are ignored
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


async def stream_subscription(
    websocket: WebSocket,
    subscription: Subscription,
    snapshot: Optional[Any] = None,
    seen_ids: Iterable[Any] = ()
) -> None:
    """
    Accept the socket and relay events until either side goes away.

    Creation events whose id is in `seen_ids` were part of the snapshot and
    are not sent again.
    """
    try:
        await websocket.accept()
        if snapshot is not None:
            await websocket.send_json({"type": "snapshot", "topic": subscription.topic, "data": snapshot})

        sender = asyncio.create_task(_forward(websocket, subscription, frozenset(seen_ids)))
        receiver = asyncio.create_task(_wait_for_disconnect(websocket))
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.debug("Stream on %s ended: %s", subscription.topic, task.exception())
    except WebSocketDisconnect:
        pass
    finally:
        subscription.unsubscribe()
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.close()


async def backfill_and_stream(
    websocket: WebSocket,
    db: AsyncSession,
    subscription: Subscription,
    load_snapshot: Callable[[], Awaitable[Any]]
) -> None:
    """
    Read the snapshot with `subscription` already open, then stream.

    The database session is closed before streaming starts; a socket can
    stay open for the whole trip.
    """
    try:
        snapshot = await load_snapshot()
    except BaseException:
        subscription.unsubscribe()
        raise
    finally:
        await db.close()

    seen_ids = ()
    if isinstance(snapshot, list):
        seen_ids = [item["id"] for item in snapshot if isinstance(item, dict) and "id" in item]
    await stream_subscription(websocket, subscription, snapshot, seen_ids)


async def _reject(websocket: WebSocket, exc: AppException) -> None:
    logger.info("WebSocket rejected: %s", exc.message)
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.message)


def _dump(schema, rows) -> list:
    return [schema.model_validate(row).model_dump(mode="json") for row in rows]


@router.websocket("/requests/pending")
async def pending_requests_feed(websocket: WebSocket, db: AsyncSession = Depends(get_db)):
    """New and closed pending requests for an approved driver's vehicle category."""
    user = await get_websocket_user(websocket, db)
    if user is None:
        return
    try:
        driver = await require_approved_driver(db, user["user_id"])
        hidden = await blocked_user_ids(db, user["user_id"])
    except AppException as exc:
        await _reject(websocket, exc)
        return

    subscription = ride_store.subscribe_pending(driver.vehicle_category, hidden)

    async def load():
        return _dump(RideRequestResponse, await ride_store.list_pending_for_driver(db, driver))

    await backfill_and_stream(websocket, db, subscription, load)


@router.websocket("/requests/{request_id}")
async def request_updates(websocket: WebSocket, request_id: str, db: AsyncSession = Depends(get_db)):
    """Status changes of one request."""
    user = await get_websocket_user(websocket, db)
    if user is None:
        return
    try:
        ride = await ride_store.get_request(db, request_id)
        driver = None
        if user.get("role") == UserRole.DRIVER.value:
            driver = await get_profile(db, user["user_id"])
        if not ride_store.can_view_request(ride, user, driver):
            raise InsufficientPermissionsError("You cannot view this request")
    except AppException as exc:
        await _reject(websocket, exc)
        return

    subscription = subscribe_request(ride)

    async def load():
        await db.refresh(ride)
        return ride_store.serialize_request(ride)

    await backfill_and_stream(websocket, db, subscription, load)


@router.websocket("/requests/{request_id}/offers")
async def offer_updates(websocket: WebSocket, request_id: str, db: AsyncSession = Depends(get_db)):
    """New offers on the caller's own pending request."""
    user = await get_websocket_user(websocket, db)
    if user is None:
        return
    try:
        ride = await ride_store.get_request(db, request_id)
        if ride.passenger_id != user["user_id"]:
            raise InsufficientPermissionsError("Only the passenger can follow offers on this request")
        hidden = await blocked_user_ids(db, user["user_id"])
    except AppException as exc:
        await _reject(websocket, exc)
        return

    subscription = ride_store.subscribe_offers(ride, hidden)

    async def load():
        return _dump(OfferResponse, await ride_store.list_offers(db, ride, viewer_id=user["user_id"]))

    await backfill_and_stream(websocket, db, subscription, load)


@router.websocket("/trips/{trip_id}/location")
async def location_updates(websocket: WebSocket, trip_id: str, db: AsyncSession = Depends(get_db)):
    """Location pings of both trip participants."""
    user = await get_websocket_user(websocket, db)
    if user is None:
        return
    try:
        trip = await ride_store.get_request(db, trip_id)
        presence.require_participant(trip, user["user_id"])
    except AppException as exc:
        await _reject(websocket, exc)
        return

    subscription = presence.subscribe_presence(trip)

    async def load():
        return _dump(PresenceResponse, await presence.get_snapshot(db, trip, user["user_id"]))

    await backfill_and_stream(websocket, db, subscription, load)


@router.websocket("/trips/{trip_id}/messages")
async def chat_updates(websocket: WebSocket, trip_id: str, db: AsyncSession = Depends(get_db)):
    """Chat backfill followed by every new message."""
    user = await get_websocket_user(websocket, db)
    if user is None:
        return
    try:
        trip = await ride_store.get_request(db, trip_id)
        chat.require_chat_open(trip, user["user_id"])
    except AppException as exc:
        await _reject(websocket, exc)
        return

    subscription = chat.subscribe_messages(trip)

    async def load():
        return _dump(ChatMessageResponse, await chat.list_messages(db, trip, user["user_id"]))

    await backfill_and_stream(websocket, db, subscription, load)


@router.websocket("/notifications")
async def notification_feed(websocket: WebSocket, db: AsyncSession = Depends(get_db)):
    """Unread notifications, then every new one addressed to the caller."""
    user = await get_websocket_user(websocket, db)
    if user is None:
        return

    subscription = subscribe_notifications(user["user_id"])

    async def load():
        unread = await NotificationService.list_for_user(db, user["user_id"], True, 50)
        return _dump(NotificationResponse, unread)

    await backfill_and_stream(websocket, db, subscription, load)
