"""
Chat relay: append-only messages between the two participants of a trip.

Chat stays open after the trip ends so the parties can sort out lost
items and the like; it needs a bound driver though.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.exceptions import TripNotActiveError, ValidationError
from edrive.app.models.chat_message import ChatMessage
from edrive.app.models.ride_request import RideRequest
from edrive.app.schemas.trip import ChatMessageResponse
from edrive.app.services.event_broker import event_broker, chat_topic, Subscription
from edrive.app.services.notification_service import notification_dispatcher
from edrive.app.services.presence import require_participant

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000


def require_chat_open(trip: RideRequest, user_id: int) -> None:
    require_participant(trip, user_id)
    if trip.driver_id is None:
        raise TripNotActiveError(trip.id, trip.status.value)


async def post_message(
    db: AsyncSession,
    trip: RideRequest,
    sender_id: int,
    text: str,
    sender_name: str = "Your trip partner"
) -> ChatMessage:
    """
    Append a message and push it to subscribers.

    Raises:
        InsufficientPermissionsError: sender is not a participant
        TripNotActiveError: no driver bound yet
        ValidationError: blank or overlong text
    """
    require_chat_open(trip, sender_id)

    text = (text or "").strip()
    if not text:
        raise ValidationError("Message text is required", details={"field": "text"})
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationError("Message is too long", details={"max_length": MAX_MESSAGE_LENGTH})

    message = ChatMessage(trip_id=trip.id, sender_id=sender_id, text=text)
    db.add(message)
    await db.commit()
    await db.refresh(message)

    event_broker.publish(
        chat_topic(trip.id),
        "chat.message",
        ChatMessageResponse.model_validate(message).model_dump(mode="json")
    )

    recipient = trip.other_participant(sender_id)
    await notification_dispatcher.chat_message(db, recipient, trip.id, sender_name, text)
    return message


async def list_messages(db: AsyncSession, trip: RideRequest, user_id: int) -> List[ChatMessage]:
    """Full history, in send order."""
    require_chat_open(trip, user_id)
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.trip_id == trip.id)
        .order_by(ChatMessage.created_at, ChatMessage.id)
    )
    return result.scalars().all()


def subscribe_messages(trip: RideRequest) -> Subscription:
    return event_broker.subscribe(chat_topic(trip.id))
