"""
In-process event broker for realtime subscriptions.

Replaces ambient snapshot listeners with explicit subscription handles:
a subscriber gets a Subscription bound to one topic (and optional filter),
iterates it for events, and calls unsubscribe() when done. After
unsubscribe() returns, the handle never yields another event.

Topics used by the dispatch services:
    requests:pending         new / closed pending requests (drivers' feed)
    request:{id}             status changes of one request
    offers:{id}              new offers on one request
    presence:{trip_id}       location pings of a trip
    chat:{trip_id}           chat messages of a trip
    notifications:{user_id}  notifications addressed to one user
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Set

from edrive.app.core.config import settings

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """Handle for one subscriber on one topic."""

    def __init__(
        self,
        broker: "EventBroker",
        topic: str,
        predicate: Optional[Callable[[dict], bool]] = None,
        maxsize: int = 100,
    ):
        self.topic = topic
        self._broker = broker
        self._predicate = predicate
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.active = True
        self.dropped = 0

    def deliver(self, event: dict) -> bool:
        """Queue an event for this subscriber. Returns False if filtered out or closed."""
        if not self.active:
            return False
        if self._predicate is not None and not self._predicate(event):
            return False

        if self._queue.full():
            # Slow consumer: drop the oldest event rather than block publishers
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning("Subscriber on %s is lagging, dropped %s event(s)", self.topic, self.dropped)
        self._queue.put_nowait(event)
        return True

    async def get(self) -> Optional[dict]:
        """Wait for the next event; None once unsubscribed."""
        if not self.active:
            return None
        item = await self._queue.get()
        if item is _CLOSED or not self.active:
            return None
        return item

    def unsubscribe(self) -> None:
        """Detach from the broker; pending and future events are discarded."""
        if not self.active:
            return
        self.active = False
        self._broker._remove(self)

        while not self._queue.empty():
            self._queue.get_nowait()
        # Wake up a consumer blocked in get()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> dict:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class EventBroker:
    """Topic-based fanout to Subscription handles."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscriptions: Dict[str, Set[Subscription]] = {}

    def subscribe(self, topic: str, predicate: Optional[Callable[[dict], bool]] = None) -> Subscription:
        subscription = Subscription(self, topic, predicate, maxsize=self.queue_size)
        self._subscriptions.setdefault(topic, set()).add(subscription)
        logger.debug("Subscribed to %s (%s active)", topic, len(self._subscriptions[topic]))
        return subscription

    def publish(self, topic: str, event_type: str, data: Any) -> int:
        """Fan an event out to the topic's subscribers. Returns how many received it."""
        event = {"type": event_type, "topic": topic, "data": data}
        delivered = 0
        for subscription in list(self._subscriptions.get(topic, ())):
            if subscription.deliver(event):
                delivered += 1
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, ()))

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions.get(subscription.topic)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscriptions[subscription.topic]


def pending_topic() -> str:
    return "requests:pending"


def request_topic(request_id: str) -> str:
    return f"request:{request_id}"


def offers_topic(request_id: str) -> str:
    return f"offers:{request_id}"


def presence_topic(trip_id: str) -> str:
    return f"presence:{trip_id}"


def chat_topic(trip_id: str) -> str:
    return f"chat:{trip_id}"


def notifications_topic(user_id: int) -> str:
    return f"notifications:{user_id}"


# Global instance shared by services and websocket endpoints
event_broker = EventBroker(queue_size=settings.subscription_queue_size)
