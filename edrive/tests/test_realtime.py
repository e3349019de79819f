"""
WebSocket relay tests against an in-process socket double.
"""

import asyncio

import pytest
from fastapi import WebSocketDisconnect
from fastapi.websockets import WebSocketState

from conftest import TestingSessionLocal
from edrive.app.api.v1.endpoints.realtime import backfill_and_stream, notification_feed, stream_subscription
from edrive.app.core.dependencies import get_websocket_user
from edrive.app.core.jwt import create_user_token
from edrive.app.models.enums import UserRole
from edrive.app.services.event_broker import EventBroker, event_broker, notifications_topic
from edrive.app.services.notification_service import notification_dispatcher


class FakeWebSocket:
    def __init__(self, query_params=None):
        self.query_params = query_params or {}
        self.application_state = WebSocketState.CONNECTING
        self.sent = []
        self.closed_with = None
        self._incoming = asyncio.Queue()

    async def accept(self):
        self.application_state = WebSocketState.CONNECTED

    async def send_json(self, data):
        self.sent.append(data)

    async def receive_text(self):
        item = await self._incoming.get()
        if item is None:
            self.application_state = WebSocketState.DISCONNECTED
            raise WebSocketDisconnect(code=1000)
        return item

    async def close(self, code=1000, reason=None):
        self.application_state = WebSocketState.DISCONNECTED
        self.closed_with = code

    def client_disconnects(self):
        self._incoming.put_nowait(None)


class FakeSession:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


async def _until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached"
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_snapshot_then_events_then_release():
    broker = EventBroker()
    ws = FakeWebSocket()
    sub = broker.subscribe("chat:req-1")

    relay = asyncio.create_task(stream_subscription(ws, sub, snapshot=[{"text": "old"}]))
    await _until(lambda: len(ws.sent) == 1)
    assert ws.sent[0] == {"type": "snapshot", "topic": "chat:req-1", "data": [{"text": "old"}]}

    broker.publish("chat:req-1", "chat.message", {"text": "new"})
    await _until(lambda: len(ws.sent) == 2)
    assert ws.sent[1]["data"] == {"text": "new"}

    ws.client_disconnects()
    await asyncio.wait_for(relay, timeout=1)

    assert not sub.active
    assert broker.subscriber_count("chat:req-1") == 0
    assert broker.publish("chat:req-1", "chat.message", {"text": "late"}) == 0


@pytest.mark.asyncio
async def test_server_side_unsubscribe_closes_socket():
    broker = EventBroker()
    ws = FakeWebSocket()
    sub = broker.subscribe("presence:req-1")

    relay = asyncio.create_task(stream_subscription(ws, sub))
    await _until(lambda: ws.application_state == WebSocketState.CONNECTED)

    sub.unsubscribe()
    await asyncio.wait_for(relay, timeout=1)
    assert ws.closed_with == 1000


@pytest.mark.asyncio
async def test_socket_without_token_is_refused(db_session):
    ws = FakeWebSocket()
    assert await get_websocket_user(ws, db_session) is None
    assert ws.closed_with == 1008


@pytest.mark.asyncio
async def test_socket_with_bad_token_is_refused(db_session):
    ws = FakeWebSocket({"token": "not-a-jwt"})
    assert await get_websocket_user(ws, db_session) is None
    assert ws.closed_with == 1008


@pytest.mark.asyncio
async def test_events_racing_the_snapshot_are_kept_once():
    broker = EventBroker()
    ws = FakeWebSocket()
    db = FakeSession()
    sub = broker.subscribe("chat:req-1")

    async def load():
        # Both land while the backfill query is running
        broker.publish("chat:req-1", "chat.message", {"id": 2, "text": "in the snapshot"})
        broker.publish("chat:req-1", "chat.message", {"id": 3, "text": "after the snapshot"})
        return [{"id": 1, "text": "hi"}, {"id": 2, "text": "in the snapshot"}]

    relay = asyncio.create_task(backfill_and_stream(ws, db, sub, load))
    await _until(lambda: len(ws.sent) == 2)
    assert db.closed
    assert [item["id"] for item in ws.sent[0]["data"]] == [1, 2]
    assert ws.sent[1]["data"]["id"] == 3

    ws.client_disconnects()
    await asyncio.wait_for(relay, timeout=1)
    assert len(ws.sent) == 2
    assert broker.subscriber_count("chat:req-1") == 0


@pytest.mark.asyncio
async def test_failed_backfill_releases_subscription():
    broker = EventBroker()
    db = FakeSession()
    sub = broker.subscribe("presence:req-1")

    async def load():
        raise RuntimeError("database went away")

    with pytest.raises(RuntimeError):
        await backfill_and_stream(FakeWebSocket(), db, sub, load)
    assert db.closed
    assert broker.subscriber_count("presence:req-1") == 0


@pytest.mark.asyncio
async def test_notification_socket_backfills_unread_then_pushes(db_session, make_user):
    user, _ = await make_user(UserRole.DRIVER)
    user_id = user.id
    await notification_dispatcher.trip_started(db_session, user_id, "req-old")

    ws = FakeWebSocket({"token": create_user_token(user)})
    session = TestingSessionLocal()
    relay = asyncio.create_task(notification_feed(ws, db=session))
    await _until(lambda: len(ws.sent) == 1)

    snapshot = ws.sent[0]
    assert snapshot["type"] == "snapshot"
    assert snapshot["topic"] == notifications_topic(user_id)
    assert [n["metadata_payload"]["request_id"] for n in snapshot["data"]] == ["req-old"]

    await notification_dispatcher.offer_accepted(db_session, user_id, "req-new", "300.00")
    await _until(lambda: len(ws.sent) == 2)
    assert ws.sent[1]["type"] == "notification.created"
    assert ws.sent[1]["data"]["title"] == "Offer Accepted!"

    ws.client_disconnects()
    await asyncio.wait_for(relay, timeout=1)
    assert event_broker.subscriber_count(notifications_topic(user_id)) == 0
