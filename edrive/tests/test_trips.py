"""
Trip session tests: presence, chat, blocks, reports and reviews.
"""

import asyncio

import pytest
from sqlalchemy import select, func

from conftest import ride_payload
from edrive.app.models.enums import UserRole, VehicleCategory
from edrive.app.models.trip_presence import TripPresence
from edrive.app.services.event_broker import event_broker, presence_topic
from edrive.app.services import presence, ride_store
from edrive.app.services.ride_store import get_request
from edrive.app.services.safety import blocked_user_ids


@pytest.fixture
async def trip(client, make_user, make_ride, make_offer):
    """An accepted CAR trip between Ayesha (passenger) and Kamran (driver)."""
    passenger, passenger_headers = await make_user(UserRole.PASSENGER, full_name="Ayesha")
    driver, driver_headers = await make_user(UserRole.DRIVER, full_name="Kamran")
    ride = await make_ride(passenger)
    offer = await make_offer(ride, driver, fare="320.00")

    response = await client.post(
        f"/v1/requests/{ride.id}/accept", headers=passenger_headers, json={"offer_id": offer.id}
    )
    assert response.status_code == 200

    return {
        "id": ride.id,
        "driver_id": driver.id,
        "passenger": passenger, "passenger_headers": passenger_headers,
        "driver": driver, "driver_headers": driver_headers,
    }


async def _finish(client, trip):
    for step in ("start", "complete"):
        response = await client.post(f"/v1/requests/{trip['id']}/{step}", headers=trip["driver_headers"])
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_location_keeps_latest_ping_per_participant(client, db_session, trip):
    url = f"/v1/trips/{trip['id']}/location"
    for lat in (32.0701, 32.0705, 32.0710):
        response = await client.post(url, headers=trip["driver_headers"], json={"lat": lat, "lng": 73.688, "rotation": 90})
        assert response.status_code == 200
    await client.post(url, headers=trip["passenger_headers"], json={"lat": 32.08, "lng": 73.69})

    rows = await db_session.execute(
        select(func.count(TripPresence.id)).where(TripPresence.trip_id == trip["id"])
    )
    assert rows.scalar() == 2

    snapshot = (await client.get(url, headers=trip["passenger_headers"])).json()
    by_user = {item["user_id"]: item for item in snapshot}
    assert by_user[trip["driver_id"]]["latitude"] == 32.0710
    assert by_user[trip["driver_id"]]["rotation"] == 90
    assert by_user[trip["passenger"].id]["rotation"] is None


@pytest.mark.asyncio
async def test_location_pushes_to_subscribers(db_session, trip):
    driver_id = trip["driver_id"]
    # The trip was accepted through the API; drop the stale pending copy
    db_session.expire_all()
    ride = await get_request(db_session, trip["id"])
    sub = presence.subscribe_presence(ride)
    try:
        await presence.record_location(db_session, ride, driver_id, 32.07, 73.68, 45)
        event = await asyncio.wait_for(sub.get(), timeout=1)
        assert event["type"] == "presence.updated"
        assert event["data"]["user_id"] == driver_id
        assert event["data"]["rotation"] == 45
    finally:
        sub.unsubscribe()
    assert event_broker.subscriber_count(presence_topic(trip["id"])) == 0


@pytest.mark.asyncio
async def test_racing_first_ping_becomes_an_update(client, db_session, monkeypatch, trip):
    """Two first pings from one user: the loser of the insert updates the winner's row."""
    trip_id, driver_id = trip["id"], trip["driver_id"]
    url = f"/v1/trips/{trip_id}/location"
    response = await client.post(url, headers=trip["driver_headers"], json={"lat": 32.0701, "lng": 73.688})
    assert response.status_code == 200

    real_get_presence = presence._get_presence
    lookups = []

    async def missed_first_lookup(db, *args, **kwargs):
        lookups.append(args)
        if len(lookups) == 1:
            return None
        return await real_get_presence(db, *args, **kwargs)

    monkeypatch.setattr(presence, "_get_presence", missed_first_lookup)

    db_session.expire_all()
    ride = await get_request(db_session, trip_id)
    row = await presence.record_location(db_session, ride, driver_id, 32.0799, 73.6901)
    assert row.latitude == 32.0799
    assert row.trip_id == trip_id

    count = await db_session.execute(
        select(func.count(TripPresence.id)).where(TripPresence.trip_id == trip_id)
    )
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_location_rejects_bad_coordinates(client, trip):
    response = await client.post(
        f"/v1/trips/{trip['id']}/location", headers=trip["driver_headers"], json={"lat": 95, "lng": 73.68}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_location_needs_live_trip(client, make_user, make_ride):
    passenger, headers = await make_user(UserRole.PASSENGER)
    ride = await make_ride(passenger)

    response = await client.post(f"/v1/trips/{ride.id}/location", headers=headers, json={"lat": 32.07, "lng": 73.68})
    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_TRIP_INACTIVE"


@pytest.mark.asyncio
async def test_location_after_completion_is_refused(client, trip):
    await _finish(client, trip)
    response = await client.post(
        f"/v1/trips/{trip['id']}/location", headers=trip["driver_headers"], json={"lat": 32.07, "lng": 73.68}
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_outsiders_cannot_touch_the_trip(client, make_user, trip):
    _, stranger_headers = await make_user(UserRole.DRIVER)
    base = f"/v1/trips/{trip['id']}"

    assert (await client.post(f"{base}/location", headers=stranger_headers, json={"lat": 1, "lng": 1})).status_code == 403
    assert (await client.get(f"{base}/location", headers=stranger_headers)).status_code == 403
    assert (await client.post(f"{base}/messages", headers=stranger_headers, json={"text": "hi"})).status_code == 403
    assert (await client.get(f"{base}/messages", headers=stranger_headers)).status_code == 403
    assert (await client.post(f"{base}/block", headers=stranger_headers)).status_code == 403


@pytest.mark.asyncio
async def test_chat_exchange_and_notification(client, trip):
    url = f"/v1/trips/{trip['id']}/messages"
    first = await client.post(url, headers=trip["passenger_headers"], json={"text": "I'm at the main gate"})
    assert first.status_code == 201
    await client.post(url, headers=trip["driver_headers"], json={"text": "2 minutes away"})

    history = (await client.get(url, headers=trip["driver_headers"])).json()
    assert [m["text"] for m in history] == ["I'm at the main gate", "2 minutes away"]
    assert history[0]["sender_id"] == trip["passenger"].id

    notifications = (await client.get("/v1/notifications", headers=trip["driver_headers"])).json()
    chat = [n for n in notifications if n["type"] == "CHAT"]
    assert chat[0]["title"] == "New message from Ayesha"
    assert chat[0]["message"] == "I'm at the main gate"


@pytest.mark.asyncio
async def test_chat_rejects_blank_text(client, trip):
    response = await client.post(
        f"/v1/trips/{trip['id']}/messages", headers=trip["driver_headers"], json={"text": "   "}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_chat_needs_bound_driver(client, make_user, make_ride):
    passenger, headers = await make_user(UserRole.PASSENGER)
    ride = await make_ride(passenger)
    response = await client.post(f"/v1/trips/{ride.id}/messages", headers=headers, json={"text": "anyone?"})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_chat_stays_open_after_completion(client, trip):
    await _finish(client, trip)
    response = await client.post(
        f"/v1/trips/{trip['id']}/messages", headers=trip["passenger_headers"], json={"text": "I left my umbrella"}
    )
    assert response.status_code == 201

    # The request itself takes no more offers
    offers = await client.get(f"/v1/requests/{trip['id']}/offers", headers=trip["passenger_headers"])
    assert offers.json() == []


@pytest.mark.asyncio
async def test_block_hides_passenger_requests(client, make_ride, trip):
    response = await client.post(f"/v1/trips/{trip['id']}/block", headers=trip["driver_headers"])
    assert response.status_code == 201
    assert response.json()["blocked_id"] == trip["passenger"].id

    # Idempotent
    again = await client.post(f"/v1/trips/{trip['id']}/block", headers=trip["driver_headers"])
    assert again.status_code == 201

    await _finish(client, trip)
    new_ride = await make_ride(trip["passenger"])

    feed = (await client.get("/v1/drivers/feed", headers=trip["driver_headers"])).json()
    assert new_ride.id not in [r["id"] for r in feed]

    bid = await client.post(f"/v1/requests/{new_ride.id}/offers", headers=trip["driver_headers"], json={"fare": 300})
    assert bid.status_code == 403


@pytest.mark.asyncio
async def test_block_also_filters_the_live_feed(client, db_session, make_user, trip):
    driver_id, passenger_id = trip["driver_id"], trip["passenger"].id
    await client.post(f"/v1/trips/{trip['id']}/block", headers=trip["driver_headers"])
    await _finish(client, trip)

    hidden = await blocked_user_ids(db_session, driver_id)
    assert hidden == {passenger_id}
    feed = ride_store.subscribe_pending(VehicleCategory.CAR, hidden)
    try:
        blocked = await client.post("/v1/requests", headers=trip["passenger_headers"], json=ride_payload())
        assert blocked.status_code == 201
        other, other_headers = await make_user(UserRole.PASSENGER, full_name="Bilal")
        visible = await client.post("/v1/requests", headers=other_headers, json=ride_payload())
        assert visible.status_code == 201

        event = await asyncio.wait_for(feed.get(), timeout=1)
        assert event["type"] == "request.created"
        assert event["data"]["id"] == visible.json()["id"]
        assert event["data"]["passenger_id"] == other.id
    finally:
        feed.unsubscribe()


@pytest.mark.asyncio
async def test_report_with_known_reason(client, trip):
    response = await client.post(
        f"/v1/trips/{trip['id']}/report",
        headers=trip["passenger_headers"],
        json={"reason": "Asking for extra fare"}
    )
    assert response.status_code == 201
    data = response.json()
    assert data["reported_id"] == trip["driver"].id
    assert data["reason"] == "Asking for extra fare"
    assert data["details"] == "No additional comments"


@pytest.mark.asyncio
async def test_report_with_unknown_reason(client, trip):
    response = await client.post(
        f"/v1/trips/{trip['id']}/report",
        headers=trip["passenger_headers"],
        json={"reason": "Bad music"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_review_once_per_trip(client, trip):
    url = f"/v1/trips/{trip['id']}/reviews"

    early = await client.post(url, headers=trip["passenger_headers"], json={"rating": 5})
    assert early.status_code == 400

    await _finish(client, trip)

    response = await client.post(url, headers=trip["passenger_headers"], json={"rating": 4, "comment": "Smooth ride"})
    assert response.status_code == 201
    assert response.json()["reviewee_id"] == trip["driver"].id

    duplicate = await client.post(url, headers=trip["passenger_headers"], json={"rating": 1})
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "ERR_REVIEW_DUPLICATE"

    # The driver may still rate the passenger
    back = await client.post(url, headers=trip["driver_headers"], json={"rating": 5})
    assert back.status_code == 201

    notifications = (await client.get("/v1/notifications", headers=trip["driver_headers"])).json()
    assert any(n["message"] == "You received a 4-star rating from your Passenger." for n in notifications)

    me = (await client.get("/v1/auth/me", headers=trip["driver_headers"])).json()
    assert me["rating"] == 4.0
    assert me["rating_count"] == 1


@pytest.mark.asyncio
async def test_review_rating_out_of_range(client, trip):
    await _finish(client, trip)
    response = await client.post(f"/v1/trips/{trip['id']}/reviews", headers=trip["passenger_headers"], json={"rating": 6})
    assert response.status_code == 422
