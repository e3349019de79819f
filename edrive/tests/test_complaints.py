"""
Complaints to HQ and the admin metrics dashboard.
"""

from datetime import datetime, timedelta

import pytest

from edrive.app.models.enums import UserRole
from edrive.app.models.ride_enums import RideStatus, DriverStatus
from edrive.app.services.metrics import MetricsService

NOW = datetime(2026, 3, 14, 15, 30)

COMPLAINT = {
    "subject": "Overcharging at the bus stand",
    "message": "A rickshaw driver near Fawara Chowk asked for double the agreed fare.",
    "target_name": "Unknown rickshaw",
    "target_phone": "+923001112223",
}


@pytest.fixture
async def admin_headers(make_user):
    _, headers = await make_user(UserRole.ADMIN, full_name="Ops")
    return headers


@pytest.mark.asyncio
async def test_passenger_files_complaint(client, make_user, admin_headers):
    passenger, headers = await make_user(UserRole.PASSENGER, full_name="Hina")
    response = await client.post("/v1/complaints", headers=headers, json=COMPLAINT)
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "open"
    assert data["reporter_id"] == passenger.id
    assert data["target_email"] is None

    mine = (await client.get("/v1/complaints/mine", headers=headers)).json()
    assert [c["id"] for c in mine] == [data["id"]]

    queue = (await client.get("/v1/admin/complaints", headers=admin_headers)).json()
    assert queue[0]["subject"] == COMPLAINT["subject"]

    trail = (await client.get("/v1/admin/audit-logs", headers=admin_headers, params={"action": "COMPLAINT_FILED"})).json()
    assert trail["total"] == 1


@pytest.mark.asyncio
async def test_drivers_can_complain_too(client, make_user):
    _, headers = await make_user(UserRole.DRIVER)
    response = await client.post("/v1/complaints", headers=headers, json={**COMPLAINT, "target_name": "Passenger at DHQ"})
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_complaint_needs_subject_target_and_message(client, make_user):
    _, headers = await make_user(UserRole.PASSENGER)
    response = await client.post("/v1/complaints", headers=headers, json={**COMPLAINT, "target_name": "  "})
    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION_001"
    assert body["details"]["fields"] == ["target_name"]

    missing = await client.post("/v1/complaints", headers=headers, json={"subject": "x", "message": "y"})
    assert missing.status_code == 422


@pytest.mark.asyncio
async def test_admin_moves_complaint_through_statuses(client, make_user, admin_headers):
    _, headers = await make_user(UserRole.PASSENGER)
    complaint = (await client.post("/v1/complaints", headers=headers, json=COMPLAINT)).json()
    url = f"/v1/admin/complaints/{complaint['id']}"

    investigating = await client.patch(url, headers=admin_headers, json={"status": "investigating"})
    assert investigating.status_code == 200
    assert investigating.json()["status"] == "investigating"

    closed = await client.patch(url, headers=admin_headers, json={"status": "closed", "note": "Driver warned"})
    assert closed.json()["resolution_note"] == "Driver warned"

    open_only = (await client.get("/v1/admin/complaints", headers=admin_headers, params={"status": "open"})).json()
    assert open_only == []

    mine = (await client.get("/v1/complaints/mine", headers=headers)).json()
    assert mine[0]["status"] == "closed"


@pytest.mark.asyncio
async def test_unknown_complaint_is_404(client, admin_headers):
    response = await client.patch("/v1/admin/complaints/999", headers=admin_headers, json={"status": "closed"})
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_complaint_admin_routes_need_admin(client, make_user):
    _, headers = await make_user(UserRole.PASSENGER)
    assert (await client.get("/v1/admin/complaints", headers=headers)).status_code == 403
    assert (await client.get("/v1/admin/metrics", headers=headers)).status_code == 403


@pytest.mark.asyncio
async def test_admins_do_not_file_complaints(client, admin_headers):
    response = await client.post("/v1/complaints", headers=admin_headers, json=COMPLAINT)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_dispatch_metrics(db_session, make_user, make_ride):
    passenger, _ = await make_user(UserRole.PASSENGER)
    driver, _ = await make_user(UserRole.DRIVER)
    await make_user(UserRole.DRIVER, driver_status=DriverStatus.PENDING)

    await make_ride(passenger)  # pending
    for fare, completed_at in (("300.00", NOW - timedelta(hours=1)), ("200.50", NOW - timedelta(days=2))):
        ride = await make_ride(passenger, fare=fare)
        ride.driver_id = driver.id
        ride.status = RideStatus.COMPLETED
        ride.completed_at = completed_at
    cancelled = await make_ride(passenger, fare="999.00")
    cancelled.status = RideStatus.CANCELLED
    await db_session.commit()

    metrics = await MetricsService.get_dispatch_metrics(db_session, now=NOW)
    assert metrics.rides_by_status == {
        "pending": 1, "accepted": 0, "ongoing": 0, "completed": 2, "cancelled": 1
    }
    assert metrics.completed_revenue == 500.5
    assert metrics.today_completed == 1
    assert metrics.today_revenue == 300.0
    assert metrics.live_rides == 1
    assert metrics.users_by_role == {"ADMIN": 0, "PASSENGER": 1, "DRIVER": 2}
    assert metrics.drivers_awaiting_review == 1
    assert metrics.open_complaints == 0


@pytest.mark.asyncio
async def test_metrics_endpoint_counts_open_complaints(client, make_user, admin_headers):
    _, headers = await make_user(UserRole.PASSENGER)
    await client.post("/v1/complaints", headers=headers, json=COMPLAINT)

    response = await client.get("/v1/admin/metrics", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["open_complaints"] == 1
    assert data["users_by_role"]["ADMIN"] == 1
    assert set(data["rides_by_status"]) == {"pending", "accepted", "ongoing", "completed", "cancelled"}
