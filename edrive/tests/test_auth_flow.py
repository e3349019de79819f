"""
Integration tests for the Authentication Flow.

Verifies Register -> Login -> Me -> Logout and account suspension.
"""

from datetime import timedelta

import pytest
from conftest import TestingSessionLocal
from edrive.app.core.jwt import create_user_token
from edrive.app.models.enums import UserRole
from edrive.seed_users import seed_users


@pytest.mark.asyncio
async def test_admin_registration_blocked(client):
    """ADMIN role cannot be created via API."""
    response = await client.post("/v1/auth/register", json={
        "email": "admin@test.com",
        "full_name": "Admin",
        "password": "password123",
        "role": "ADMIN"
    })
    assert response.status_code == 403
    assert "Admin users cannot be registered" in response.json()["message"]


@pytest.mark.asyncio
async def test_register_login_me(client):
    response = await client.post("/v1/auth/register", json={
        "email": "Ayesha@Test.com",
        "full_name": "Ayesha Khan",
        "password": "password123"
    })
    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "PASSENGER"
    assert data["email"] == "ayesha@test.com"

    response = await client.post("/v1/auth/login", json={"email": "ayesha@test.com", "password": "password123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["full_name"] == "Ayesha Khan"
    # No reviews yet
    assert me.json()["rating"] == 5.0
    assert me.json()["rating_count"] == 0


@pytest.mark.asyncio
async def test_duplicate_email_rejected(client):
    payload = {"email": "dup@test.com", "full_name": "First", "password": "password123"}
    assert (await client.post("/v1/auth/register", json=payload)).status_code == 201

    response = await client.post("/v1/auth/register", json=payload)
    assert response.status_code == 400
    assert response.json()["message"] == "Email already registered"


@pytest.mark.asyncio
async def test_register_rejects_unknown_fields(client):
    response = await client.post("/v1/auth/register", json={
        "email": "x@test.com",
        "full_name": "X",
        "password": "password123",
        "is_admin": True
    })
    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_wrong_password(client):
    await client.post("/v1/auth/register", json={
        "email": "bilal@test.com", "full_name": "Bilal", "password": "password123", "role": "DRIVER"
    })
    response = await client.post("/v1/auth/login", json={"email": "bilal@test.com", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_missing_token_rejected(client):
    response = await client.get("/v1/auth/me")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_logout_revokes_token(client, make_user):
    _, headers = await make_user(UserRole.PASSENGER)

    assert (await client.get("/v1/auth/me", headers=headers)).status_code == 200

    response = await client.post("/v1/auth/logout", headers=headers)
    assert response.status_code == 200
    assert response.json()["revoked"] is True

    response = await client.get("/v1/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["message"] == "Token has been revoked"


@pytest.mark.asyncio
async def test_suspended_user_loses_access_immediately(client, make_user):
    """Suspension must take effect before the token expires."""
    _, admin_headers = await make_user(UserRole.ADMIN)
    user, user_headers = await make_user(UserRole.PASSENGER)

    response = await client.post(
        f"/v1/admin/users/{user.id}/suspend",
        headers=admin_headers,
        json={"reason": "Fraudulent bookings"}
    )
    assert response.status_code == 200

    response = await client.get("/v1/auth/me", headers=user_headers)
    assert response.status_code == 401

    response = await client.post(f"/v1/admin/users/{user.id}/reactivate", headers=admin_headers, json={})
    assert response.status_code == 200
    assert (await client.get("/v1/auth/me", headers=user_headers)).status_code == 200


@pytest.mark.asyncio
async def test_non_admin_cannot_use_admin_api(client, make_user):
    _, headers = await make_user(UserRole.PASSENGER)
    response = await client.get("/v1/admin/users", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_seeded_accounts_can_log_in(client):
    assert await seed_users(TestingSessionLocal) is True
    assert await seed_users(TestingSessionLocal) is False

    response = await client.post("/v1/auth/login", json={"email": "admin@edrive.pk", "password": "admin123"})
    assert response.status_code == 200
    assert response.json()["role"] == "ADMIN"

    captain = await client.post("/v1/auth/login", json={"email": "captain@edrive.pk", "password": "captain123"})
    headers = {"Authorization": f"Bearer {captain.json()['access_token']}"}
    profile = (await client.get("/v1/drivers/me", headers=headers)).json()
    assert profile["status"] == "approved"
    assert profile["vehicle_category"] == "MOTO"


@pytest.mark.asyncio
async def test_expired_token_rejected(client, make_user):

    user, _ = await make_user(UserRole.PASSENGER)
    token = create_user_token(user, expires_delta=timedelta(minutes=-5))

    response = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_health_reports_redis(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["redis"] == "up"
    assert "X-Correlation-ID" in response.headers
