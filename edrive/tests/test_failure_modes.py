"""
Failure Injection Tests.

Validates resilience against component failures.
"""

import httpx
import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

import edrive.app.core.redis_client as redis_client_module
from edrive.app.core.exceptions import TransportError
from edrive.app.core.reliability import CircuitBreaker, CircuitOpenError, retry_async, backoff_delay
from edrive.app.models.enums import UserRole
from edrive.app.models.notification import Notification
from edrive.app.models.ride_enums import DocumentType
from edrive.app.services.document_verification import HttpDocumentVerifier, MANUAL_REVIEW_REASON
from edrive.app.services.notification_service import NotificationService, notification_dispatcher


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=1)

    async def failing_func():
        raise ValueError("Boom")

    for _ in range(2):
        with pytest.raises(ValueError):
            await cb.call(failing_func)

    # Threshold reached
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_recovers_after_timeout():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=30)

    async def failing_func():
        raise ValueError("Boom")

    async def ok():
        return "ok"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    cb.last_failure_time -= 31
    assert await cb.call(ok) == "ok"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


def test_backoff_doubles():
    assert [backoff_delay(n, 0.05) for n in (1, 2, 3)] == [0.05, 0.1, 0.2]


@pytest.mark.asyncio
async def test_retry_gives_up_with_transport_error():
    calls = []

    async def unreachable():
        calls.append(1)
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    with pytest.raises(TransportError):
        await retry_async(unreachable, attempts=3, base_delay=0)
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_retry_does_not_retry_logic_errors():
    calls = []

    async def broken():
        calls.append(1)
        raise KeyError("offer_id")

    with pytest.raises(KeyError):
        await retry_async(broken, attempts=3, base_delay=0)
    assert len(calls) == 1


def _verifier(handler, **kwargs) -> HttpDocumentVerifier:
    return HttpDocumentVerifier(
        "http://verifier.test/check",
        api_key="k",
        breaker=CircuitBreaker(failure_threshold=2, reset_timeout=60),
        transport=httpx.MockTransport(handler),
        **kwargs
    )


@pytest.mark.asyncio
async def test_verifier_outage_falls_back_to_manual_review():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"detail": "model not loaded"})

    verifier = _verifier(handler)
    for _ in range(3):
        verdict = await verifier.verify_document("uploads/license.jpg", DocumentType.DRIVING_LICENSE)
        assert verdict.valid is True
        assert verdict.manual_review is True
        assert verdict.reason == MANUAL_REVIEW_REASON

    # Third call short-circuited by the open breaker
    assert len(calls) == 2
    assert verifier.breaker.state == "OPEN"


@pytest.mark.asyncio
async def test_verifier_passes_verdicts_through():
    def handler(request):
        assert request.headers["Authorization"] == "Bearer k"
        return httpx.Response(200, json={"valid": False, "reason": ""})

    verdict = await _verifier(handler).verify_document("uploads/cat.jpg", DocumentType.VEHICLE_PHOTO)
    assert verdict.valid is False
    assert verdict.manual_review is False
    assert "Vehicle Photo (with visible plate)" in verdict.reason


@pytest.mark.asyncio
async def test_verifier_garbage_body_means_manual_review():
    def handler(request):
        return httpx.Response(200, json={"label": "license", "score": 0.93})

    verdict = await _verifier(handler).verify_document("uploads/license.jpg", DocumentType.DRIVING_LICENSE)
    assert verdict.manual_review is True


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_the_transition(client, db_session, mocker, make_user, make_ride, make_offer):
    """A broken notification write is logged and the accept still succeeds."""
    passenger, headers = await make_user(UserRole.PASSENGER)
    driver, _ = await make_user(UserRole.DRIVER)
    ride = await make_ride(passenger)
    offer = await make_offer(ride, driver)

    mocker.patch.object(
        NotificationService, "create_notification",
        side_effect=OperationalError("INSERT", {}, Exception("disk full"))
    )

    response = await client.post(f"/v1/requests/{ride.id}/accept", headers=headers, json={"offer_id": offer.id})
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"

    count = await db_session.execute(select(func.count(Notification.id)))
    assert count.scalar() == 0


@pytest.mark.asyncio
async def test_dispatcher_reports_nothing_written_on_failure(db_session, mocker, make_user):
    user, _ = await make_user(UserRole.PASSENGER)
    mocker.patch.object(NotificationService, "create_notification", side_effect=RuntimeError("boom"))

    written = await notification_dispatcher.notify(db_session, [user.id], "Hello", "World")
    assert written == 0


@pytest.mark.asyncio
async def test_redis_outage_fails_open(client, make_user, mocker):
    """Token revocation checks are skipped when Redis is unreachable."""
    _, headers = await make_user(UserRole.PASSENGER)
    mocker.patch.object(
        redis_client_module.redis_client, "exists", side_effect=ConnectionError("redis down")
    )

    response = await client.get("/v1/auth/me", headers=headers)
    assert response.status_code == 200

    mocker.patch.object(redis_client_module.redis_client, "ping", side_effect=ConnectionError("redis down"))
    health = (await client.get("/health")).json()
    assert health["status"] == "degraded"
    assert health["redis"] == "down"
