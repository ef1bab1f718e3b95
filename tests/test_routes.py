import json

import httpx
import pytest

from slot_reservation.main import app

CUSTOMER = {"X-User-Sub": "C1", "X-User-Roles": json.dumps(["customer"])}
OTHER_CUSTOMER = {"X-User-Sub": "C2", "X-User-Roles": json.dumps(["customer"])}
PROVIDER = {"X-User-Sub": "P1", "X-User-Roles": json.dumps(["provider"])}
ADMIN = {"X-User-Sub": "A1", "X-User-Roles": json.dumps(["admin"])}

HOLD_BODY = {
    "resource_id": "P1",
    "subject_id": "S1",
    "start_at": "2025-01-10T10:00:00Z",
    "duration_minutes": 30,
    "price": "40.00",
}


@pytest.fixture
async def client(service):
    app.state.booking_service = service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def _hold(client, headers=CUSTOMER, **overrides):
    r = await client.post("/reservations/hold", json={**HOLD_BODY, **overrides}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["service"]


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    r = await client.get("/health", headers={"X-Request-Id": "req-123"})
    assert r.headers["X-Request-Id"] == "req-123"


class TestHold:
    @pytest.mark.asyncio
    async def test_hold_returns_token_and_expiry(self, client):
        body = await _hold(client)
        assert body["message"] == "Slot reserved"
        assert body["hold_token"]
        assert body["expires_in_seconds"] == 300

    @pytest.mark.asyncio
    async def test_second_hold_conflicts(self, client):
        await _hold(client)
        r = await client.post("/reservations/hold", json=HOLD_BODY, headers=OTHER_CUSTOMER)
        assert r.status_code == 409
        assert r.json()["code"] in ("SlotLocked", "SlotUnavailable")

    @pytest.mark.asyncio
    async def test_invalid_duration_is_rejected(self, client):
        r = await client.post(
            "/reservations/hold", json={**HOLD_BODY, "duration_minutes": 0}, headers=CUSTOMER
        )
        assert r.status_code == 422

    @pytest.mark.asyncio
    async def test_missing_identity_is_401(self, client):
        r = await client.post("/reservations/hold", json=HOLD_BODY)
        assert r.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_roles_header_is_401(self, client):
        headers = {"X-User-Sub": "C1", "X-User-Roles": "not-json"}
        r = await client.post("/reservations/hold", json=HOLD_BODY, headers=headers)
        assert r.status_code == 401

    @pytest.mark.asyncio
    async def test_provider_cannot_hold(self, client):
        r = await client.post("/reservations/hold", json=HOLD_BODY, headers=PROVIDER)
        assert r.status_code == 403


class TestConfirm:
    @pytest.mark.asyncio
    async def test_confirm_moves_hold_to_pending(self, client):
        hold = await _hold(client)
        r = await client.post(
            f"/reservations/{hold['reservation_id']}/confirm",
            json={"hold_token": hold["hold_token"]},
            headers=CUSTOMER,
        )
        assert r.status_code == 200, r.text
        body = r.json()
        assert body["status"] == "Pending"
        assert body["owner_id"] == "C1"
        assert "hold_token" not in body

    @pytest.mark.asyncio
    async def test_wrong_token_is_409(self, client):
        hold = await _hold(client)
        r = await client.post(
            f"/reservations/{hold['reservation_id']}/confirm",
            json={"hold_token": "nope"},
            headers=CUSTOMER,
        )
        assert r.status_code == 409
        assert r.json()["code"] == "HoldExpiredOrInvalid"

    @pytest.mark.asyncio
    async def test_other_customer_cannot_confirm(self, client):
        hold = await _hold(client)
        r = await client.post(
            f"/reservations/{hold['reservation_id']}/confirm",
            json={"hold_token": hold["hold_token"]},
            headers=OTHER_CUSTOMER,
        )
        assert r.status_code == 409

    @pytest.mark.asyncio
    async def test_expired_hold_is_409(self, client, clock):
        hold = await _hold(client)
        clock.advance(seconds=301)
        r = await client.post(
            f"/reservations/{hold['reservation_id']}/confirm",
            json={"hold_token": hold["hold_token"]},
            headers=CUSTOMER,
        )
        assert r.status_code == 409


class TestCancel:
    @pytest.mark.asyncio
    async def test_owner_cancels(self, client):
        hold = await _hold(client)
        r = await client.post(f"/reservations/{hold['reservation_id']}/cancel", headers=CUSTOMER)
        assert r.status_code == 200
        assert r.json()["status"] == "Cancelled"

        # slot is free again
        await _hold(client, headers=OTHER_CUSTOMER)

    @pytest.mark.asyncio
    async def test_provider_cancels_own_resource(self, client):
        hold = await _hold(client)
        r = await client.post(f"/reservations/{hold['reservation_id']}/cancel", headers=PROVIDER)
        assert r.status_code == 200

    @pytest.mark.asyncio
    async def test_stranger_gets_403(self, client):
        hold = await _hold(client)
        r = await client.post(
            f"/reservations/{hold['reservation_id']}/cancel", headers=OTHER_CUSTOMER
        )
        assert r.status_code == 403
        assert r.json()["code"] == "Unauthorized"

    @pytest.mark.asyncio
    async def test_second_cancel_is_400(self, client):
        hold = await _hold(client)
        await client.post(f"/reservations/{hold['reservation_id']}/cancel", headers=CUSTOMER)
        r = await client.post(f"/reservations/{hold['reservation_id']}/cancel", headers=CUSTOMER)
        assert r.status_code == 400
        assert r.json()["code"] == "InvalidState"

    @pytest.mark.asyncio
    async def test_unknown_reservation_is_404(self, client):
        r = await client.post("/reservations/missing/cancel", headers=CUSTOMER)
        assert r.status_code == 404
        assert r.json()["code"] == "ReservationNotFound"


class TestProviderStatus:
    @pytest.mark.asyncio
    async def test_provider_confirms_then_completes(self, client):
        hold = await _hold(client)
        rid = hold["reservation_id"]
        await client.post(
            f"/reservations/{rid}/confirm", json={"hold_token": hold["hold_token"]}, headers=CUSTOMER
        )

        r = await client.put(f"/reservations/{rid}/status", json={"status": "Confirmed"}, headers=PROVIDER)
        assert r.status_code == 200
        assert r.json()["status"] == "Confirmed"

        r = await client.put(f"/reservations/{rid}/status", json={"status": "Completed"}, headers=PROVIDER)
        assert r.json()["status"] == "Completed"

    @pytest.mark.asyncio
    async def test_held_reservation_cannot_be_decided(self, client):
        hold = await _hold(client)
        r = await client.put(
            f"/reservations/{hold['reservation_id']}/status",
            json={"status": "Confirmed"},
            headers=PROVIDER,
        )
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_customer_cannot_update_status(self, client):
        hold = await _hold(client)
        r = await client.put(
            f"/reservations/{hold['reservation_id']}/status",
            json={"status": "Confirmed"},
            headers=CUSTOMER,
        )
        assert r.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_status_is_422(self, client):
        hold = await _hold(client)
        r = await client.put(
            f"/reservations/{hold['reservation_id']}/status",
            json={"status": "Held"},
            headers=PROVIDER,
        )
        assert r.status_code == 422


class TestDirectBookingAndReap:
    @pytest.mark.asyncio
    async def test_direct_booking_creates_pending_reservation(self, client):
        r = await client.post("/reservations", json=HOLD_BODY, headers=CUSTOMER)
        assert r.status_code == 201, r.text
        assert r.json()["status"] == "Pending"

        r = await client.post("/reservations/hold", json=HOLD_BODY, headers=OTHER_CUSTOMER)
        assert r.status_code == 409

    @pytest.mark.asyncio
    async def test_admin_reaps_expired_holds(self, client, clock):
        await _hold(client)
        clock.advance(seconds=301)

        r = await client.post("/reservations/reap", headers=ADMIN)
        assert r.status_code == 200
        assert r.json() == {"expired": 1}

    @pytest.mark.asyncio
    async def test_reap_requires_admin(self, client):
        r = await client.post("/reservations/reap", headers=CUSTOMER)
        assert r.status_code == 403
