"""Tests for appointment endpoints."""

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient
from starlette.websockets import WebSocketDisconnect

from app.core.datastore import InMemoryDocumentStore
from app.core.redis_client import get_redis_client
from app.core.security import create_access_token
from app.database import get_db
from app.main import app
from app.models.appointments import APPOINTMENTS
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentStatus,
    AppointmentStatusUpdate,
)
from app.services.appointment_service import AppointmentService
from tests.conftest import BOOKING_DAY

BASE = "/api/v1/appointments"


def _payload(patient: dict, time: str = "09:00 AM", day=BOOKING_DAY) -> dict:
    return {
        "patient_id": patient["id"],
        "date": day.isoformat(),
        "time": time,
        "reason": "Persistent cough",
    }


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_create_appointment(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    """Test booking an appointment."""
    response = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["time"] == "09:00 AM"
    assert data["date"] == BOOKING_DAY.isoformat()
    assert data["patient_name"] == patient["full_name"]
    assert data["created_by"] == "reception-uid"


@pytest.mark.asyncio
async def test_double_booking_returns_conflict(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    """Second booking of a slot gets 409 with the refreshed free slots."""
    first = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)
    assert first.status_code == 201

    response = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "SlotNoLongerAvailable"
    assert body["details"]["time"] == "09:00 AM"
    assert "09:00 AM" not in body["details"]["available_slots"]
    assert len(body["details"]["available_slots"]) == 17


@pytest.mark.asyncio
async def test_create_requires_reason(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    payload = {**_payload(patient), "reason": "   "}

    response = await client.post(f"{BASE}/", json=payload, headers=reception_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_rejects_unknown_time(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    response = await client.post(
        f"{BASE}/", json=_payload(patient, time="teatime"), headers=reception_headers
    )
    assert response.status_code == 422

    response = await client.post(
        f"{BASE}/", json=_payload(patient, time="06:00 PM"), headers=reception_headers
    )
    assert response.status_code == 422
    assert response.json()["error"] == "ValidationException"


@pytest.mark.asyncio
async def test_doctor_cannot_book(
    client: AsyncClient,
    doctor_headers: dict,
    patient: dict,
) -> None:
    response = await client.post(f"{BASE}/", json=_payload(patient), headers=doctor_headers)

    assert response.status_code == 403
    assert response.json()["error"] == "PermissionDenied"


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient) -> None:
    response = await client.get(f"{BASE}/")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_user_without_role_is_denied(
    client: AsyncClient,
    store: InMemoryDocumentStore,
) -> None:
    await store.set("users", "new-uid", {"name": "New Hire", "email": "new@clinic.test"})
    token = create_access_token(data={"sub": "new-uid"})

    response = await client.get(f"{BASE}/", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_available_slots_endpoint(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    created = await client.post(
        f"{BASE}/", json=_payload(patient, "10:00 AM"), headers=reception_headers
    )
    appointment_id = created.json()["id"]

    response = await client.get(
        f"{BASE}/slots", params={"date": BOOKING_DAY.isoformat()}, headers=reception_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total_slots"] == 17
    assert "10:00 AM" not in data["slots"]

    response = await client.get(
        f"{BASE}/slots",
        params={"date": BOOKING_DAY.isoformat(), "exclude_appointment_id": appointment_id},
        headers=reception_headers,
    )
    assert "10:00 AM" in response.json()["slots"]
    assert response.json()["total_slots"] == 18


@pytest.mark.asyncio
async def test_booked_slots_and_grid_endpoints(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    created = await client.post(
        f"{BASE}/", json=_payload(patient, "02:00 PM"), headers=reception_headers
    )

    booked = await client.get(
        f"{BASE}/slots/booked", params={"date": BOOKING_DAY.isoformat()}, headers=reception_headers
    )
    assert booked.status_code == 200
    assert booked.json()["booked"] == [{"appointment_id": created.json()["id"], "time": "02:00 PM"}]

    grid = await client.get(f"{BASE}/slots/grid", headers=reception_headers)
    assert grid.status_code == 200
    assert len(grid.json()["slots"]) == 18


@pytest.mark.asyncio
async def test_list_appointments(
    client: AsyncClient,
    reception_headers: dict,
    doctor_headers: dict,
    patient: dict,
) -> None:
    """Both roles can list; filters narrow the result."""
    await client.post(f"{BASE}/", json=_payload(patient, "09:00 AM"), headers=reception_headers)
    await client.post(f"{BASE}/", json=_payload(patient, "11:00 AM"), headers=reception_headers)

    response = await client.get(f"{BASE}/", headers=doctor_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [item["time"] for item in data["items"]] == ["09:00 AM", "11:00 AM"]

    response = await client.get(
        f"{BASE}/", params={"status": "cancelled"}, headers=reception_headers
    )
    assert response.json()["total"] == 0

    response = await client.get(
        f"{BASE}/", params={"patient_id": patient["id"]}, headers=reception_headers
    )
    assert response.json()["total"] == 2


@pytest.mark.asyncio
async def test_get_appointment_not_found(
    client: AsyncClient,
    reception_headers: dict,
) -> None:
    response = await client.get(f"{BASE}/does-not-exist", headers=reception_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "AppointmentNotFound"


@pytest.mark.asyncio
async def test_cancel_then_rebook(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    created = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)
    appointment_id = created.json()["id"]

    response = await client.patch(
        f"{BASE}/{appointment_id}/status",
        json={"status": "cancelled"},
        headers=reception_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    rebooked = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_invalid_transition_returns_conflict(
    client: AsyncClient,
    reception_headers: dict,
    doctor_headers: dict,
    patient: dict,
) -> None:
    created = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)
    appointment_id = created.json()["id"]

    completed = await client.patch(
        f"{BASE}/{appointment_id}/status",
        json={"status": "completed", "notes": "Prescribed rest"},
        headers=doctor_headers,
    )
    assert completed.status_code == 200
    assert completed.json()["notes"] == "Prescribed rest"

    response = await client.patch(
        f"{BASE}/{appointment_id}/status",
        json={"status": "checked-in"},
        headers=reception_headers,
    )
    assert response.status_code == 409
    assert response.json()["error"] == "InvalidStatusTransition"


@pytest.mark.asyncio
async def test_reception_cannot_write_visit_notes(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    created = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)

    response = await client.patch(
        f"{BASE}/{created.json()['id']}/status",
        json={"status": "checked-in", "notes": "Looks fine"},
        headers=reception_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_reschedule(
    client: AsyncClient,
    reception_headers: dict,
    doctor_headers: dict,
    patient: dict,
) -> None:
    """Moving D1 -> D2 frees the old slot and takes the new one."""
    next_day = BOOKING_DAY.replace(day=BOOKING_DAY.day + 1)
    created = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)
    appointment_id = created.json()["id"]

    response = await client.put(
        f"{BASE}/{appointment_id}",
        json={"date": next_day.isoformat(), "time": "03:30 PM"},
        headers=doctor_headers,
    )
    assert response.status_code == 200
    assert response.json()["date"] == next_day.isoformat()
    assert response.json()["time"] == "03:30 PM"

    old_day = await client.get(
        f"{BASE}/slots", params={"date": BOOKING_DAY.isoformat()}, headers=reception_headers
    )
    new_day = await client.get(
        f"{BASE}/slots", params={"date": next_day.isoformat()}, headers=reception_headers
    )
    assert "09:00 AM" in old_day.json()["slots"]
    assert "03:30 PM" not in new_day.json()["slots"]


@pytest.mark.asyncio
async def test_delete_appointment(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
    store: InMemoryDocumentStore,
) -> None:
    created = await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)
    appointment_id = created.json()["id"]

    response = await client.delete(f"{BASE}/{appointment_id}", headers=reception_headers)

    assert response.status_code == 204
    assert await store.get(APPOINTMENTS, appointment_id) is None


@pytest.mark.asyncio
async def test_stats_endpoint(
    client: AsyncClient,
    reception_headers: dict,
    patient: dict,
) -> None:
    await client.post(f"{BASE}/", json=_payload(patient), headers=reception_headers)

    response = await client.get(f"{BASE}/stats", headers=reception_headers)

    assert response.status_code == 200
    assert response.json() == {"total": 1, "completed": 0, "waiting": 1, "cancelled": 0}


def _sync_client(store: InMemoryDocumentStore, redis_mock) -> TestClient:
    async def override_get_db():
        yield store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: redis_mock
    return TestClient(app)


@pytest.mark.asyncio
async def test_watch_streams_changes(
    store: InMemoryDocumentStore,
    redis_mock,
    reception_headers: dict,
    patient: dict,
) -> None:
    service = AppointmentService(store)
    appointment = await service.create_appointment(
        AppointmentCreate(patient_id=patient["id"], date=BOOKING_DAY, time="09:00 AM", reason="x")
    )
    token = reception_headers["Authorization"].split(" ", 1)[1]

    client = _sync_client(store, redis_mock)
    try:
        with client.websocket_connect(f"{BASE}/{appointment.id}/watch?token={token}") as ws:
            first = ws.receive_json()
            assert first["event"] == "snapshot"
            assert first["appointment"]["status"] == "scheduled"

            await service.update_appointment_status(
                appointment.id, AppointmentStatusUpdate(status=AppointmentStatus.CHECKED_IN)
            )
            second = ws.receive_json()
            assert second["appointment"]["status"] == "checked-in"
    finally:
        app.dependency_overrides.clear()

    assert store.watcher_count(APPOINTMENTS, appointment.id) == 0


def test_watch_rejects_bad_token(store: InMemoryDocumentStore, redis_mock) -> None:
    client = _sync_client(store, redis_mock)
    try:
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"{BASE}/anything/watch?token=not-a-jwt") as ws:
                ws.receive_json()
    finally:
        app.dependency_overrides.clear()
