"""Tests for prescriptions and the medicine catalogue."""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient

from app.core.clinic_time import utcnow
from app.core.datastore import InMemoryDocumentStore
from app.models.appointments import APPOINTMENTS, appointment_to_document
from app.models.medicines import MEDICINES
from app.models.prescriptions import PRESCRIPTIONS, prescription_to_document
from app.services.medicine_service import MedicineService
from app.services.prescription_service import PrescriptionService
from tests.conftest import BOOKING_DAY

BASE = "/api/v1/prescriptions"


@pytest_asyncio.fixture
async def appointment(store: InMemoryDocumentStore, patient: dict) -> str:
    """An in-progress appointment for the sample patient."""
    return await store.add(
        APPOINTMENTS,
        appointment_to_document(
            {
                "patient_id": patient["id"],
                "patient_name": patient["full_name"],
                "date": BOOKING_DAY,
                "time": "10:00 AM",
                "reason": "Fever",
                "status": "in-progress",
            }
        ),
    )


@pytest.fixture
def prescription_data(appointment: str) -> dict:
    return {
        "appointment_id": appointment,
        "diagnosis": "Viral fever",
        "medications": [
            {"name": "Paracetamol", "dosage": "500mg", "frequency": "3x daily", "duration": "5 days"},
            {"name": " Cetirizine ", "dosage": "10mg", "frequency": "nightly", "duration": "5 days"},
        ],
        "follow_up": "2030-03-21",
    }


@pytest.mark.asyncio
async def test_create_prescription(
    client: AsyncClient,
    doctor_headers: dict,
    prescription_data: dict,
    patient: dict,
    store: InMemoryDocumentStore,
):
    response = await client.post(f"{BASE}/", json=prescription_data, headers=doctor_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["patient_id"] == patient["id"]
    assert data["patient_name"] == "Arjun Mehta"
    assert data["doctor_id"] == "doctor-uid"
    assert data["doctor_name"] == "Dr. Dana Doctor"
    assert data["follow_up"] == "2030-03-21"

    catalogue = await MedicineService(store).search("")
    assert [m.name for m in catalogue] == ["Cetirizine", "Paracetamol"]


@pytest.mark.asyncio
async def test_reception_cannot_prescribe(
    client: AsyncClient, reception_headers: dict, prescription_data: dict
):
    response = await client.post(f"{BASE}/", json=prescription_data, headers=reception_headers)

    assert response.status_code == 403
    assert response.json()["error"] == "PermissionDenied"


@pytest.mark.asyncio
async def test_prescription_for_unknown_appointment(
    client: AsyncClient, doctor_headers: dict, prescription_data: dict
):
    payload = {**prescription_data, "appointment_id": "nope"}

    response = await client.post(f"{BASE}/", json=payload, headers=doctor_headers)

    assert response.status_code == 404
    assert response.json()["error"] == "AppointmentNotFound"


@pytest.mark.asyncio
async def test_prescription_needs_a_medication(
    client: AsyncClient, doctor_headers: dict, prescription_data: dict
):
    payload = {**prescription_data, "medications": []}

    response = await client.post(f"{BASE}/", json=payload, headers=doctor_headers)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_prescription_lookups(
    client: AsyncClient,
    doctor_headers: dict,
    reception_headers: dict,
    prescription_data: dict,
    appointment: str,
    patient: dict,
):
    created = (
        await client.post(f"{BASE}/", json=prescription_data, headers=doctor_headers)
    ).json()

    response = await client.get(f"{BASE}/appointment/{appointment}", headers=reception_headers)
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]

    response = await client.get(f"{BASE}/appointment/other", headers=reception_headers)
    assert response.status_code == 404

    response = await client.get(f"{BASE}/{created['id']}", headers=reception_headers)
    assert response.json()["diagnosis"] == "Viral fever"

    response = await client.get(f"{BASE}/mine", headers=doctor_headers)
    assert [p["id"] for p in response.json()] == [created["id"]]

    response = await client.get(f"{BASE}/doctor/doctor-uid", headers=reception_headers)
    assert [p["id"] for p in response.json()] == [created["id"]]

    response = await client.get(
        f"/api/v1/patients/{patient['id']}/prescriptions", headers=reception_headers
    )
    assert [p["id"] for p in response.json()] == [created["id"]]


@pytest.mark.asyncio
async def test_update_and_delete_prescription(
    client: AsyncClient,
    doctor_headers: dict,
    prescription_data: dict,
    store: InMemoryDocumentStore,
):
    created = (
        await client.post(f"{BASE}/", json=prescription_data, headers=doctor_headers)
    ).json()

    response = await client.put(
        f"{BASE}/{created['id']}",
        json={
            "notes": "Plenty of fluids",
            "medications": [
                {"name": "Paracetamol", "dosage": "650mg", "frequency": "2x daily", "duration": "3 days"}
            ],
        },
        headers=doctor_headers,
    )
    assert response.status_code == 200
    assert response.json()["notes"] == "Plenty of fluids"
    assert response.json()["diagnosis"] == "Viral fever"
    assert response.json()["medications"][0]["dosage"] == "650mg"

    paracetamol = await MedicineService(store).get_by_name("Paracetamol")
    assert paracetamol.usage_count == 2

    response = await client.delete(f"{BASE}/{created['id']}", headers=doctor_headers)
    assert response.status_code == 204
    assert await store.get(PRESCRIPTIONS, created["id"]) is None


@pytest.mark.asyncio
async def test_patient_history_newest_first_without_index(patient: dict):
    """The unindexed fallback still returns newest first."""
    store = InMemoryDocumentStore(composite_queries=False)
    now = utcnow()
    for offset, diagnosis in ((2, "oldest"), (0, "newest"), (1, "middle")):
        await store.add(
            PRESCRIPTIONS,
            prescription_to_document(
                {
                    "patient_id": patient["id"],
                    "doctor_id": "doctor-uid",
                    "appointment_id": f"a-{offset}",
                    "diagnosis": diagnosis,
                    "medications": [],
                    "created_at": now - timedelta(days=offset),
                }
            ),
        )

    history = await PrescriptionService(store).list_for_patient(patient["id"])

    assert [p.diagnosis for p in history] == ["newest", "middle", "oldest"]


@pytest.mark.asyncio
async def test_medicine_catalogue(
    client: AsyncClient,
    doctor_headers: dict,
    reception_headers: dict,
    store: InMemoryDocumentStore,
):
    for name in ("Amoxicillin", "Azithromycin", "Ibuprofen", "Amoxicillin "):
        response = await client.post("/api/v1/medicines/", json={"name": name}, headers=doctor_headers)
        assert response.status_code == 201

    assert len(await store.query(MEDICINES)) == 3

    response = await client.get(
        "/api/v1/medicines/", params={"q": "AMOX"}, headers=doctor_headers
    )
    assert response.json()[0]["name"] == "Amoxicillin"
    assert response.json()[0]["usage_count"] == 2

    response = await client.get(
        "/api/v1/medicines/", params={"q": "a", "limit": 1}, headers=doctor_headers
    )
    assert [m["name"] for m in response.json()] == ["Amoxicillin"]

    response = await client.get("/api/v1/medicines/", headers=reception_headers)
    assert response.status_code == 403
