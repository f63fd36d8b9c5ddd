import os
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from unittest.mock import MagicMock

# Settings are read at import time; keep tests off Firestore and real email
os.environ.setdefault("DATASTORE_BACKEND", "memory")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.datastore import InMemoryDocumentStore
from app.core.redis_client import get_redis_client
from app.core.security import create_access_token
from app.database import get_db
from app.main import app
from app.models.patients import PATIENTS, patient_to_document
from app.models.users import USERS, user_to_document

# A fixed clinic day well in the future
BOOKING_DAY = date(2030, 3, 14)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Fresh in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def redis_mock() -> MagicMock:
    """Redis stand-in: empty cache, no revoked tokens, first hit of any counter."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.exists.return_value = 0
    mock.incr.return_value = 1
    return mock


@pytest_asyncio.fixture
async def client(
    store: InMemoryDocumentStore, redis_mock: MagicMock
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[InMemoryDocumentStore, None]:
        yield store

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: redis_mock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _seed_user(store: InMemoryDocumentStore, user_id: str, **values) -> dict:
    await store.set(USERS, user_id, user_to_document(values))
    return {"id": user_id, **values}


def _auth_headers(user_id: str) -> dict:
    token = create_access_token(data={"sub": user_id}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def reception_user(store: InMemoryDocumentStore) -> dict:
    """A receptionist's profile."""
    return await _seed_user(
        store, "reception-uid", name="Rita Reception", email="rita@clinic.test", role="reception"
    )


@pytest_asyncio.fixture
async def doctor_user(store: InMemoryDocumentStore) -> dict:
    """A doctor's profile."""
    return await _seed_user(
        store,
        "doctor-uid",
        name="Dr. Dana Doctor",
        email="dana@clinic.test",
        role="doctor",
        specialization="General Medicine",
    )


@pytest.fixture
def reception_headers(reception_user: dict) -> dict:
    """Bearer headers for the receptionist."""
    return _auth_headers(reception_user["id"])


@pytest.fixture
def doctor_headers(doctor_user: dict) -> dict:
    """Bearer headers for the doctor."""
    return _auth_headers(doctor_user["id"])


@pytest.fixture
def sample_patient_data() -> dict:
    """Sample patient registration payload."""
    return {
        "full_name": "Priya Sharma",
        "email": "priya@example.com",
        "phone": "+91 98765 43210",
        "date_of_birth": "1990-05-17",
        "gender": "female",
        "blood_group": "B+",
        "body_weight": 58.5,
        "address": "12 Lake Road, Pune",
    }


@pytest_asyncio.fixture
async def patient(store: InMemoryDocumentStore) -> dict:
    """A registered patient."""
    patient_id = await store.add(
        PATIENTS,
        patient_to_document(
            {"full_name": "Arjun Mehta", "phone": "9876543210", "address": "4 Hill Street"}
        ),
    )
    return {"id": patient_id, "full_name": "Arjun Mehta"}
