"""Tests for authentication and role selection."""

from unittest.mock import MagicMock

import httpx
import pytest
from firebase_admin import auth as firebase_auth
from httpx import AsyncClient

from app.core.datastore import InMemoryDocumentStore
from app.core.exceptions import UnauthorizedException
from app.core.redis_client import CacheManager
from app.core.security import create_refresh_token, decode_access_token
from app.models.security import ROLE_SECURITY_DOC, SECURITY
from app.models.users import USERS
from app.schemas.auth import SignInRequest
from app.schemas.security import SecurityCodesUpdate
from app.services import auth_service
from app.services.auth_service import AuthService
from app.services.security_service import SecurityCodeService
from tests.conftest import _auth_headers, _seed_user

BASE = "/api/v1/auth"


@pytest.mark.asyncio
async def test_signup_creates_profile_without_role(
    client: AsyncClient,
    store: InMemoryDocumentStore,
    monkeypatch: pytest.MonkeyPatch,
):
    calls = []

    def fake_create_user(email: str, password: str, display_name: str) -> str:
        calls.append((email, display_name))
        return "new-uid"

    monkeypatch.setattr(auth_service, "create_firebase_user", fake_create_user)

    response = await client.post(
        f"{BASE}/signup",
        json={"name": "Nina Nurse", "email": "nina@clinic.test", "password": "correct-horse"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["user"]["id"] == "new-uid"
    assert data["user"]["role"] is None
    assert decode_access_token(data["access_token"])["sub"] == "new-uid"
    assert calls == [("nina@clinic.test", "Nina Nurse")]

    stored = await store.get(USERS, "new-uid")
    assert stored.data["email"] == "nina@clinic.test"
    assert stored.data["role"] is None


@pytest.mark.asyncio
async def test_signup_existing_email_conflicts(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch
):
    def fake_create_user(email: str, password: str, display_name: str) -> str:
        raise firebase_auth.EmailAlreadyExistsError("EMAIL_EXISTS", None, None)

    monkeypatch.setattr(auth_service, "create_firebase_user", fake_create_user)

    response = await client.post(
        f"{BASE}/signup",
        json={"name": "Nina Nurse", "email": "nina@clinic.test", "password": "correct-horse"},
    )

    assert response.status_code == 409
    assert response.json()["error"] == "ConflictException"


@pytest.mark.asyncio
async def test_signup_gives_up_when_profile_cannot_be_saved(
    client: AsyncClient,
    store: InMemoryDocumentStore,
    monkeypatch: pytest.MonkeyPatch,
):
    monkeypatch.setattr(auth_service, "create_firebase_user", lambda *args: "new-uid")
    monkeypatch.setattr(AuthService, "PROFILE_WRITE_DELAY", 0)
    attempts = []

    async def failing_set(*args, **kwargs):
        attempts.append(args)
        raise ConnectionError("datastore down")

    monkeypatch.setattr(store, "set", failing_set)

    response = await client.post(
        f"{BASE}/signup",
        json={"name": "Nina Nurse", "email": "nina@clinic.test", "password": "correct-horse"},
    )

    assert response.status_code == 503
    assert response.json()["error"] == "DatastoreUnavailable"
    assert len(attempts) == AuthService.PROFILE_WRITE_ATTEMPTS


@pytest.mark.asyncio
async def test_signup_rejects_short_password(client: AsyncClient):
    response = await client.post(
        f"{BASE}/signup",
        json={"name": "Nina Nurse", "email": "nina@clinic.test", "password": "short"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_sign_in_success(store: InMemoryDocumentStore, reception_user: dict):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["key"] is not None
        return httpx.Response(200, json={"localId": "reception-uid", "email": "rita@clinic.test"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = AuthService(store, CacheManager(MagicMock(**{"get.return_value": None})), http_client)
        user, tokens = await service.sign_in(
            SignInRequest(email="rita@clinic.test", password="secret")
        )

    assert user["role"] == "reception"
    assert decode_access_token(tokens.access_token)["sub"] == "reception-uid"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "code,message",
    [
        ("EMAIL_NOT_FOUND", "No account found with this email"),
        ("INVALID_PASSWORD", "Incorrect password"),
        ("USER_DISABLED : The user account has been disabled.", "This account has been disabled"),
        ("TOO_MANY_ATTEMPTS_TRY_LATER", "TOO_MANY_ATTEMPTS_TRY_LATER"),
    ],
)
async def test_sign_in_error_messages(store: InMemoryDocumentStore, code: str, message: str):
    transport = httpx.MockTransport(
        lambda request: httpx.Response(400, json={"error": {"message": code}})
    )

    async with httpx.AsyncClient(transport=transport) as http_client:
        service = AuthService(store, CacheManager(MagicMock()), http_client)
        with pytest.raises(UnauthorizedException) as exc_info:
            await service.sign_in(SignInRequest(email="x@clinic.test", password="wrong"))

    assert exc_info.value.message == message


@pytest.mark.asyncio
async def test_firebase_verify_creates_profile_on_first_use(
    client: AsyncClient,
    store: InMemoryDocumentStore,
    monkeypatch: pytest.MonkeyPatch,
):
    async def fake_verify(id_token: str) -> dict:
        return {"uid": "web-uid", "email": "web@clinic.test", "name": "Web User"}

    monkeypatch.setattr(auth_service, "verify_firebase_token", fake_verify)

    response = await client.post(f"{BASE}/firebase/verify", json={"id_token": "token"})

    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Web User"
    assert await store.get(USERS, "web-uid") is not None


@pytest.mark.asyncio
async def test_firebase_verify_rejects_bad_token(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch
):
    async def fake_verify(id_token: str) -> dict:
        raise ValueError("Invalid Firebase ID token: expired")

    monkeypatch.setattr(auth_service, "verify_firebase_token", fake_verify)

    response = await client.post(f"{BASE}/firebase/verify", json={"id_token": "stale"})

    assert response.status_code == 401
    assert response.json()["error"] == "UnauthorizedException"


@pytest.mark.asyncio
async def test_login_is_rate_limited(client: AsyncClient, redis_mock: MagicMock):
    redis_mock.incr.return_value = 100

    response = await client.post(
        f"{BASE}/login", json={"email": "x@clinic.test", "password": "whatever"}
    )

    assert response.status_code == 429
    assert response.json()["error"] == "RateLimitException"


@pytest.mark.asyncio
async def test_role_selection_with_security_code(
    client: AsyncClient,
    store: InMemoryDocumentStore,
):
    await SecurityCodeService(store).update_codes(
        SecurityCodesUpdate(reception="front-desk-42", doctor="white-coat-7"),
        updated_by="doctor-uid",
    )
    await _seed_user(store, "fresh-uid", name="Fresh Hire", email="fresh@clinic.test", role=None)
    headers = _auth_headers("fresh-uid")

    response = await client.post(
        f"{BASE}/role",
        json={"role": "doctor", "security_code": "front-desk-42"},
        headers=headers,
    )
    assert response.status_code == 403
    assert response.json()["error"] == "PermissionDenied"

    response = await client.post(
        f"{BASE}/role",
        json={"role": "reception", "security_code": "front-desk-42"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["role"] == "reception"
    assert (await store.get(USERS, "fresh-uid")).data["role"] == "reception"


@pytest.mark.asyncio
async def test_role_selection_without_configured_codes(
    client: AsyncClient,
    store: InMemoryDocumentStore,
):
    await _seed_user(store, "fresh-uid", name="Fresh Hire", email="fresh@clinic.test", role=None)

    response = await client.post(
        f"{BASE}/role",
        json={"role": "doctor", "security_code": "anything"},
        headers=_auth_headers("fresh-uid"),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_security_codes_are_stored_hashed(
    client: AsyncClient,
    store: InMemoryDocumentStore,
    doctor_headers: dict,
    reception_headers: dict,
):
    response = await client.put(
        "/api/v1/security/codes", json={"doctor": "white-coat-7"}, headers=doctor_headers
    )
    assert response.status_code == 200
    assert response.json()["doctor_configured"] is True
    assert response.json()["reception_configured"] is False
    assert response.json()["last_updated_by"] == "doctor-uid"

    stored = (await store.get(SECURITY, ROLE_SECURITY_DOC)).data
    assert stored["doctor"] != "white-coat-7"
    assert stored["doctor"].startswith("$pbkdf2-sha256$")

    response = await client.get("/api/v1/security/codes", headers=reception_headers)
    assert response.status_code == 403

    response = await client.put("/api/v1/security/codes", json={}, headers=doctor_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_refresh_and_logout(client: AsyncClient, redis_mock: MagicMock):
    refresh = create_refresh_token(data={"sub": "reception-uid"})

    response = await client.post(f"{BASE}/refresh", json={"refresh_token": refresh})
    assert response.status_code == 200
    assert decode_access_token(response.json()["access_token"])["sub"] == "reception-uid"

    response = await client.post(f"{BASE}/logout", json={"refresh_token": refresh})
    assert response.status_code == 204
    key, ttl, value = redis_mock.setex.call_args.args
    assert key == f"blacklist:{refresh}"
    assert ttl > 0

    redis_mock.exists.return_value = 1
    response = await client.post(f"{BASE}/refresh", json={"refresh_token": refresh})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_access_token_cannot_refresh(client: AsyncClient, reception_headers: dict):
    access = reception_headers["Authorization"].removeprefix("Bearer ")

    response = await client.post(f"{BASE}/refresh", json={"refresh_token": access})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_bearer_token(client: AsyncClient):
    response = await client.get(
        "/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "HTTPException"


@pytest.mark.asyncio
async def test_me_for_unknown_user(client: AsyncClient):
    response = await client.get("/api/v1/users/me", headers=_auth_headers("ghost-uid"))

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_doctors(
    client: AsyncClient, reception_headers: dict, doctor_user: dict
):
    response = await client.get("/api/v1/users/doctors", headers=reception_headers)

    assert response.status_code == 200
    assert response.json() == [
        {
            "id": "doctor-uid",
            "name": "Dr. Dana Doctor",
            "email": "dana@clinic.test",
            "specialization": "General Medicine",
            "phone": "",
        }
    ]
