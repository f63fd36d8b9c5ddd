"""Authentication service for Firebase and JWT."""

import asyncio
from datetime import timedelta
from typing import Any

import httpx
import structlog
from firebase_admin import auth as firebase_auth

from app.config import settings
from app.core.datastore import DocumentStore
from app.core.exceptions import (
    ConflictException,
    DatastoreUnavailable,
    PermissionDenied,
    UnauthorizedException,
)
from app.core.firebase import create_firebase_user, verify_firebase_token
from app.core.redis_client import CacheManager
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
)
from app.schemas.auth import SignInRequest, SignUpRequest, Token
from app.schemas.users import StaffRole
from app.services.security_service import SecurityCodeService
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

# Identity Toolkit error codes shown to staff as readable messages
SIGN_IN_ERRORS = {
    "EMAIL_NOT_FOUND": "No account found with this email",
    "INVALID_PASSWORD": "Incorrect password",
    "INVALID_LOGIN_CREDENTIALS": "Incorrect email or password",
    "USER_DISABLED": "This account has been disabled",
}


class AuthService:
    """Authentication service for handling Firebase and JWT operations."""

    SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

    PROFILE_WRITE_ATTEMPTS = 3
    PROFILE_WRITE_DELAY = 1.0

    def __init__(
        self,
        db: DocumentStore,
        cache_manager: CacheManager,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize auth service with the document store and cache manager."""
        self.db = db
        self.cache = cache_manager
        self.users = UserService(db, cache_manager)
        self._http = http_client

    async def sign_up(self, data: SignUpRequest) -> tuple[dict[str, Any], Token]:
        """
        Register an email/password account with no role.

        The profile write is retried before giving up, since the identity
        account already exists at that point.

        Raises:
            ConflictException: If the email is already registered
            DatastoreUnavailable: If the profile cannot be saved
        """
        try:
            uid = await asyncio.to_thread(
                create_firebase_user, data.email, data.password, data.name
            )
        except firebase_auth.EmailAlreadyExistsError:
            raise ConflictException("An account with this email already exists")

        for attempt in range(1, self.PROFILE_WRITE_ATTEMPTS + 1):
            try:
                user = await self.users.create_user(uid, data.name, data.email)
                break
            except Exception as e:
                logger.warning("user_profile_write_failed", user_id=uid, attempt=attempt, error=str(e))
                if attempt == self.PROFILE_WRITE_ATTEMPTS:
                    raise DatastoreUnavailable("Failed to save user data. Please try again later.")
                await asyncio.sleep(self.PROFILE_WRITE_DELAY)

        logger.info("user_signed_up", user_id=uid)
        return user, self.create_tokens(uid)

    async def sign_in(self, data: SignInRequest) -> tuple[dict[str, Any], Token]:
        """
        Sign in with email and password via the Identity Toolkit REST API.

        Raises:
            UnauthorizedException: If the credentials are rejected
        """
        payload = {"email": data.email, "password": data.password, "returnSecureToken": True}
        params = {"key": settings.firebase_web_api_key}

        try:
            if self._http is not None:
                response = await self._http.post(self.SIGN_IN_URL, params=params, json=payload)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.post(self.SIGN_IN_URL, params=params, json=payload)
        except httpx.HTTPError as e:
            logger.error("sign_in_request_failed", error=str(e))
            raise UnauthorizedException("Failed to sign in")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code != 200:
            code = (body.get("error") or {}).get("message", "")
            # Codes may carry a suffix, e.g. "USER_DISABLED : ..."
            code = code.split(" ", 1)[0]
            logger.info("sign_in_rejected", code=code)
            raise UnauthorizedException(SIGN_IN_ERRORS.get(code, code or "Failed to sign in"))

        uid = body["localId"]
        user = await self.users.get_or_create_user(uid, body.get("email", data.email))
        logger.info("user_signed_in", user_id=uid)
        return user, self.create_tokens(uid)

    async def verify_firebase_id_token(self, id_token: str) -> dict:
        """
        Verify Firebase ID token and extract user information.

        Raises:
            UnauthorizedException: If token verification fails
        """
        try:
            return await verify_firebase_token(id_token)
        except ValueError as e:
            raise UnauthorizedException(str(e))

    async def handle_firebase_login(self, id_token: str) -> tuple[dict[str, Any], Token]:
        """Exchange a Firebase ID token for the service's own token pair."""
        claims = await self.verify_firebase_id_token(id_token)

        uid = claims["uid"]
        email = claims.get("email")
        if not email:
            raise UnauthorizedException("Email is required from Firebase token")

        user = await self.users.get_or_create_user(uid, email, claims.get("name"))
        return user, self.create_tokens(uid)

    async def select_role(
        self, user_id: str, role: StaffRole, security_code: str
    ) -> dict[str, Any] | None:
        """
        Assign ``role`` after checking its security code.

        Raises:
            PermissionDenied: If the code does not match
        """
        if not await SecurityCodeService(self.db).verify_code(role, security_code):
            logger.info("role_selection_denied", user_id=user_id, role=role.value)
            raise PermissionDenied("Invalid security code")
        return await self.users.set_role(user_id, role)

    def create_tokens(self, user_id: str) -> Token:
        """
        Create access and refresh tokens for a user.

        Args:
            user_id: Identity-provider uid

        Returns:
            Token pair (access and refresh)
        """
        access_token = create_access_token(
            data={"sub": user_id},
            expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        )

        refresh_token = create_refresh_token(
            data={"sub": user_id},
            expires_delta=timedelta(days=settings.refresh_token_expire_days),
        )

        return Token(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
        )

    def refresh_access_token(self, refresh_token: str) -> Token:
        """
        Create new access token from refresh token.

        Raises:
            UnauthorizedException: If refresh token is invalid or revoked
        """
        payload = decode_refresh_token(refresh_token)

        if payload is None:
            raise UnauthorizedException("Invalid refresh token")

        user_id = payload.get("sub")
        if user_id is None:
            raise UnauthorizedException("Invalid refresh token")

        if self.cache.exists(f"blacklist:{refresh_token}"):
            raise UnauthorizedException("Token has been revoked")

        return self.create_tokens(user_id)

    def revoke_token(self, token: str, ttl: int | None = None) -> None:
        """Revoke a refresh token by adding it to the blacklist until it expires."""
        ttl = ttl or settings.refresh_token_expire_days * 86400
        self.cache.set(f"blacklist:{token}", "1", ttl=ttl)

    def validate_access_token(self, token: str) -> str | None:
        """Return the user ID of a valid access token, None otherwise."""
        payload = decode_access_token(token)
        if payload is None:
            return None
        return payload.get("sub")
