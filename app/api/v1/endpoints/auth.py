"""Authentication endpoints."""

from fastapi import APIRouter, Depends, Request, status

from app.config import settings
from app.core.exceptions import RateLimitException
from app.core.redis_client import RateLimiter
from app.dependencies import CacheManagerDep, CurrentUserId, DatabaseSession, RedisClient
from app.schemas.auth import (
    FirebaseAuthRequest,
    LoginResponse,
    RoleSelectionRequest,
    SignInRequest,
    SignUpRequest,
    Token,
    TokenRefresh,
)
from app.schemas.users import UserResponse
from app.services.auth_service import AuthService

router = APIRouter()


async def limit_login_attempts(request: Request, redis_client: RedisClient) -> None:
    """Throttle sign-in attempts per client address."""
    client = request.client.host if request.client else "unknown"
    limiter = RateLimiter(redis_client)
    if not limiter.check_rate_limit(
        f"login:{client}", limit=settings.login_rate_limit_per_minute, window=60
    ):
        raise RateLimitException("Too many sign-in attempts. Try again in a minute.")


def _login_response(user: dict, tokens: Token) -> LoginResponse:
    return LoginResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/signup",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a staff account",
)
async def signup(
    request: SignUpRequest,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> LoginResponse:
    """
    Create an email/password account.

    The new account has no role yet; the user picks one with
    ``POST /auth/role`` and that role's security code.
    """
    user, tokens = await AuthService(db, cache).sign_up(request)
    return _login_response(user, tokens)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Email/password sign-in",
    dependencies=[Depends(limit_login_attempts)],
)
async def login(
    request: SignInRequest,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> LoginResponse:
    """Sign in with email and password and return API tokens."""
    user, tokens = await AuthService(db, cache).sign_in(request)
    return _login_response(user, tokens)


@router.post(
    "/firebase/verify",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Firebase ID token verification",
    dependencies=[Depends(limit_login_attempts)],
)
async def firebase_verify(
    request: FirebaseAuthRequest,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> LoginResponse:
    """
    Exchange a Firebase ID token for API tokens.

    Used by web sessions already signed in with the Firebase client SDK.
    A profile is created on first use.
    """
    user, tokens = await AuthService(db, cache).handle_firebase_login(request.id_token)
    return _login_response(user, tokens)


@router.post(
    "/role",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Select a staff role",
)
async def select_role(
    request: RoleSelectionRequest,
    user_id: CurrentUserId,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> UserResponse:
    """Claim the doctor or reception role by presenting its security code."""
    user = await AuthService(db, cache).select_role(user_id, request.role, request.security_code)
    return UserResponse.model_validate(user)


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
)
async def refresh_token(
    request: TokenRefresh,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> Token:
    """Issue a new token pair from a valid, unrevoked refresh token."""
    return AuthService(db, cache).refresh_access_token(request.refresh_token)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout and revoke tokens",
)
async def logout(
    request: TokenRefresh,
    db: DatabaseSession,
    cache: CacheManagerDep,
) -> None:
    """Revoke the refresh token."""
    AuthService(db, cache).revoke_token(request.refresh_token)
