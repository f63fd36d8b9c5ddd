"""FastAPI dependencies."""

from collections.abc import Awaitable, Callable
from typing import Annotated, Any

import redis
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.datastore import DocumentStore
from app.core.exceptions import PermissionDenied
from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import decode_access_token
from app.database import get_db
from app.schemas.users import StaffRole
from app.services.user_service import UserService

# Security
security = HTTPBearer()


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(redis_client)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> str:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID (identity-provider uid) from token

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = decode_access_token(credentials.credentials)

    user_id = payload.get("sub") if payload else None
    if not user_id or not isinstance(user_id, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_id


async def get_current_user(
    user_id: Annotated[str, Depends(get_current_user_id)],
    db: Annotated[DocumentStore, Depends(get_db)],
    cache: Annotated[CacheManager, Depends(get_cache_manager)],
) -> dict[str, Any]:
    """
    Get current user's profile.

    Raises:
        HTTPException: If the profile does not exist
    """
    user = await UserService(db, cache).get_user(user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_roles(*roles: StaffRole) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Dependency factory admitting only users holding one of ``roles``."""
    allowed = {role.value for role in roles}

    async def check_role(
        current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    ) -> dict[str, Any]:
        if current_user.get("role") not in allowed:
            raise PermissionDenied(
                f"This action requires the {' or '.join(sorted(allowed))} role"
            )
        return current_user

    return check_role


# Type aliases for dependency injection
DatabaseSession = Annotated[DocumentStore, Depends(get_db)]
CurrentUserId = Annotated[str, Depends(get_current_user_id)]
CurrentUser = Annotated[dict[str, Any], Depends(get_current_user)]
ReceptionUser = Annotated[dict[str, Any], Depends(require_roles(StaffRole.RECEPTION))]
DoctorUser = Annotated[dict[str, Any], Depends(require_roles(StaffRole.DOCTOR))]
StaffUser = Annotated[
    dict[str, Any], Depends(require_roles(StaffRole.RECEPTION, StaffRole.DOCTOR))
]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
RedisClient = Annotated[redis.Redis, Depends(get_redis_client)]
