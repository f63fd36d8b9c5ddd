"""User endpoints."""

from fastapi import APIRouter

from app.core.exceptions import NotFoundException
from app.dependencies import CacheManagerDep, CurrentUser, DatabaseSession, StaffUser
from app.schemas.users import DoctorSummary, StaffRole, UserResponse, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(current_user: CurrentUser):
    """Get current user's profile (role may still be unset)."""
    return UserResponse.model_validate(current_user)


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    user_data: UserUpdate,
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
    current_user: CurrentUser,
):
    """Update current user's name, phone or specialization."""
    user = await UserService(db, cache_manager).update_user(current_user["id"], user_data)

    if not user:
        raise NotFoundException("User not found")

    return UserResponse.model_validate(user)


@router.get("/doctors", response_model=list[DoctorSummary])
async def list_doctors(
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
    current_user: StaffUser,
):
    """Doctors of the clinic."""
    return await UserService(db, cache_manager).list_doctors()


@router.get("/role/{role}", response_model=list[UserResponse])
async def list_users_by_role(
    role: StaffRole,
    cache_manager: CacheManagerDep,
    db: DatabaseSession,
    current_user: StaffUser,
):
    """Staff members holding ``role``."""
    users = await UserService(db, cache_manager).list_users_by_role(role)
    return [UserResponse.model_validate(user) for user in users]
