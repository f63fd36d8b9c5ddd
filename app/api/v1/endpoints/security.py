"""Role security code endpoints."""

from fastapi import APIRouter, status

from app.dependencies import DatabaseSession, DoctorUser
from app.schemas.security import SecurityCodesStatus, SecurityCodesUpdate
from app.services.security_service import SecurityCodeService

router = APIRouter(prefix="/security/codes", tags=["Security"])


@router.get("", response_model=SecurityCodesStatus, status_code=status.HTTP_200_OK)
async def get_security_codes(
    current_user: DoctorUser,
    db: DatabaseSession,
) -> SecurityCodesStatus:
    """Which role codes are configured and when they were last rotated."""
    return await SecurityCodeService(db).get_status()


@router.put("", response_model=SecurityCodesStatus, status_code=status.HTTP_200_OK)
async def update_security_codes(
    data: SecurityCodesUpdate,
    current_user: DoctorUser,
    db: DatabaseSession,
) -> SecurityCodesStatus:
    """Rotate role security codes."""
    return await SecurityCodeService(db).update_codes(data, updated_by=current_user["id"])
