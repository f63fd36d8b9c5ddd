"""Medicine catalogue endpoints."""

from fastapi import APIRouter, Query, status

from app.dependencies import DatabaseSession, DoctorUser
from app.schemas.medicines import MedicineCreate, MedicineResponse
from app.services.medicine_service import MedicineService

router = APIRouter(prefix="/medicines", tags=["Medicines"])


@router.get("/", response_model=list[MedicineResponse], status_code=status.HTTP_200_OK)
async def search_medicines(
    current_user: DoctorUser,
    db: DatabaseSession,
    q: str = Query("", description="Substring of the medicine name"),
    limit: int = Query(MedicineService.DEFAULT_SEARCH_LIMIT, ge=1, le=50),
) -> list[MedicineResponse]:
    """Autocomplete medicine names."""
    return await MedicineService(db).search(q, limit)


@router.post("/", response_model=MedicineResponse, status_code=status.HTTP_201_CREATED)
async def add_medicine(
    data: MedicineCreate,
    current_user: DoctorUser,
    db: DatabaseSession,
) -> MedicineResponse:
    """Add a medicine name, or bump the usage count of a known one."""
    return await MedicineService(db).add_medicine(data.name)
