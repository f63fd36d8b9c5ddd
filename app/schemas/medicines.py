"""Medicine catalogue schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class MedicineCreate(BaseModel):
    """Schema for adding a medicine name to the catalogue."""

    name: str = Field(..., min_length=1, max_length=200)


class MedicineResponse(BaseModel):
    """Schema for medicine response."""

    id: str
    name: str
    usage_count: int = 0
    created_at: datetime | None = None
