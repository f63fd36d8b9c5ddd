"""User schemas for request/response validation."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class StaffRole(str, Enum):
    """Portal a staff member works in."""

    DOCTOR = "doctor"
    RECEPTION = "reception"


class UserUpdate(BaseModel):
    """Schema for updating the current user's profile."""

    name: str | None = Field(None, min_length=2, max_length=200)
    phone: str | None = Field(None, max_length=20)
    specialization: str | None = Field(None, max_length=200)


class UserResponse(BaseModel):
    """User schema for API responses."""

    id: str
    name: str
    email: str | None = None
    role: StaffRole | None = None
    specialization: str | None = None
    phone: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class DoctorSummary(BaseModel):
    """Doctor entry for pickers and prescription headers."""

    id: str
    name: str
    email: str | None = None
    specialization: str = ""
    phone: str = ""
