"""Prescription schemas for request/response validation."""

from datetime import date, datetime

from pydantic import BaseModel, Field


class Medication(BaseModel):
    """One prescribed medication line."""

    name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)
    duration: str = Field(..., min_length=1, max_length=100)


class PrescriptionCreate(BaseModel):
    """Schema for writing a prescription for an appointment."""

    appointment_id: str = Field(..., min_length=1)
    diagnosis: str = Field(..., min_length=1, max_length=2000)
    medications: list[Medication] = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=2000)
    follow_up: date | None = None


class PrescriptionUpdate(BaseModel):
    """Schema for amending a prescription."""

    diagnosis: str | None = Field(None, min_length=1, max_length=2000)
    medications: list[Medication] | None = Field(None, min_length=1)
    notes: str | None = Field(None, max_length=2000)
    follow_up: date | None = None


class PrescriptionResponse(BaseModel):
    """Schema for prescription response."""

    id: str
    patient_id: str
    patient_name: str | None = None
    doctor_id: str
    doctor_name: str | None = None
    appointment_id: str
    diagnosis: str
    medications: list[Medication]
    notes: str | None = None
    follow_up: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
