"""Patient schemas for request/response validation."""

from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field, field_validator


class PatientBase(BaseModel):
    """Base patient schema with common fields."""

    full_name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr | None = None
    phone: str = Field(..., min_length=10, max_length=20)
    date_of_birth: date | None = None
    gender: str | None = Field(None, max_length=20)
    guardian: str | None = Field(None, max_length=200)
    blood_group: str | None = Field(None, max_length=5)
    body_weight: float | None = Field(None, gt=0, le=500, description="Weight in kg")
    address: str = Field(..., min_length=5, max_length=500)
    medical_history: str | None = None
    insurance_provider: str | None = Field(None, max_length=200)
    insurance_number: str | None = Field(None, max_length=100)
    notes: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_to_none(cls, v: str | None) -> str | None:
        """The intake form submits an empty string when no email is given."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        """Validate phone number format."""
        cleaned = (
            v.replace("-", "").replace(" ", "").replace("(", "").replace(")", "").replace("+", "")
        )
        if not cleaned.isdigit():
            raise ValueError("Phone number must contain only digits and separators")
        return v


class PatientCreate(PatientBase):
    """Schema for registering a patient."""


class PatientUpdate(BaseModel):
    """Schema for updating a patient."""

    full_name: str | None = Field(None, min_length=2, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, min_length=10, max_length=20)
    date_of_birth: date | None = None
    gender: str | None = Field(None, max_length=20)
    guardian: str | None = Field(None, max_length=200)
    blood_group: str | None = Field(None, max_length=5)
    body_weight: float | None = Field(None, gt=0, le=500)
    address: str | None = Field(None, min_length=5, max_length=500)
    medical_history: str | None = None
    insurance_provider: str | None = Field(None, max_length=200)
    insurance_number: str | None = Field(None, max_length=100)
    notes: str | None = None


class PatientResponse(BaseModel):
    """Schema for patient response."""

    id: str
    full_name: str
    email: str | None = None
    phone: str
    date_of_birth: date | None = None
    gender: str | None = None
    guardian: str | None = None
    blood_group: str | None = None
    body_weight: float | None = None
    address: str
    medical_history: str | None = None
    insurance_provider: str | None = None
    insurance_number: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class PatientListResponse(BaseModel):
    """Schema for patient list response."""

    total: int
    items: list[PatientResponse]
