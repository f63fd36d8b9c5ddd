"""Appointment schemas for request/response validation."""

from datetime import date as Date
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from app.core.slot_grid import normalize_slot_label


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CHECKED_IN = "checked-in"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that occupy a time slot
ACTIVE_STATUSES: tuple[str, ...] = (
    AppointmentStatus.SCHEDULED.value,
    AppointmentStatus.CHECKED_IN.value,
    AppointmentStatus.IN_PROGRESS.value,
    AppointmentStatus.COMPLETED.value,
)

# Statuses counted as "waiting" on the dashboard
WAITING_STATUSES: tuple[str, ...] = (
    AppointmentStatus.SCHEDULED.value,
    AppointmentStatus.CHECKED_IN.value,
    AppointmentStatus.IN_PROGRESS.value,
)


def _normalize_time(value: str | None) -> str | None:
    if value is None:
        return None
    return normalize_slot_label(value)


class AppointmentBase(BaseModel):
    """Base appointment schema with common fields."""

    date: Date
    time: str = Field(..., description="Slot label, e.g. '09:30 AM'")
    reason: str = Field(..., min_length=1, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Normalize the slot label to the canonical format."""
        return _normalize_time(v)  # type: ignore[return-value]

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        """Reject whitespace-only reasons."""
        if not v.strip():
            raise ValueError("Reason for appointment is required")
        return v.strip()


class AppointmentCreate(AppointmentBase):
    """Schema for booking a new appointment."""

    patient_id: str = Field(..., min_length=1)


class AppointmentUpdate(BaseModel):
    """Schema for editing an existing appointment."""

    patient_id: str | None = Field(None, min_length=1)
    date: Date | None = None
    time: str | None = None
    reason: str | None = Field(None, min_length=1, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str | None) -> str | None:
        """Normalize the slot label to the canonical format."""
        return _normalize_time(v)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: str
    patient_id: str
    patient_name: str | None = None
    date: Date | None
    time: str
    reason: str
    notes: str | None = None
    status: AppointmentStatus
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    date: Date | None = None
    patient_id: str | None = None
    status: AppointmentStatus | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class AppointmentStats(BaseModel):
    """Dashboard counters."""

    total: int = 0
    completed: int = 0
    waiting: int = 0
    cancelled: int = 0


class BookedSlot(BaseModel):
    """A slot occupied by an active appointment."""

    appointment_id: str
    time: str


class BookedSlotsResponse(BaseModel):
    """Booked slots for one day."""

    date: Date
    booked: list[BookedSlot]


class AvailableSlotsResponse(BaseModel):
    """Bookable slots for one day."""

    date: Date
    slots: list[str]
    total_slots: int
    exclude_appointment_id: str | None = None


class SlotGridResponse(BaseModel):
    """The fixed daily slot grid."""

    slots: list[str]
