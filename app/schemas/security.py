"""Role security code schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class SecurityCodesUpdate(BaseModel):
    """Rotate one or both role security codes."""

    reception: str | None = Field(None, min_length=6, max_length=128)
    doctor: str | None = Field(None, min_length=6, max_length=128)

    @model_validator(mode="after")
    def require_one_code(self) -> "SecurityCodesUpdate":
        """At least one code must be supplied."""
        if self.reception is None and self.doctor is None:
            raise ValueError("Provide a new code for at least one role")
        return self


class SecurityCodesStatus(BaseModel):
    """Which roles have a code configured; codes themselves are never returned."""

    reception_configured: bool
    doctor_configured: bool
    last_updated: datetime | None = None
    last_updated_by: str | None = None
