"""Datastore collections and document converters."""

from app.models.appointments import APPOINTMENTS, SLOT_CLAIMS
from app.models.medicines import MEDICINES
from app.models.patients import PATIENTS
from app.models.prescriptions import PRESCRIPTIONS
from app.models.security import ROLE_SECURITY_DOC, SECURITY
from app.models.users import USERS

__all__ = [
    "APPOINTMENTS",
    "MEDICINES",
    "PATIENTS",
    "PRESCRIPTIONS",
    "ROLE_SECURITY_DOC",
    "SECURITY",
    "SLOT_CLAIMS",
    "USERS",
]
