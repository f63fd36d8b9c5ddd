"""Appointment documents and slot claims."""

from typing import Any

from app.core.datastore import Document
from app.core.slot_grid import normalize_slot_label
from app.models.base import from_document, load_date, store_date, to_document

APPOINTMENTS = "appointments"

# One document per booked (date, time); ID from app.core.slot_grid.slot_claim_id
SLOT_CLAIMS = "appointment_slots"

APPOINTMENT_FIELDS = {
    "patient_id": "patientId",
    "patient_name": "patientName",
    "date": "date",
    "time": "time",
    "reason": "reason",
    "notes": "notes",
    "status": "status",
    "created_by": "createdBy",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def appointment_to_document(values: dict[str, Any]) -> dict[str, Any]:
    """Convert API fields to an appointment document (partial updates allowed)."""
    data = to_document(values, APPOINTMENT_FIELDS)
    if "date" in data:
        data["date"] = store_date(data["date"])
    return data


def stored_slot_label(value: Any) -> str:
    """Canonical label for a stored ``time`` value; unparseable values pass through."""
    if not isinstance(value, str):
        return ""
    try:
        return normalize_slot_label(value)
    except ValueError:
        return value


def appointment_from_document(doc: Document) -> dict[str, Any]:
    """Convert an appointment document into an API record."""
    record = from_document(doc, APPOINTMENT_FIELDS)
    record["date"] = load_date(record["date"])
    record["time"] = stored_slot_label(record["time"])
    record["status"] = record["status"] or "scheduled"
    record["reason"] = record["reason"] or ""
    record["patient_id"] = record["patient_id"] or ""
    return record
