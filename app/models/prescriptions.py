"""Prescription documents."""

from typing import Any

from app.core.datastore import Document
from app.models.base import from_document, load_date, store_date, to_document

PRESCRIPTIONS = "prescriptions"

PRESCRIPTION_FIELDS = {
    "patient_id": "patientId",
    "patient_name": "patientName",
    "doctor_id": "doctorId",
    "doctor_name": "doctorName",
    "appointment_id": "appointmentId",
    "diagnosis": "diagnosis",
    "medications": "medications",
    "notes": "notes",
    "follow_up": "followUp",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def prescription_to_document(values: dict[str, Any]) -> dict[str, Any]:
    """Convert API fields to a prescription document (partial updates allowed)."""
    data = to_document(values, PRESCRIPTION_FIELDS)
    if "followUp" in data:
        data["followUp"] = store_date(data["followUp"])
    return data


def prescription_from_document(doc: Document) -> dict[str, Any]:
    """Convert a prescription document into an API record."""
    record = from_document(doc, PRESCRIPTION_FIELDS)
    record["follow_up"] = load_date(record["follow_up"])
    record["medications"] = record["medications"] or []
    return record
