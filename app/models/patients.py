"""Patient documents."""

from typing import Any

from app.core.datastore import Document
from app.models.base import from_document, load_date, store_date, to_document

PATIENTS = "patients"

PATIENT_FIELDS = {
    "full_name": "fullName",
    "email": "email",
    "phone": "phone",
    "date_of_birth": "dateOfBirth",
    "gender": "gender",
    "guardian": "guardian",
    "blood_group": "bloodGroup",
    "body_weight": "bodyWeight",
    "address": "address",
    "medical_history": "medicalHistory",
    "insurance_provider": "insuranceProvider",
    "insurance_number": "insuranceNumber",
    "notes": "notes",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def patient_to_document(values: dict[str, Any]) -> dict[str, Any]:
    """Convert API fields to a patient document (partial updates allowed)."""
    data = to_document(values, PATIENT_FIELDS)
    if "dateOfBirth" in data:
        data["dateOfBirth"] = store_date(data["dateOfBirth"])
    return data


def patient_from_document(doc: Document) -> dict[str, Any]:
    """Convert a patient document into an API record."""
    record = from_document(doc, PATIENT_FIELDS)
    # Older records carry the name under "name"
    record["full_name"] = record["full_name"] or doc.data.get("name") or ""
    record["phone"] = record["phone"] or ""
    record["address"] = record["address"] or ""
    record["date_of_birth"] = load_date(record["date_of_birth"])
    return record
