"""Medicine catalogue documents."""

from typing import Any

from app.core.datastore import Document
from app.models.base import from_document

MEDICINES = "medicines"

MEDICINE_FIELDS = {
    "name": "name",
    "usage_count": "usageCount",
    "created_at": "createdAt",
}


def medicine_from_document(doc: Document) -> dict[str, Any]:
    """Convert a medicine document into an API record."""
    record = from_document(doc, MEDICINE_FIELDS)
    record["usage_count"] = record["usage_count"] or 0
    return record
