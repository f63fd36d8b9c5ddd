"""Staff user documents, keyed by identity-provider uid."""

from typing import Any

from app.core.datastore import Document
from app.models.base import from_document, to_document

USERS = "users"

USER_FIELDS = {
    "name": "name",
    "email": "email",
    "role": "role",
    "specialization": "specialization",
    "phone": "phone",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def user_to_document(values: dict[str, Any]) -> dict[str, Any]:
    """Convert API fields to a user document."""
    return to_document(values, USER_FIELDS)


def user_from_document(doc: Document) -> dict[str, Any]:
    """Convert a user document into an API record."""
    record = from_document(doc, USER_FIELDS)
    record["name"] = record["name"] or record["email"] or ""
    # Some older profiles used "phoneNumber"
    record["phone"] = record["phone"] or doc.data.get("phoneNumber")
    return record
