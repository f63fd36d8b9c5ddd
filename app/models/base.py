"""Field-name mapping between API records and stored documents.

Documents keep the camelCase field names used by the clinic's web client;
the API speaks snake_case.
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from app.core.clinic_time import calendar_day, day_start
from app.core.datastore import Document


def to_document(values: Mapping[str, Any], field_map: Mapping[str, str]) -> dict[str, Any]:
    """Rename known API fields to their stored names; unknown keys are dropped."""
    return {field_map[key]: value for key, value in values.items() if key in field_map}


def from_document(doc: Document, field_map: Mapping[str, str]) -> dict[str, Any]:
    """Rename stored fields back to API names and attach the document ID."""
    record: dict[str, Any] = {"id": doc.id}
    for api_name, stored_name in field_map.items():
        record[api_name] = doc.data.get(stored_name)
    return record


def store_date(value: date | None) -> datetime | None:
    """Calendar dates are stored as local-midnight timestamps."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return day_start(value)


def load_date(value: Any) -> date | None:
    """Inverse of :func:`store_date`, tolerant of legacy encodings."""
    return calendar_day(value)
