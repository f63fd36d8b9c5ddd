"""Medicine catalogue used for prescription autocomplete."""

import structlog

from app.core.clinic_time import utcnow
from app.core.datastore import DocumentStore, FieldFilter, OrderBy
from app.models.medicines import MEDICINES, medicine_from_document
from app.schemas.medicines import MedicineResponse

logger = structlog.get_logger(__name__)


class MedicineService:
    """Service for the medicine name catalogue."""

    DEFAULT_SEARCH_LIMIT = 10

    def __init__(self, db: DocumentStore):
        self.db = db

    async def get_by_name(self, name: str) -> MedicineResponse | None:
        """Exact (trimmed) name lookup."""
        docs = await self.db.query(
            MEDICINES, filters=[FieldFilter("name", "==", name.strip())], limit=1
        )
        if not docs:
            return None
        return MedicineResponse.model_validate(medicine_from_document(docs[0]))

    async def add_medicine(self, name: str) -> MedicineResponse:
        """
        Record a medicine name.

        Names are deduplicated on the exact trimmed value; adding a known
        name bumps its usage count instead.
        """
        name = name.strip()
        existing = await self.get_by_name(name)
        if existing is not None:
            usage_count = existing.usage_count + 1
            await self.db.update(MEDICINES, existing.id, {"usageCount": usage_count})
            return existing.model_copy(update={"usage_count": usage_count})

        now = utcnow()
        medicine_id = await self.db.add(
            MEDICINES, {"name": name, "usageCount": 1, "createdAt": now}
        )
        logger.info("medicine_added", medicine_id=medicine_id, name=name)
        return MedicineResponse(id=medicine_id, name=name, usage_count=1, created_at=now)

    async def search(self, term: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[MedicineResponse]:
        """First ``limit`` medicines by name whose name contains ``term``."""
        needle = term.strip().lower()
        docs = await self.db.query(MEDICINES, order_by=[OrderBy("name")])

        results: list[MedicineResponse] = []
        for doc in docs:
            record = medicine_from_document(doc)
            if needle in (record["name"] or "").lower():
                results.append(MedicineResponse.model_validate(record))
                if len(results) >= limit:
                    break
        return results
