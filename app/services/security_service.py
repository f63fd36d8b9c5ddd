"""Role security codes."""

import structlog

from app.core.clinic_time import utcnow
from app.core.datastore import DocumentStore
from app.core.security import hash_security_code, verify_security_code
from app.models.security import ROLE_SECURITY_DOC, SECURITY
from app.schemas.security import SecurityCodesStatus, SecurityCodesUpdate
from app.schemas.users import StaffRole

logger = structlog.get_logger(__name__)


class SecurityCodeService:
    """Stores hashed role codes and checks presented ones."""

    def __init__(self, db: DocumentStore):
        self.db = db

    async def get_status(self) -> SecurityCodesStatus:
        """Code metadata; the hashes themselves never leave the service."""
        doc = await self.db.get(SECURITY, ROLE_SECURITY_DOC)
        data = doc.data if doc is not None else {}
        return SecurityCodesStatus(
            reception_configured=bool(data.get(StaffRole.RECEPTION.value)),
            doctor_configured=bool(data.get(StaffRole.DOCTOR.value)),
            last_updated=data.get("lastUpdated"),
            last_updated_by=data.get("lastUpdatedBy"),
        )

    async def update_codes(self, data: SecurityCodesUpdate, updated_by: str) -> SecurityCodesStatus:
        """Rotate the supplied codes; roles left out keep their current code."""
        values: dict[str, object] = {
            "lastUpdated": utcnow(),
            "lastUpdatedBy": updated_by,
        }
        if data.reception is not None:
            values[StaffRole.RECEPTION.value] = hash_security_code(data.reception)
        if data.doctor is not None:
            values[StaffRole.DOCTOR.value] = hash_security_code(data.doctor)

        await self.db.set(SECURITY, ROLE_SECURITY_DOC, values, merge=True)
        logger.info(
            "security_codes_rotated",
            updated_by=updated_by,
            roles=sorted(k for k in values if k in (r.value for r in StaffRole)),
        )
        return await self.get_status()

    async def verify_code(self, role: StaffRole, code: str) -> bool:
        """Check ``code`` against the stored hash for ``role``."""
        doc = await self.db.get(SECURITY, ROLE_SECURITY_DOC)
        if doc is None:
            logger.warning("security_codes_not_configured")
            return False

        hashed = doc.data.get(role.value)
        if not hashed:
            return False
        return verify_security_code(code, hashed)
