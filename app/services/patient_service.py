"""Patient service for business logic."""

import structlog

from app.core.clinic_time import utcnow
from app.core.datastore import DocumentStore
from app.core.exceptions import NotFoundException
from app.models.patients import PATIENTS, patient_from_document, patient_to_document
from app.schemas.patients import PatientCreate, PatientResponse, PatientUpdate
from app.services.email_service import EmailService

logger = structlog.get_logger(__name__)


class PatientService:
    """Service for patient records."""

    def __init__(self, db: DocumentStore, email_service: EmailService | None = None):
        self.db = db
        self.email = email_service or EmailService()

    async def create_patient(self, data: PatientCreate) -> PatientResponse:
        """
        Register a patient and send the welcome email.

        The email is best effort: a delivery failure is logged and the
        patient is still created.
        """
        now = utcnow()
        values = {**data.model_dump(), "created_at": now, "updated_at": now}

        patient_id = await self.db.add(PATIENTS, patient_to_document(values))
        logger.info("patient_created", patient_id=patient_id)

        if data.email:
            try:
                await self.email.send_patient_welcome(data.email, data.full_name, patient_id)
            except Exception as e:
                logger.error("welcome_email_failed", patient_id=patient_id, error=str(e))

        return PatientResponse.model_validate({"id": patient_id, **values})

    async def get_patient(self, patient_id: str) -> PatientResponse:
        """
        Get patient by ID.

        Raises:
            NotFoundException: If patient not found
        """
        doc = await self.db.get(PATIENTS, patient_id)
        if doc is None:
            raise NotFoundException(f"Patient {patient_id} not found")
        return PatientResponse.model_validate(patient_from_document(doc))

    async def list_patients(self) -> list[PatientResponse]:
        """
        All patients ordered by name.

        Raises:
            DatastoreUnavailable: If the datastore cannot be read
        """
        docs = await self.db.query(PATIENTS)

        records = [patient_from_document(doc) for doc in docs]
        records.sort(key=lambda r: r["full_name"].lower())
        return [PatientResponse.model_validate(r) for r in records]

    async def search_patients(self, term: str) -> list[PatientResponse]:
        """Case-insensitive substring match on name, phone or email."""
        needle = term.strip().lower()
        patients = await self.list_patients()
        if not needle:
            return patients

        return [
            p
            for p in patients
            if needle in p.full_name.lower()
            or needle in p.phone.lower()
            or needle in (p.email or "").lower()
        ]

    async def update_patient(self, patient_id: str, data: PatientUpdate) -> PatientResponse:
        """
        Update a patient's details.

        Raises:
            NotFoundException: If patient not found
        """
        current = await self.get_patient(patient_id)

        changes = data.model_dump(exclude_unset=True)
        # Optional fields may be cleared, required ones may not
        for field in ("full_name", "phone", "address"):
            if field in changes and changes[field] is None:
                del changes[field]
        if not changes:
            return current

        changes["updated_at"] = utcnow()
        await self.db.update(PATIENTS, patient_id, patient_to_document(changes))
        logger.info("patient_updated", patient_id=patient_id, fields=sorted(changes))

        return current.model_copy(update=changes)

    async def delete_patient(self, patient_id: str) -> None:
        """
        Delete a patient record.

        Appointments and prescriptions keep their denormalized patient name.

        Raises:
            NotFoundException: If patient not found
        """
        await self.get_patient(patient_id)
        await self.db.delete(PATIENTS, patient_id)
        logger.info("patient_deleted", patient_id=patient_id)
