"""Prescription service for business logic."""

from typing import Any

import structlog

from app.core.clinic_time import utcnow
from app.core.datastore import DocumentStore, FieldFilter, OrderBy
from app.core.exceptions import AppointmentNotFound, NotFoundException, QueryNotSupportedError
from app.models.appointments import APPOINTMENTS, appointment_from_document
from app.models.prescriptions import (
    PRESCRIPTIONS,
    prescription_from_document,
    prescription_to_document,
)
from app.schemas.prescriptions import PrescriptionCreate, PrescriptionResponse, PrescriptionUpdate
from app.services.medicine_service import MedicineService

logger = structlog.get_logger(__name__)


def _created_key(record: dict[str, Any]) -> float:
    created_at = record["created_at"]
    return created_at.timestamp() if created_at else 0.0


class PrescriptionService:
    """Service for prescriptions written during a visit."""

    def __init__(self, db: DocumentStore, medicine_service: MedicineService | None = None):
        self.db = db
        self.medicines = medicine_service or MedicineService(db)

    async def create_prescription(
        self,
        data: PrescriptionCreate,
        doctor: dict[str, Any],
    ) -> PrescriptionResponse:
        """
        Write a prescription for an appointment.

        Patient details are copied from the appointment and every medication
        name is recorded in the medicine catalogue.

        Raises:
            AppointmentNotFound: If the appointment does not exist
        """
        appointment_doc = await self.db.get(APPOINTMENTS, data.appointment_id)
        if appointment_doc is None:
            raise AppointmentNotFound(data.appointment_id)
        appointment = appointment_from_document(appointment_doc)

        now = utcnow()
        values = {
            **data.model_dump(),
            "patient_id": appointment["patient_id"],
            "patient_name": appointment["patient_name"],
            "doctor_id": doctor["id"],
            "doctor_name": doctor.get("name"),
            "created_at": now,
            "updated_at": now,
        }

        prescription_id = await self.db.add(PRESCRIPTIONS, prescription_to_document(values))
        logger.info(
            "prescription_created",
            prescription_id=prescription_id,
            appointment_id=data.appointment_id,
            doctor_id=doctor["id"],
        )

        await self._record_medicines([m.name for m in data.medications])

        return PrescriptionResponse.model_validate({"id": prescription_id, **values})

    async def get_prescription(self, prescription_id: str) -> PrescriptionResponse:
        """
        Get prescription by ID.

        Raises:
            NotFoundException: If prescription not found
        """
        doc = await self.db.get(PRESCRIPTIONS, prescription_id)
        if doc is None:
            raise NotFoundException(f"Prescription {prescription_id} not found")
        return PrescriptionResponse.model_validate(prescription_from_document(doc))

    async def get_by_appointment(self, appointment_id: str) -> PrescriptionResponse | None:
        """The prescription written for an appointment, if any."""
        docs = await self.db.query(
            PRESCRIPTIONS, filters=[FieldFilter("appointmentId", "==", appointment_id)], limit=1
        )
        if not docs:
            return None
        return PrescriptionResponse.model_validate(prescription_from_document(docs[0]))

    async def list_for_patient(self, patient_id: str) -> list[PrescriptionResponse]:
        """A patient's prescriptions, newest first."""
        return await self._list_newest_first("patientId", patient_id)

    async def list_for_doctor(self, doctor_id: str) -> list[PrescriptionResponse]:
        """Prescriptions written by a doctor, newest first."""
        return await self._list_newest_first("doctorId", doctor_id)

    async def update_prescription(
        self,
        prescription_id: str,
        data: PrescriptionUpdate,
    ) -> PrescriptionResponse:
        """
        Amend a prescription.

        Raises:
            NotFoundException: If prescription not found
        """
        current = await self.get_prescription(prescription_id)

        changes = data.model_dump(exclude_unset=True)
        for field in ("diagnosis", "medications"):
            if field in changes and changes[field] is None:
                del changes[field]
        if not changes:
            return current

        changes["updated_at"] = utcnow()
        await self.db.update(PRESCRIPTIONS, prescription_id, prescription_to_document(changes))
        logger.info("prescription_updated", prescription_id=prescription_id)

        if data.medications:
            await self._record_medicines([m.name for m in data.medications])

        return PrescriptionResponse.model_validate({**current.model_dump(), **changes})

    async def delete_prescription(self, prescription_id: str) -> None:
        """
        Delete a prescription.

        Raises:
            NotFoundException: If prescription not found
        """
        await self.get_prescription(prescription_id)
        await self.db.delete(PRESCRIPTIONS, prescription_id)
        logger.info("prescription_deleted", prescription_id=prescription_id)

    async def _list_newest_first(self, field: str, value: str) -> list[PrescriptionResponse]:
        try:
            docs = await self.db.query(
                PRESCRIPTIONS,
                filters=[FieldFilter(field, "==", value)],
                order_by=[OrderBy("createdAt", descending=True)],
            )
        except QueryNotSupportedError as e:
            logger.warning("prescription_query_fallback", field=field, error=str(e))
            docs = await self.db.query(PRESCRIPTIONS, filters=[FieldFilter(field, "==", value)])

        records = [prescription_from_document(doc) for doc in docs]
        records.sort(key=_created_key, reverse=True)
        return [PrescriptionResponse.model_validate(r) for r in records]

    async def _record_medicines(self, names: list[str]) -> None:
        for name in dict.fromkeys(n.strip() for n in names if n.strip()):
            try:
                await self.medicines.add_medicine(name)
            except Exception as e:
                logger.warning("medicine_catalogue_update_failed", name=name, error=str(e))
