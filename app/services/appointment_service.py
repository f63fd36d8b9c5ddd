"""Appointment service for business logic."""

from datetime import date
from typing import Any

import structlog

from app.config import settings
from app.core.clinic_time import calendar_day, day_bounds, utcnow
from app.core.datastore import (
    Document,
    DocumentStore,
    FieldFilter,
    OrderBy,
    Subscription,
    Write,
)
from app.core.exceptions import (
    AppointmentNotFound,
    ConflictException,
    DocumentExistsError,
    DocumentNotFoundError,
    InvalidStatusTransition,
    NotFoundException,
    QueryNotSupportedError,
    SlotNoLongerAvailable,
    ValidationException,
    WriteConflictError,
)
from app.core.slot_grid import slot_claim_id, slot_minutes
from app.models.appointments import (
    APPOINTMENTS,
    SLOT_CLAIMS,
    appointment_from_document,
    appointment_to_document,
    stored_slot_label,
)
from app.models.patients import PATIENTS, patient_from_document
from app.schemas.appointments import (
    ACTIVE_STATUSES,
    WAITING_STATUSES,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStats,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
)
from app.services.slot_service import SlotService

logger = structlog.get_logger(__name__)

# Forward moves along the visit, plus cancellation of any open visit.
# Completed and cancelled are terminal.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.CHECKED_IN,
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.CHECKED_IN: frozenset(
        {
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.IN_PROGRESS: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    """Whether the status machine allows ``current -> requested``."""
    return requested in ALLOWED_TRANSITIONS[current]


def _time_sort_key(record: dict[str, Any]) -> int:
    try:
        return slot_minutes(record["time"])
    except ValueError:
        return 24 * 60


class AppointmentService:
    """Service for managing appointments."""

    # Commits tried before giving up on a contested claim
    CLAIM_ATTEMPTS = 3

    def __init__(self, db: DocumentStore, slot_service: SlotService | None = None):
        """Initialize service with the document store."""
        self.db = db
        self.slots = slot_service or SlotService(db)

    async def create_appointment(
        self,
        data: AppointmentCreate,
        created_by: str | None = None,
    ) -> AppointmentResponse:
        """
        Book a new appointment.

        The slot is re-checked against fresh data right before the write, and
        the appointment is stored in the same atomic write as its slot claim,
        so a slot taken since the caller loaded the form is rejected instead
        of double-booked.

        Args:
            data: Appointment creation data
            created_by: ID of the staff member booking

        Returns:
            Created appointment

        Raises:
            ValidationException: If the time is not a bookable slot
            NotFoundException: If the patient does not exist
            SlotNoLongerAvailable: If the slot was taken in the meantime
        """
        self._ensure_bookable(data.time)
        patient = await self._get_patient(data.patient_id)

        await self._ensure_slot_free(data.date, data.time)

        appointment_id = self.db.generate_id(APPOINTMENTS)
        now = utcnow()
        values = {
            "patient_id": data.patient_id,
            "patient_name": patient["full_name"],
            "date": data.date,
            "time": data.time,
            "reason": data.reason,
            "notes": data.notes,
            "status": AppointmentStatus.SCHEDULED.value,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }

        await self._commit_with_claim(
            data.date,
            data.time,
            appointment_id,
            Write("create", APPOINTMENTS, appointment_id, appointment_to_document(values)),
        )

        logger.info(
            "appointment_booked",
            appointment_id=appointment_id,
            date=data.date.isoformat(),
            time=data.time,
            patient_id=data.patient_id,
        )
        return AppointmentResponse.model_validate({"id": appointment_id, **values})

    async def get_appointment(self, appointment_id: str) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            AppointmentNotFound: If appointment not found
        """
        doc = await self._get_document(appointment_id)
        return AppointmentResponse.model_validate(appointment_from_document(doc))

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Ordered by date (newest first), then by slot time within a day.
        """
        if filters.date is not None:
            records = await self._records_for_day(filters.date)
        elif filters.patient_id is not None:
            records = await self._records_for_patient(filters.patient_id)
        else:
            records = [appointment_from_document(doc) for doc in await self.db.query(APPOINTMENTS)]

        if filters.patient_id is not None:
            records = [r for r in records if r["patient_id"] == filters.patient_id]
        if filters.status is not None:
            records = [r for r in records if r["status"] == filters.status.value]

        records.sort(key=_time_sort_key)
        records.sort(key=lambda r: r["date"] or date.min, reverse=True)

        offset = (filters.page - 1) * filters.page_size
        page = records[offset : offset + filters.page_size]

        return AppointmentListResponse(
            total=len(records),
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(r) for r in page],
        )

    async def get_appointments_for_day(self, day: date) -> list[AppointmentResponse]:
        """All appointments on ``day`` (any status), ordered by slot time."""
        records = await self._records_for_day(day)
        records.sort(key=_time_sort_key)
        return [AppointmentResponse.model_validate(r) for r in records]

    async def get_appointments_for_patient(self, patient_id: str) -> list[AppointmentResponse]:
        """A patient's appointments, newest date first."""
        records = await self._records_for_patient(patient_id)
        records.sort(key=_time_sort_key)
        records.sort(key=lambda r: r["date"] or date.min, reverse=True)
        return [AppointmentResponse.model_validate(r) for r in records]

    async def get_stats(self) -> AppointmentStats:
        """Dashboard counters; zeros if the datastore cannot be read."""
        try:
            docs = await self.db.query(APPOINTMENTS)
        except Exception as e:
            logger.error("appointment_stats_failed", error=str(e))
            return AppointmentStats()

        statuses = [doc.data.get("status", AppointmentStatus.SCHEDULED.value) for doc in docs]
        return AppointmentStats(
            total=len(statuses),
            completed=statuses.count(AppointmentStatus.COMPLETED.value),
            waiting=sum(1 for s in statuses if s in WAITING_STATUSES),
            cancelled=statuses.count(AppointmentStatus.CANCELLED.value),
        )

    async def update_appointment(
        self,
        appointment_id: str,
        data: AppointmentUpdate,
    ) -> AppointmentResponse:
        """
        Edit an appointment, possibly moving it to another date or time.

        A move is validated like a new booking, except that the appointment
        never conflicts with itself. The old slot is released after the write.

        Raises:
            AppointmentNotFound: If appointment not found
            ConflictException: If the appointment is cancelled
            SlotNoLongerAvailable: If the target slot is taken
        """
        doc = await self._get_document(appointment_id)
        current = appointment_from_document(doc)

        if current["status"] == AppointmentStatus.CANCELLED.value:
            raise ConflictException("Cancelled appointments cannot be edited")

        changes: dict[str, Any] = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }
        if not changes:
            return AppointmentResponse.model_validate(current)

        old_day, old_time = current["date"], current["time"]
        new_day = changes.get("date", old_day)
        new_time = changes.get("time", old_time)
        moved = new_day != old_day or new_time != old_time

        if "patient_id" in changes and changes["patient_id"] != current["patient_id"]:
            patient = await self._get_patient(changes["patient_id"])
            changes["patient_name"] = patient["full_name"]

        if moved:
            self._ensure_bookable(new_time)
            await self._ensure_slot_free(new_day, new_time, exclude_appointment_id=appointment_id)

        changes["updated_at"] = utcnow()
        write = Write("update", APPOINTMENTS, appointment_id, appointment_to_document(changes))
        try:
            if moved:
                await self._commit_with_claim(new_day, new_time, appointment_id, write)
            else:
                await self.db.commit([write])
        except DocumentNotFoundError as e:
            # Deleted after it was read above
            raise AppointmentNotFound(appointment_id) from e

        if moved and old_day is not None:
            await self._release_slot(old_day, old_time, appointment_id)
            logger.info(
                "appointment_rescheduled",
                appointment_id=appointment_id,
                from_date=old_day.isoformat(),
                from_time=old_time,
                to_date=new_day.isoformat(),
                to_time=new_time,
            )

        return AppointmentResponse.model_validate({**current, **changes})

    async def update_appointment_status(
        self,
        appointment_id: str,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """
        Move an appointment through its status machine.

        Cancelling frees the slot for rebooking.

        Raises:
            AppointmentNotFound: If appointment not found
            InvalidStatusTransition: If the change is not allowed
        """
        doc = await self._get_document(appointment_id)
        current = appointment_from_document(doc)
        old_status = AppointmentStatus(current["status"])

        changes: dict[str, Any] = {}
        if data.status != old_status:
            if not can_transition(old_status, data.status):
                raise InvalidStatusTransition(old_status.value, data.status.value)
            changes["status"] = data.status.value

        if data.notes is not None:
            changes["notes"] = data.notes

        if not changes:
            return AppointmentResponse.model_validate(current)

        changes["updated_at"] = utcnow()
        try:
            await self.db.update(APPOINTMENTS, appointment_id, appointment_to_document(changes))
        except DocumentNotFoundError as e:
            raise AppointmentNotFound(appointment_id) from e

        if data.status == AppointmentStatus.CANCELLED and current["date"] is not None:
            await self._release_slot(current["date"], current["time"], appointment_id)

        if "status" in changes:
            logger.info(
                "appointment_status_changed",
                appointment_id=appointment_id,
                old_status=old_status.value,
                new_status=data.status.value,
            )

        return AppointmentResponse.model_validate({**current, **changes})

    async def delete_appointment(self, appointment_id: str) -> None:
        """
        Permanently delete an appointment and free its slot.

        Raises:
            AppointmentNotFound: If appointment not found
        """
        doc = await self._get_document(appointment_id)
        current = appointment_from_document(doc)

        await self.db.delete(APPOINTMENTS, appointment_id)

        if current["date"] is not None:
            await self._release_slot(current["date"], current["time"], appointment_id)

        logger.info("appointment_deleted", appointment_id=appointment_id)

    def watch_appointment(self, appointment_id: str, callback: Any) -> Subscription:
        """
        Subscribe to live changes of one appointment.

        ``callback`` receives an :class:`AppointmentResponse`, or None once the
        appointment is deleted. The caller owns the returned subscription and
        must unsubscribe it.
        """

        def on_snapshot(doc: Document | None) -> None:
            if doc is None:
                callback(None)
            else:
                callback(AppointmentResponse.model_validate(appointment_from_document(doc)))

        return self.db.watch_document(APPOINTMENTS, appointment_id, on_snapshot)

    async def _get_document(self, appointment_id: str) -> Document:
        doc = await self.db.get(APPOINTMENTS, appointment_id)
        if doc is None:
            raise AppointmentNotFound(appointment_id)
        return doc

    async def _get_patient(self, patient_id: str) -> dict[str, Any]:
        doc = await self.db.get(PATIENTS, patient_id)
        if doc is None:
            raise NotFoundException(f"Patient {patient_id} not found")
        return patient_from_document(doc)

    def _ensure_bookable(self, label: str) -> None:
        if not self.slots.is_on_grid(label):
            raise ValidationException(f"{label} is not a bookable time slot")

    async def _ensure_slot_free(
        self,
        day: date,
        label: str,
        exclude_appointment_id: str | None = None,
    ) -> None:
        if await self.slots.is_slot_taken(day, label, exclude_appointment_id):
            available = await self.slots.get_available_slots(day, exclude_appointment_id)
            logger.info(
                "slot_booking_conflict",
                date=day.isoformat(),
                time=label,
                source="booked_slots",
            )
            raise SlotNoLongerAvailable(day.isoformat(), label, available)

    async def _commit_with_claim(
        self, day: date, label: str, appointment_id: str, write: Write
    ) -> None:
        """
        Apply ``write`` and the claim on (day, label) as one atomic commit.

        A claim whose holder was cancelled, deleted or moved is taken over
        only if it has not changed since it was read, so two bookers racing
        for the same leftover claim cannot both win.

        Raises:
            SlotNoLongerAvailable: If a live appointment holds the claim
            DocumentNotFoundError: If ``write`` updates a missing appointment
        """
        if not settings.slot_claims_enabled:
            await self.db.commit([write])
            return

        claim_id = slot_claim_id(day, label)
        claim = {
            "appointmentId": appointment_id,
            "date": day.isoformat(),
            "time": label,
            "createdAt": utcnow(),
        }
        claim_write = Write("create", SLOT_CLAIMS, claim_id, claim)
        exclude = appointment_id if write.op == "update" else None

        for _ in range(self.CLAIM_ATTEMPTS):
            try:
                await self.db.commit([claim_write, write])
                return
            except (DocumentExistsError, WriteConflictError):
                pass

            if write.op == "update" and await self.db.get(write.collection, write.doc_id) is None:
                raise DocumentNotFoundError(f"{write.collection}/{write.doc_id} does not exist")

            existing = await self.db.get(SLOT_CLAIMS, claim_id)
            if existing is None:
                # Released between the failed commit and this read
                claim_write = Write("create", SLOT_CLAIMS, claim_id, claim)
                continue

            holder_id = existing.data.get("appointmentId")
            if (
                holder_id
                and holder_id != appointment_id
                and await self._holds_slot(holder_id, day, label)
            ):
                await self._reject_claimed_slot(day, label, holder_id, exclude)

            logger.info("stale_slot_claim_replaced", claim_id=claim_id, previous_holder=holder_id)
            claim_write = Write(
                "update", SLOT_CLAIMS, claim_id, claim, if_update_time=existing.update_time
            )

        await self._reject_claimed_slot(day, label, None, exclude)

    async def _reject_claimed_slot(
        self, day: date, label: str, holder_id: str | None, exclude: str | None
    ) -> None:
        available = await self.slots.get_available_slots(day, exclude)
        logger.info(
            "slot_booking_conflict",
            date=day.isoformat(),
            time=label,
            source="slot_claim",
            holder_id=holder_id,
        )
        raise SlotNoLongerAvailable(day.isoformat(), label, available)

    async def _holds_slot(self, appointment_id: str, day: date, label: str) -> bool:
        doc = await self.db.get(APPOINTMENTS, appointment_id)
        if doc is None:
            return False
        return (
            doc.data.get("status") in ACTIVE_STATUSES
            and calendar_day(doc.data.get("date")) == day
            and stored_slot_label(doc.data.get("time")) == label
        )

    async def _release_slot(self, day: date, label: str, appointment_id: str) -> None:
        """Drop the claim on (day, label) if ``appointment_id`` still owns it."""
        if not settings.slot_claims_enabled:
            return

        claim_id = slot_claim_id(day, label)
        try:
            claim = await self.db.get(SLOT_CLAIMS, claim_id)
            if claim is not None and claim.data.get("appointmentId") == appointment_id:
                await self.db.delete(SLOT_CLAIMS, claim_id)
        except Exception as e:
            # A leftover claim is detected as stale on the next booking
            logger.warning("slot_claim_release_failed", claim_id=claim_id, error=str(e))

    async def _records_for_day(self, day: date) -> list[dict[str, Any]]:
        start, end = day_bounds(day)
        docs = await self.db.query(
            APPOINTMENTS,
            filters=[FieldFilter("date", ">=", start), FieldFilter("date", "<", end)],
        )
        return [appointment_from_document(doc) for doc in docs]

    async def _records_for_patient(self, patient_id: str) -> list[dict[str, Any]]:
        try:
            docs = await self.db.query(
                APPOINTMENTS,
                filters=[FieldFilter("patientId", "==", patient_id)],
                order_by=[OrderBy("date", descending=True)],
            )
        except QueryNotSupportedError as e:
            logger.warning("patient_appointments_query_fallback", patient_id=patient_id, error=str(e))
            docs = await self.db.query(
                APPOINTMENTS, filters=[FieldFilter("patientId", "==", patient_id)]
            )
        return [appointment_from_document(doc) for doc in docs]
