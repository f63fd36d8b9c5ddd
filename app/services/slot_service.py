"""Slot availability engine.

Answers two questions for a clinic day: which slots are taken by active
appointments, and which slots a booking or an edit may choose from.
"""

from collections.abc import Sequence
from datetime import date

import structlog

from app.core.clinic_time import calendar_day, day_bounds
from app.core.datastore import DocumentStore, FieldFilter
from app.core.exceptions import QueryNotSupportedError
from app.core.slot_grid import get_slot_grid, sort_slot_labels
from app.models.appointments import APPOINTMENTS, stored_slot_label
from app.schemas.appointments import ACTIVE_STATUSES, BookedSlot

logger = structlog.get_logger(__name__)


class SlotService:
    """Computes booked and available time slots."""

    def __init__(self, db: DocumentStore, grid: Sequence[str] | None = None):
        """Initialize with a document store and optionally a custom slot grid."""
        self.db = db
        self.grid: tuple[str, ...] = tuple(grid) if grid is not None else get_slot_grid()

    async def get_booked_slots(self, day: date) -> list[BookedSlot]:
        """
        Slots on ``day`` held by appointments that are not cancelled.

        Args:
            day: Calendar date

        Returns:
            Booked slots ordered by time

        Raises:
            DatastoreUnavailable: If the datastore cannot be reached
        """
        start, end = day_bounds(day)
        try:
            docs = await self.db.query(
                APPOINTMENTS,
                filters=[
                    FieldFilter("date", ">=", start),
                    FieldFilter("date", "<", end),
                    FieldFilter("status", "in", list(ACTIVE_STATUSES)),
                ],
            )
        except QueryNotSupportedError as e:
            logger.warning("booked_slots_query_fallback", date=day.isoformat(), error=str(e))
            docs = [
                doc
                for doc in await self.db.query(APPOINTMENTS)
                if doc.data.get("status") in ACTIVE_STATUSES
                and calendar_day(doc.data.get("date")) == day
            ]

        booked = [
            BookedSlot(appointment_id=doc.id, time=stored_slot_label(doc.data.get("time")))
            for doc in docs
        ]
        booked.sort(key=lambda slot: self._position(slot.time))
        return booked

    async def get_available_slots(
        self,
        day: date,
        exclude_appointment_id: str | None = None,
    ) -> list[str]:
        """
        Slots on ``day`` that may be chosen for a booking or an edit.

        When ``exclude_appointment_id`` names the appointment being edited,
        that appointment does not block its own slot, and its current slot
        is offered even if a stale read dropped it.

        Never raises: on failure the whole grid is returned and the
        booking-time check has the final say.
        """
        try:
            booked = await self.get_booked_slots(day)
            taken = {
                slot.time for slot in booked if slot.appointment_id != exclude_appointment_id
            }
            available = [label for label in self.grid if label not in taken]

            if exclude_appointment_id:
                own = await self.db.get(APPOINTMENTS, exclude_appointment_id)
                if own is not None and calendar_day(own.data.get("date")) == day:
                    own_time = stored_slot_label(own.data.get("time"))
                    if own_time and own_time not in available and own_time not in taken:
                        available = sort_slot_labels([*available, own_time])

            return available
        except Exception as e:
            logger.warning(
                "available_slots_fallback_to_full_grid",
                date=day.isoformat(),
                exclude_appointment_id=exclude_appointment_id,
                error=str(e),
            )
            return list(self.grid)

    async def is_slot_taken(
        self,
        day: date,
        label: str,
        exclude_appointment_id: str | None = None,
    ) -> bool:
        """Fresh check whether an active appointment other than the excluded one holds the slot."""
        return any(
            slot.time == label and slot.appointment_id != exclude_appointment_id
            for slot in await self.get_booked_slots(day)
        )

    def is_on_grid(self, label: str) -> bool:
        """Whether ``label`` is one of the bookable slots."""
        return label in self.grid

    def _position(self, label: str) -> int:
        try:
            return self.grid.index(label)
        except ValueError:
            return len(self.grid)
