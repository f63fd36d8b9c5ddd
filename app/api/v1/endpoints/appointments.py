"""Appointment endpoints."""

import asyncio
from datetime import date

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.core.exceptions import AppointmentNotFound, PermissionDenied
from app.core.security import decode_access_token
from app.dependencies import DatabaseSession, ReceptionUser, StaffUser
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStats,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    AvailableSlotsResponse,
    BookedSlotsResponse,
    SlotGridResponse,
)
from app.schemas.users import StaffRole
from app.services.appointment_service import AppointmentService
from app.services.slot_service import SlotService
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: ReceptionUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Book a patient into a free slot.

    Returns 409 ``SlotNoLongerAvailable`` with the refreshed list of free
    slots in ``details.available_slots`` if the slot was taken meanwhile.
    """
    return await AppointmentService(db).create_appointment(data, created_by=current_user["id"])


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    current_user: StaffUser,
    db: DatabaseSession,
    day: date | None = Query(None, alias="date"),
    patient_id: str | None = Query(None),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """List appointments, newest date first and by slot time within a day."""
    filters = AppointmentFilters(
        date=day,
        patient_id=patient_id,
        status=status_filter,
        page=page,
        page_size=page_size,
    )
    return await AppointmentService(db).list_appointments(filters)


@router.get(
    "/stats",
    response_model=AppointmentStats,
    status_code=status.HTTP_200_OK,
    summary="Dashboard counters",
)
async def get_appointment_stats(
    current_user: StaffUser,
    db: DatabaseSession,
) -> AppointmentStats:
    """Total, completed, waiting and cancelled counts."""
    return await AppointmentService(db).get_stats()


@router.get(
    "/slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="Available slots for a date",
)
async def get_available_slots(
    current_user: StaffUser,
    db: DatabaseSession,
    day: date = Query(..., alias="date"),
    exclude_appointment_id: str | None = Query(
        None, description="Appointment being edited; its own slot stays selectable"
    ),
) -> AvailableSlotsResponse:
    """Slots that can be picked for a booking or an edit."""
    slots = await SlotService(db).get_available_slots(day, exclude_appointment_id)
    return AvailableSlotsResponse(
        date=day,
        slots=slots,
        total_slots=len(slots),
        exclude_appointment_id=exclude_appointment_id,
    )


@router.get(
    "/slots/booked",
    response_model=BookedSlotsResponse,
    status_code=status.HTTP_200_OK,
    summary="Booked slots for a date",
)
async def get_booked_slots(
    current_user: StaffUser,
    db: DatabaseSession,
    day: date = Query(..., alias="date"),
) -> BookedSlotsResponse:
    """Slots held by appointments that are not cancelled."""
    return BookedSlotsResponse(date=day, booked=await SlotService(db).get_booked_slots(day))


@router.get(
    "/slots/grid",
    response_model=SlotGridResponse,
    status_code=status.HTTP_200_OK,
    summary="Daily slot grid",
)
async def get_slot_grid(current_user: StaffUser, db: DatabaseSession) -> SlotGridResponse:
    """Every bookable slot of a clinic day."""
    return SlotGridResponse(slots=list(SlotService(db).grid))


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: str,
    current_user: StaffUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    return await AppointmentService(db).get_appointment(appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Edit or reschedule appointment",
)
async def update_appointment(
    appointment_id: str,
    data: AppointmentUpdate,
    current_user: StaffUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Edit an appointment.

    Changing ``date`` or ``time`` moves it; the old slot is freed and the new
    one must be available (the appointment never conflicts with itself).
    """
    return await AppointmentService(db).update_appointment(appointment_id, data)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: str,
    data: AppointmentStatusUpdate,
    current_user: StaffUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Check in, start, complete or cancel an appointment.

    Only doctors may attach visit notes.
    """
    if data.notes and current_user.get("role") != StaffRole.DOCTOR.value:
        raise PermissionDenied("Only doctors can add visit notes")
    return await AppointmentService(db).update_appointment_status(appointment_id, data)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: str,
    current_user: ReceptionUser,
    db: DatabaseSession,
) -> None:
    """Permanently delete an appointment and free its slot."""
    await AppointmentService(db).delete_appointment(appointment_id)


@router.websocket("/{appointment_id}/watch")
async def watch_appointment(
    websocket: WebSocket,
    appointment_id: str,
    db: DatabaseSession,
    token: str = Query(...),
) -> None:
    """
    Stream live changes of one appointment.

    Browsers cannot set headers on a WebSocket, so the access token is
    passed as the ``token`` query parameter. Each change is sent as
    ``{"event": "snapshot", "appointment": {...}}``; deletion sends
    ``{"event": "deleted"}`` and closes the socket.
    """
    payload = decode_access_token(token)
    user_id = payload.get("sub") if payload else None
    user = await UserService(db).get_user(user_id) if user_id else None
    if user is None or user.get("role") not in {role.value for role in StaffRole}:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    service = AppointmentService(db)
    try:
        await service.get_appointment(appointment_id)
    except AppointmentNotFound:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Appointment not found")
        return

    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[AppointmentResponse | None] = asyncio.Queue()

    # Snapshot callbacks may run on a listener thread
    subscription = service.watch_appointment(
        appointment_id, lambda snapshot: loop.call_soon_threadsafe(queue.put_nowait, snapshot)
    )
    logger.info("appointment_watch_started", appointment_id=appointment_id, user_id=user_id)

    async def forward_snapshots() -> None:
        while True:
            snapshot = await queue.get()
            if snapshot is None:
                await websocket.send_json({"event": "deleted", "appointment_id": appointment_id})
                return
            await websocket.send_json(
                {"event": "snapshot", "appointment": snapshot.model_dump(mode="json")}
            )

    async def wait_for_disconnect() -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    tasks = [
        asyncio.create_task(forward_snapshots()),
        asyncio.create_task(wait_for_disconnect()),
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc
        if tasks[0] in done:
            await websocket.close()
    finally:
        subscription.unsubscribe()
        logger.info("appointment_watch_stopped", appointment_id=appointment_id)
