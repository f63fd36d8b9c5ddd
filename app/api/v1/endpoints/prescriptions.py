"""Prescription endpoints."""

from fastapi import APIRouter, status

from app.core.exceptions import NotFoundException
from app.dependencies import DatabaseSession, DoctorUser, StaffUser
from app.schemas.prescriptions import (
    PrescriptionCreate,
    PrescriptionResponse,
    PrescriptionUpdate,
)
from app.services.prescription_service import PrescriptionService

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])


@router.post(
    "/",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Write a prescription",
)
async def create_prescription(
    data: PrescriptionCreate,
    current_user: DoctorUser,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """Write a prescription for an appointment, signed by the current doctor."""
    return await PrescriptionService(db).create_prescription(data, current_user)


@router.get(
    "/mine",
    response_model=list[PrescriptionResponse],
    status_code=status.HTTP_200_OK,
    summary="Current doctor's prescriptions",
)
async def list_my_prescriptions(
    current_user: DoctorUser,
    db: DatabaseSession,
) -> list[PrescriptionResponse]:
    """Prescription history of the current doctor, newest first."""
    return await PrescriptionService(db).list_for_doctor(current_user["id"])


@router.get(
    "/doctor/{doctor_id}",
    response_model=list[PrescriptionResponse],
    status_code=status.HTTP_200_OK,
    summary="Prescriptions by doctor",
)
async def list_doctor_prescriptions(
    doctor_id: str,
    current_user: StaffUser,
    db: DatabaseSession,
) -> list[PrescriptionResponse]:
    """Prescriptions written by a doctor, newest first."""
    return await PrescriptionService(db).list_for_doctor(doctor_id)


@router.get(
    "/appointment/{appointment_id}",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_200_OK,
    summary="Prescription for an appointment",
)
async def get_appointment_prescription(
    appointment_id: str,
    current_user: StaffUser,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """The prescription written during an appointment."""
    prescription = await PrescriptionService(db).get_by_appointment(appointment_id)
    if prescription is None:
        raise NotFoundException(f"No prescription for appointment {appointment_id}")
    return prescription


@router.get(
    "/{prescription_id}",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_200_OK,
    summary="Get prescription by ID",
)
async def get_prescription(
    prescription_id: str,
    current_user: StaffUser,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """Get a prescription."""
    return await PrescriptionService(db).get_prescription(prescription_id)


@router.put(
    "/{prescription_id}",
    response_model=PrescriptionResponse,
    status_code=status.HTTP_200_OK,
    summary="Amend prescription",
)
async def update_prescription(
    prescription_id: str,
    data: PrescriptionUpdate,
    current_user: DoctorUser,
    db: DatabaseSession,
) -> PrescriptionResponse:
    """Amend a prescription."""
    return await PrescriptionService(db).update_prescription(prescription_id, data)


@router.delete(
    "/{prescription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete prescription",
)
async def delete_prescription(
    prescription_id: str,
    current_user: DoctorUser,
    db: DatabaseSession,
) -> None:
    """Delete a prescription."""
    await PrescriptionService(db).delete_prescription(prescription_id)
