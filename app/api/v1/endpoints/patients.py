"""Patient endpoints."""

from fastapi import APIRouter, Query, status

from app.dependencies import DatabaseSession, ReceptionUser, StaffUser
from app.schemas.appointments import AppointmentResponse
from app.schemas.patients import (
    PatientCreate,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from app.schemas.prescriptions import PrescriptionResponse
from app.services.appointment_service import AppointmentService
from app.services.patient_service import PatientService
from app.services.prescription_service import PrescriptionService

router = APIRouter(prefix="/patients", tags=["Patients"])


@router.post(
    "/",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a patient",
)
async def create_patient(
    data: PatientCreate,
    current_user: ReceptionUser,
    db: DatabaseSession,
) -> PatientResponse:
    """Register a patient; a welcome email is sent when an address is given."""
    return await PatientService(db).create_patient(data)


@router.get(
    "/",
    response_model=PatientListResponse,
    status_code=status.HTTP_200_OK,
    summary="List or search patients",
)
async def list_patients(
    current_user: StaffUser,
    db: DatabaseSession,
    search: str | None = Query(None, description="Match on name, phone or email"),
) -> PatientListResponse:
    """All patients ordered by name, optionally filtered by ``search``."""
    service = PatientService(db)
    if search:
        patients = await service.search_patients(search)
    else:
        patients = await service.list_patients()
    return PatientListResponse(total=len(patients), items=patients)


@router.get(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Get patient by ID",
)
async def get_patient(
    patient_id: str,
    current_user: StaffUser,
    db: DatabaseSession,
) -> PatientResponse:
    """Get a patient's details."""
    return await PatientService(db).get_patient(patient_id)


@router.put(
    "/{patient_id}",
    response_model=PatientResponse,
    status_code=status.HTTP_200_OK,
    summary="Update patient",
)
async def update_patient(
    patient_id: str,
    data: PatientUpdate,
    current_user: ReceptionUser,
    db: DatabaseSession,
) -> PatientResponse:
    """Update a patient's details."""
    return await PatientService(db).update_patient(patient_id, data)


@router.delete(
    "/{patient_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete patient",
)
async def delete_patient(
    patient_id: str,
    current_user: ReceptionUser,
    db: DatabaseSession,
) -> None:
    """Delete a patient record."""
    await PatientService(db).delete_patient(patient_id)


@router.get(
    "/{patient_id}/appointments",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    summary="Patient's appointments",
)
async def list_patient_appointments(
    patient_id: str,
    current_user: StaffUser,
    db: DatabaseSession,
) -> list[AppointmentResponse]:
    """A patient's appointments, newest first."""
    await PatientService(db).get_patient(patient_id)
    return await AppointmentService(db).get_appointments_for_patient(patient_id)


@router.get(
    "/{patient_id}/prescriptions",
    response_model=list[PrescriptionResponse],
    status_code=status.HTTP_200_OK,
    summary="Patient's prescriptions",
)
async def list_patient_prescriptions(
    patient_id: str,
    current_user: StaffUser,
    db: DatabaseSession,
) -> list[PrescriptionResponse]:
    """A patient's prescriptions, newest first."""
    await PatientService(db).get_patient(patient_id)
    return await PrescriptionService(db).list_for_patient(patient_id)
