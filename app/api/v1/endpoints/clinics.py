"""Clinic dashboard endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query, status

from app.api.v1.endpoints.appointments import build_filters
from app.dependencies import Appointments, CurrentClinic, DatabaseSession, Directory
from app.schemas.appointments import AppointmentListResponse, AppointmentStatus
from app.schemas.clinics import PatientCreate, PatientResponse
from app.schemas.doctors import DoctorNetworkResponse

router = APIRouter()


@router.get(
    "/me/appointments",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List clinic appointments",
)
async def list_clinic_appointments(
    clinic: CurrentClinic,
    service: Appointments,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List the calling clinic's appointments, earliest first.

    - **status**: Only ``open`` or only ``booked`` appointments
    - **from_date/to_date**: Timezone-qualified date range
    - **page/page_size**: Pagination (max 100 per page)
    """
    filters = build_filters(
        status_filter=status_filter,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await service.list_by_clinic(clinic.id, filters)


@router.get("/me/patients", response_model=list[PatientResponse])
async def list_clinic_patients(
    clinic: CurrentClinic,
    db: DatabaseSession,
    directory: Directory,
):
    """List the calling clinic's patients ordered by name."""
    patients = await directory.list_patients(db, clinic.id)
    return [PatientResponse.model_validate(p) for p in patients]


@router.post(
    "/me/patients",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_clinic_patient(
    patient_data: PatientCreate,
    clinic: CurrentClinic,
    db: DatabaseSession,
    directory: Directory,
):
    """
    Register a patient with the calling clinic.

    - **name**: Patient display name (required)
    """
    patient = await directory.add_patient(db, clinic.id, patient_data)
    return PatientResponse.model_validate(patient)


@router.get("/me/doctors", response_model=DoctorNetworkResponse)
async def list_clinic_doctors(
    clinic: CurrentClinic,
    db: DatabaseSession,
    directory: Directory,
):
    """
    List doctors split into in-network and out-of-network.

    A doctor is in-network while they hold at least one booked appointment
    with the clinic.
    """
    return await directory.partition_doctors(db, clinic.id)
