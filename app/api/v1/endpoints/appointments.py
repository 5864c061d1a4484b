"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import ValidationError

from app.core.exceptions import ConflictException, ValidationException
from app.dependencies import Appointments, CurrentClinic, CurrentDoctor, CurrentIdentity
from app.schemas.appointments import (
    AppointmentAssign,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentNotesUpdate,
    AppointmentResponse,
    AppointmentStatus,
    TransitionOutcome,
    TransitionResponse,
)

router = APIRouter()


def build_filters(
    status_filter: AppointmentStatus | None = None,
    clinic_id: UUID | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    page: int = 1,
    page_size: int = 20,
) -> AppointmentFilters:
    """Build list filters from query parameters, reporting naive timestamps as 422."""
    try:
        return AppointmentFilters(
            status=status_filter,
            clinic_id=clinic_id,
            from_date=from_date,
            to_date=to_date,
            page=page,
            page_size=page_size,
        )
    except ValidationError as e:
        raise ValidationException("Date filters must include a timezone offset") from e


def raise_on_conflict(response: TransitionResponse) -> TransitionResponse:
    """Report a lost race as 409 so the caller refreshes its open-slot list."""
    if response.outcome is TransitionOutcome.CONFLICT:
        raise ConflictException("Appointment slot is no longer open")
    return response


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create open appointment slot",
)
async def create_appointment(
    data: AppointmentCreate,
    clinic: CurrentClinic,
    service: Appointments,
) -> AppointmentResponse:
    """
    Publish a new open slot for one of the calling clinic's patients.

    Args:
        data: Appointment creation data
        clinic: Authenticated clinic
        service: Appointment service

    Returns:
        Created appointment
    """
    return await service.create_appointment(clinic.id, data)


@router.get(
    "/open",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List open slots",
)
async def list_open_appointments(
    doctor: CurrentDoctor,
    service: Appointments,
    clinic_id: UUID | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List unclaimed appointments, earliest first.

    Args:
        doctor: Authenticated doctor
        service: Appointment service
        clinic_id: Only slots of this clinic
        from_date: Only slots at or after this time
        to_date: Only slots at or before this time
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of open appointments
    """
    filters = build_filters(
        clinic_id=clinic_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await service.list_open(filters)


@router.get(
    "/mine",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List my bookings",
)
async def list_my_appointments(
    doctor: CurrentDoctor,
    service: Appointments,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """List the appointments booked by the calling doctor, earliest first."""
    filters = build_filters(page=page, page_size=page_size)
    return await service.list_by_doctor(doctor.id, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    identity: CurrentIdentity,
    service: Appointments,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If appointment not found
        StoreUnavailableException: If the appointment store cannot be reached
    """
    return await service.get_appointment(appointment_id)


@router.post(
    "/{appointment_id}/claim",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Claim an open slot",
)
async def claim_appointment(
    appointment_id: UUID,
    doctor: CurrentDoctor,
    service: Appointments,
) -> TransitionResponse:
    """
    Book an open slot for the calling doctor.

    Claiming a slot the doctor already holds succeeds as ``already_booked``.

    Raises:
        NotFoundException: If the appointment does not exist
        ConflictException: If another doctor holds the slot
    """
    return raise_on_conflict(await service.claim_appointment(appointment_id, doctor.id))


@router.post(
    "/{appointment_id}/release",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Release a booking",
)
async def release_appointment(
    appointment_id: UUID,
    doctor: CurrentDoctor,
    service: Appointments,
) -> TransitionResponse:
    """
    Return the calling doctor's booking to the open pool.

    Releasing an appointment that is already open succeeds as ``already_open``.

    Raises:
        NotFoundException: If the appointment does not exist
        NotOwnerException: If another doctor holds the booking
    """
    return raise_on_conflict(await service.release_appointment(appointment_id, doctor.id))


@router.post(
    "/{appointment_id}/assign",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Assign a doctor to an open slot",
)
async def assign_doctor(
    appointment_id: UUID,
    data: AppointmentAssign,
    clinic: CurrentClinic,
    service: Appointments,
) -> TransitionResponse:
    """
    Book a doctor onto one of the calling clinic's open slots.

    Raises:
        NotFoundException: If the appointment or doctor does not exist
        NotOwnerException: If the appointment belongs to another clinic
        ConflictException: If another doctor already holds the slot
    """
    return raise_on_conflict(
        await service.assign_doctor(appointment_id, clinic.id, data.doctor_id)
    )


@router.patch(
    "/{appointment_id}/notes",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment notes",
)
async def update_appointment_notes(
    appointment_id: UUID,
    data: AppointmentNotesUpdate,
    clinic: CurrentClinic,
    service: Appointments,
) -> AppointmentResponse:
    """Edit the notes of one of the calling clinic's appointments."""
    return await service.update_notes(appointment_id, clinic.id, data)
