"""Appointment service for business logic."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    NotFoundException,
    NotOwnerException,
    ValidationException,
)
from app.core.lifecycle import SlotAction, SlotOutcome
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentNotesUpdate,
    AppointmentResponse,
    AppointmentStatus,
    TransitionOutcome,
    TransitionResponse,
)
from app.services.appointment_store import AppointmentStore
from app.services.directory_service import DirectoryService
from app.services.slot_coordinator import SlotCoordinator, SlotResult

logger = structlog.get_logger()

_BOOKING_OUTCOMES = {
    SlotOutcome.APPLIED: TransitionOutcome.BOOKED,
    SlotOutcome.UNCHANGED: TransitionOutcome.ALREADY_BOOKED,
    SlotOutcome.CONFLICT: TransitionOutcome.CONFLICT,
}

_RELEASE_OUTCOMES = {
    SlotOutcome.APPLIED: TransitionOutcome.RELEASED,
    SlotOutcome.UNCHANGED: TransitionOutcome.ALREADY_OPEN,
    SlotOutcome.CONFLICT: TransitionOutcome.CONFLICT,
}


class AppointmentService:
    """Service for the appointment lifecycle.

    Callers pass their resolved identity into every method; the service keeps
    no state between calls and never decides a transition from a value it read
    earlier.
    """

    def __init__(self, db: AsyncSession, directory: DirectoryService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.store = AppointmentStore(db)
        self.coordinator = SlotCoordinator(self.store)
        self.directory = directory or DirectoryService()

    async def create_appointment(
        self,
        clinic_id: UUID,
        data: AppointmentCreate,
    ) -> AppointmentResponse:
        """
        Publish a new open slot for one of the clinic's patients.

        Args:
            clinic_id: ID of the clinic creating the appointment
            data: Appointment creation data

        Returns:
            Created appointment

        Raises:
            ValidationException: If the patient is unknown or belongs to another clinic
        """
        # Patient must be registered with the calling clinic
        patient = await self.directory.get_patient(self.db, data.patient_id)
        if patient is None:
            raise ValidationException("Patient not found")
        if patient["clinic_id"] != clinic_id:
            raise ValidationException("Patient is not registered with this clinic")

        # New slots always start open
        row = await self.store.insert(
            {
                "clinic_id": clinic_id,
                "patient_id": data.patient_id,
                "doctor_id": None,
                "date": data.date,
                "notes": data.notes,
                "status": AppointmentStatus.OPEN.value,
            }
        )

        logger.info(
            "appointment_created",
            appointment_id=str(row["id"]),
            clinic_id=str(clinic_id),
            patient_id=str(data.patient_id),
        )
        return AppointmentResponse.model_validate(row)

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        row = await self.store.get(appointment_id)
        return AppointmentResponse.model_validate(row)

    async def claim_appointment(self, appointment_id: UUID, doctor_id: UUID) -> TransitionResponse:
        """
        Doctor takes an open slot.

        Args:
            appointment_id: Appointment ID
            doctor_id: Calling doctor

        Returns:
            Transition outcome; ``conflict`` when another doctor holds the slot

        Raises:
            NotFoundException: If appointment not found
        """
        result = await self.coordinator.try_claim(appointment_id, doctor_id)
        return self._to_response(result, _BOOKING_OUTCOMES)

    async def assign_doctor(
        self,
        appointment_id: UUID,
        clinic_id: UUID,
        doctor_id: UUID,
    ) -> TransitionResponse:
        """
        Clinic books a doctor onto one of its open slots.

        Same edge and guarantees as :meth:`claim_appointment`.

        Raises:
            NotFoundException: If the appointment or the doctor does not exist
            NotOwnerException: If the appointment belongs to another clinic
        """
        # Check doctor exists
        if await self.directory.get_doctor(self.db, doctor_id) is None:
            raise NotFoundException("Doctor not found")

        result = await self.coordinator.try_claim(
            appointment_id,
            doctor_id,
            clinic_id=clinic_id,
            action=SlotAction.ASSIGN,
        )
        return self._to_response(
            result, _BOOKING_OUTCOMES, "Appointment belongs to another clinic"
        )

    async def release_appointment(
        self, appointment_id: UUID, doctor_id: UUID
    ) -> TransitionResponse:
        """
        Doctor gives a booked slot back.

        Releasing a slot that is already open succeeds as ``already_open``.

        Raises:
            NotFoundException: If appointment not found
            NotOwnerException: If the slot is booked by another doctor
        """
        result = await self.coordinator.try_release(appointment_id, doctor_id)
        return self._to_response(
            result, _RELEASE_OUTCOMES, "Appointment is booked by another doctor"
        )

    async def update_notes(
        self,
        appointment_id: UUID,
        clinic_id: UUID,
        data: AppointmentNotesUpdate,
    ) -> AppointmentResponse:
        """
        Edit the notes of one of the clinic's appointments.

        Raises:
            NotFoundException: If appointment not found
            NotOwnerException: If the appointment belongs to another clinic
        """
        # Only the owning clinic may edit notes
        result = await self.store.conditional_update(
            appointment_id,
            set_values={"notes": data.notes},
            where_values={"clinic_id": clinic_id},
        )
        # Tell a missing appointment apart from a foreign one
        if not result.applied:
            if result.row is None:
                raise NotFoundException("Appointment not found")
            raise NotOwnerException("Appointment belongs to another clinic")

        return AppointmentResponse.model_validate(result.row)

    async def list_by_clinic(
        self, clinic_id: UUID, filters: AppointmentFilters
    ) -> AppointmentListResponse:
        """List every appointment of a clinic."""
        return await self._list(filters.model_copy(update={"clinic_id": clinic_id}))

    async def list_by_doctor(
        self, doctor_id: UUID, filters: AppointmentFilters
    ) -> AppointmentListResponse:
        """List the bookings currently held by a doctor."""
        return await self._list(
            filters.model_copy(
                update={"doctor_id": doctor_id, "status": AppointmentStatus.BOOKED}
            )
        )

    async def list_open(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """List open slots across clinics."""
        return await self._list(
            filters.model_copy(update={"status": AppointmentStatus.OPEN, "doctor_id": None})
        )

    async def _list(self, filters: AppointmentFilters) -> AppointmentListResponse:
        # Get appointments
        total, rows = await self.store.list_by_filter(filters)
        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(row) for row in rows],
        )

    @staticmethod
    def _to_response(
        result: SlotResult,
        outcomes: dict[SlotOutcome, TransitionOutcome],
        not_owner_message: str = "Appointment is not owned by the caller",
    ) -> TransitionResponse:
        if result.outcome is SlotOutcome.MISSING:
            raise NotFoundException("Appointment not found")
        if result.outcome is SlotOutcome.NOT_OWNER:
            raise NotOwnerException(not_owner_message)

        appointment: dict[str, Any] = result.appointment  # type: ignore[assignment]
        return TransitionResponse(
            outcome=outcomes[result.outcome],
            appointment=AppointmentResponse.model_validate(appointment),
        )
