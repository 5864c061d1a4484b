"""Race-safe claim/release of appointment slots."""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

import structlog

from app.core.lifecycle import (
    SlotAction,
    SlotOutcome,
    classify_rejection,
    transition_conditions,
    transition_values,
)
from app.services.appointment_store import AppointmentStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class SlotResult:
    """Outcome of a slot write plus the appointment as it now stands."""

    outcome: SlotOutcome
    appointment: dict[str, Any] | None


class SlotCoordinator:
    """Executes lifecycle edges as single compare-and-set writes.

    Losing a race is reported as ``SlotOutcome.CONFLICT`` rather than raised;
    nothing here retries. Re-issuing a request that already took effect
    reports ``SlotOutcome.UNCHANGED``, which makes client retries after a
    timeout safe.
    """

    def __init__(self, store: AppointmentStore):
        """Initialize coordinator with the appointment store."""
        self.store = store

    async def try_claim(
        self,
        appointment_id: UUID,
        doctor_id: UUID,
        clinic_id: UUID | None = None,
        action: SlotAction = SlotAction.CLAIM,
    ) -> SlotResult:
        """
        Book an open appointment for ``doctor_id``.

        Args:
            appointment_id: Appointment ID
            doctor_id: Doctor taking the slot
            clinic_id: Restrict the write to this clinic's appointments (assign)
            action: ``CLAIM`` for doctors, ``ASSIGN`` for clinics

        Returns:
            Slot result
        """
        return await self._compare_and_set(action, appointment_id, doctor_id, clinic_id)

    async def try_release(self, appointment_id: UUID, doctor_id: UUID) -> SlotResult:
        """
        Return a booked appointment to the open pool.

        Only applies while the appointment is still booked by ``doctor_id``.
        """
        return await self._compare_and_set(SlotAction.RELEASE, appointment_id, doctor_id)

    async def _compare_and_set(
        self,
        action: SlotAction,
        appointment_id: UUID,
        doctor_id: UUID,
        clinic_id: UUID | None = None,
    ) -> SlotResult:
        result = await self.store.conditional_update(
            appointment_id,
            set_values=transition_values(action, doctor_id),
            where_values=transition_conditions(action, doctor_id, clinic_id),
        )

        if result.applied:
            outcome = SlotOutcome.APPLIED
        else:
            outcome = classify_rejection(action, result.row, doctor_id, clinic_id)

        # Lost races and ownership failures are logged as warnings
        if outcome in (SlotOutcome.APPLIED, SlotOutcome.UNCHANGED):
            log = logger.info
        else:
            log = logger.warning
        log(
            f"slot_{action.value}_{outcome.value}",
            appointment_id=str(appointment_id),
            doctor_id=str(doctor_id),
            clinic_id=str(clinic_id) if clinic_id else None,
        )

        return SlotResult(outcome=outcome, appointment=result.row)
