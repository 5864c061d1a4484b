"""Appointment lifecycle state machine.

An appointment is either ``open`` (no doctor) or ``booked`` (exactly one
doctor). Every mutation of the status is one edge of ``TRANSITIONS`` and is
written to the store as a single compare-and-set: the edge's source state
becomes the write condition and its target state the new value. When the
store rejects the write, :func:`classify_rejection` looks at the row as it is
now and picks the outcome reported to the caller.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any
from uuid import UUID

from app.core.exceptions import InvalidTransitionException
from app.schemas.appointments import AppointmentStatus


class SlotAction(str, Enum):
    """Requested lifecycle edge."""

    CLAIM = "claim"
    ASSIGN = "assign"
    RELEASE = "release"


class SlotOutcome(str, Enum):
    """Result of a conditional write against one appointment."""

    APPLIED = "applied"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    NOT_OWNER = "not_owner"
    MISSING = "missing"


TRANSITIONS: dict[SlotAction, tuple[AppointmentStatus, AppointmentStatus]] = {
    SlotAction.CLAIM: (AppointmentStatus.OPEN, AppointmentStatus.BOOKED),
    SlotAction.ASSIGN: (AppointmentStatus.OPEN, AppointmentStatus.BOOKED),
    SlotAction.RELEASE: (AppointmentStatus.BOOKED, AppointmentStatus.OPEN),
}


def transition_for(action: SlotAction | str) -> tuple[AppointmentStatus, AppointmentStatus]:
    """Return the (source, target) states of an action."""
    try:
        return TRANSITIONS[SlotAction(action)]
    except ValueError:
        raise InvalidTransitionException(f"Unknown appointment action '{action}'") from None


def current_status(row: Mapping[str, Any]) -> AppointmentStatus:
    """Read the stored status, rejecting values outside the closed set."""
    try:
        return AppointmentStatus(row["status"])
    except ValueError:
        raise InvalidTransitionException(
            f"Appointment {row['id']} has unknown status '{row['status']}'"
        ) from None


def transition_values(action: SlotAction, doctor_id: UUID) -> dict[str, Any]:
    """Columns written when ``action`` is applied on behalf of ``doctor_id``."""
    _, target = transition_for(action)
    return {
        "status": target.value,
        "doctor_id": doctor_id if target is AppointmentStatus.BOOKED else None,
    }


def transition_conditions(
    action: SlotAction,
    doctor_id: UUID,
    clinic_id: UUID | None = None,
) -> dict[str, Any]:
    """Column values the stored row must still hold for ``action`` to apply."""
    source, _ = transition_for(action)
    conditions: dict[str, Any] = {"status": source.value}
    if source is AppointmentStatus.BOOKED:
        # Only the owning doctor may move a booking out of booked
        conditions["doctor_id"] = doctor_id
    if clinic_id is not None:
        conditions["clinic_id"] = clinic_id
    return conditions


def classify_rejection(
    action: SlotAction,
    row: Mapping[str, Any] | None,
    doctor_id: UUID,
    clinic_id: UUID | None = None,
) -> SlotOutcome:
    """
    Explain why a conditional write for ``action`` did not apply.

    Args:
        action: The edge that was attempted
        row: The appointment as currently stored, or None if it does not exist
        doctor_id: Doctor the action was performed for
        clinic_id: Calling clinic for clinic-scoped actions

    Returns:
        The outcome to report to the caller
    """
    if row is None:
        return SlotOutcome.MISSING

    status = current_status(row)

    if clinic_id is not None and row["clinic_id"] != clinic_id:
        return SlotOutcome.NOT_OWNER

    _, target = transition_for(action)
    if status is target:
        if target is AppointmentStatus.OPEN:
            # Already released; a retried release is a no-op
            return SlotOutcome.UNCHANGED
        if row["doctor_id"] == doctor_id:
            return SlotOutcome.UNCHANGED
        return SlotOutcome.CONFLICT

    if action is SlotAction.RELEASE:
        return SlotOutcome.NOT_OWNER if row["doctor_id"] != doctor_id else SlotOutcome.CONFLICT

    # Still in the source state but the write missed it: the row moved and
    # moved back between our write and our read
    return SlotOutcome.CONFLICT


def is_consistent(row: Mapping[str, Any]) -> bool:
    """Check that ``booked`` holds exactly when a doctor is set."""
    return (row["status"] == AppointmentStatus.BOOKED.value) == (row["doctor_id"] is not None)
