"""Tests for the appointment state machine."""

from uuid import uuid4

import pytest

from app.core.exceptions import InvalidTransitionException
from app.core.lifecycle import (
    SlotAction,
    SlotOutcome,
    classify_rejection,
    current_status,
    is_consistent,
    transition_conditions,
    transition_for,
    transition_values,
)
from app.schemas.appointments import AppointmentStatus

DOCTOR = uuid4()
OTHER_DOCTOR = uuid4()
CLINIC = uuid4()


def _row(status: str = "open", doctor_id=None, clinic_id=CLINIC) -> dict:
    return {"id": uuid4(), "status": status, "doctor_id": doctor_id, "clinic_id": clinic_id}


def test_transition_edges():
    """Claim and assign open a booking, release closes it."""
    assert transition_for(SlotAction.CLAIM) == (AppointmentStatus.OPEN, AppointmentStatus.BOOKED)
    assert transition_for("assign") == (AppointmentStatus.OPEN, AppointmentStatus.BOOKED)
    assert transition_for(SlotAction.RELEASE) == (AppointmentStatus.BOOKED, AppointmentStatus.OPEN)


def test_unknown_action_is_invalid_transition():
    with pytest.raises(InvalidTransitionException):
        transition_for("cancel")


def test_unknown_status_is_invalid_transition():
    with pytest.raises(InvalidTransitionException):
        current_status(_row(status="cancelled"))


def test_transition_values_keep_doctor_in_step_with_status():
    assert transition_values(SlotAction.CLAIM, DOCTOR) == {"status": "booked", "doctor_id": DOCTOR}
    assert transition_values(SlotAction.RELEASE, DOCTOR) == {"status": "open", "doctor_id": None}


def test_transition_conditions():
    """Release is guarded on the owner, assign on the clinic."""
    assert transition_conditions(SlotAction.CLAIM, DOCTOR) == {"status": "open"}
    assert transition_conditions(SlotAction.RELEASE, DOCTOR) == {
        "status": "booked",
        "doctor_id": DOCTOR,
    }
    assert transition_conditions(SlotAction.ASSIGN, DOCTOR, CLINIC) == {
        "status": "open",
        "clinic_id": CLINIC,
    }


@pytest.mark.parametrize(
    "action,row,clinic_id,expected",
    [
        (SlotAction.CLAIM, None, None, SlotOutcome.MISSING),
        (SlotAction.CLAIM, _row("booked", DOCTOR), None, SlotOutcome.UNCHANGED),
        (SlotAction.CLAIM, _row("booked", OTHER_DOCTOR), None, SlotOutcome.CONFLICT),
        (SlotAction.ASSIGN, _row("booked", OTHER_DOCTOR), CLINIC, SlotOutcome.CONFLICT),
        (SlotAction.ASSIGN, _row("open", clinic_id=uuid4()), CLINIC, SlotOutcome.NOT_OWNER),
        (SlotAction.RELEASE, _row("open"), None, SlotOutcome.UNCHANGED),
        (SlotAction.RELEASE, _row("booked", OTHER_DOCTOR), None, SlotOutcome.NOT_OWNER),
    ],
)
def test_classify_rejection(action, row, clinic_id, expected):
    """Rejected writes are explained from the row as it now stands."""
    assert classify_rejection(action, row, DOCTOR, clinic_id) is expected


def test_classify_rejection_of_row_still_in_source_state():
    """A claim that missed a still-open row lost a race against a claim and release."""
    assert classify_rejection(SlotAction.CLAIM, _row("open"), DOCTOR) is SlotOutcome.CONFLICT


def test_is_consistent():
    assert is_consistent(_row("open"))
    assert is_consistent(_row("booked", DOCTOR))
    assert not is_consistent(_row("open", DOCTOR))
    assert not is_consistent(_row("booked"))
