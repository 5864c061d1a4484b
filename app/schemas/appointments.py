"""Appointment schemas for request/response validation."""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field, field_validator


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a timestamp to UTC, treating naive values read back from the store as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    OPEN = "open"
    BOOKED = "booked"


class TransitionOutcome(str, Enum):
    """What a claim/assign/release request did to the appointment."""

    BOOKED = "booked"
    ALREADY_BOOKED = "already_booked"
    RELEASED = "released"
    ALREADY_OPEN = "already_open"
    CONFLICT = "conflict"


class AppointmentCreate(BaseModel):
    """Schema for a clinic publishing a new open slot."""

    patient_id: UUID
    date: AwareDatetime
    notes: str | None = Field(None, max_length=1000)

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        """Store every slot time in UTC."""
        return v.astimezone(UTC)

    @field_validator("notes")
    @classmethod
    def blank_notes_to_none(cls, v: str | None) -> str | None:
        """Treat whitespace-only notes as absent."""
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None


class AppointmentAssign(BaseModel):
    """Schema for a clinic assigning a doctor to an open slot."""

    doctor_id: UUID


class AppointmentNotesUpdate(BaseModel):
    """Schema for editing appointment notes."""

    notes: str | None = Field(None, max_length=1000)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    doctor_id: UUID | None = None
    date: datetime
    notes: str | None = None
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("date", "created_at", "updated_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Always expose timezone-qualified timestamps."""
        return as_utc(v)  # type: ignore[return-value]


class TransitionResponse(BaseModel):
    """Result of a claim, assign or release request."""

    outcome: TransitionOutcome
    appointment: AppointmentResponse


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    clinic_id: UUID | None = None
    from_date: AwareDatetime | None = None
    to_date: AwareDatetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @field_validator("from_date", "to_date")
    @classmethod
    def normalize_range(cls, v: datetime | None) -> datetime | None:
        """Compare against stored UTC timestamps."""
        return as_utc(v)
