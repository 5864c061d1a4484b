"""Clinic and patient schemas for request/response validation."""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ClinicResponse(BaseModel):
    """Clinic directory entry."""

    id: UUID
    name: str

    model_config = {"from_attributes": True}


class PatientCreate(BaseModel):
    """Schema for a clinic registering a patient."""

    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Reject names that are only whitespace."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Patient name must not be blank")
        return stripped


class PatientResponse(BaseModel):
    """Patient scoped to a clinic."""

    id: UUID
    clinic_id: UUID
    name: str

    model_config = {"from_attributes": True}
