"""Doctor schemas for request/response validation."""

from uuid import UUID

from pydantic import BaseModel


class DoctorResponse(BaseModel):
    """Doctor directory entry."""

    id: UUID
    name: str
    specialty: str | None = None

    model_config = {"from_attributes": True}


class DoctorNetworkResponse(BaseModel):
    """Doctors split by whether they hold a booking with the clinic."""

    in_network: list[DoctorResponse]
    out_of_network: list[DoctorResponse]
