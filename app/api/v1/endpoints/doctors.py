"""Doctor directory endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from app.dependencies import CurrentIdentity, DatabaseSession, Directory
from app.schemas.doctors import DoctorResponse

router = APIRouter()


@router.get("/", response_model=list[DoctorResponse])
async def list_doctors(
    identity: CurrentIdentity,
    db: DatabaseSession,
    directory: Directory,
):
    """List every doctor ordered by name."""
    doctors = await directory.list_doctors(db)
    return [DoctorResponse.model_validate(d) for d in doctors]


@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: UUID,
    identity: CurrentIdentity,
    db: DatabaseSession,
    directory: Directory,
):
    """Get a doctor by ID."""
    doctor = await directory.get_doctor(db, doctor_id)
    if not doctor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Doctor not found")
    return DoctorResponse.model_validate(doctor)
