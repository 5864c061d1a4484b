"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Uuid,
    func,
)

from app.models.base import metadata

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references (immutable after creation)
    Column("clinic_id", Uuid, ForeignKey("clinics.id"), nullable=False),
    Column("patient_id", Uuid, ForeignKey("patients.id"), nullable=False),
    # Set iff status is booked
    Column("doctor_id", Uuid, ForeignKey("doctors.id"), nullable=True),
    Column("date", DateTime(timezone=True), nullable=False),
    Column("notes", Text, nullable=True),
    Column("status", String(20), nullable=False, server_default="open"),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    # Constraints
    CheckConstraint(
        "status IN ('open', 'booked')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "(status = 'open' AND doctor_id IS NULL) OR (status = 'booked' AND doctor_id IS NOT NULL)",
        name="appointments_doctor_matches_status",
    ),
)

Index("idx_appointments_clinic_date", appointments.c.clinic_id, appointments.c.date)
Index("idx_appointments_doctor_date", appointments.c.doctor_id, appointments.c.date)
Index("idx_appointments_status_date", appointments.c.status, appointments.c.date)
