"""Doctor model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, String, Table, Uuid, func

from app.models.base import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("name", String(255), nullable=False, index=True),
    Column("specialty", String(200), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
