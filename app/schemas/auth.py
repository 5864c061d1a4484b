"""Authentication schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Caller role resolved at login."""

    DOCTOR = "doctor"
    CLINIC = "clinic"


class Identity(BaseModel):
    """Resolved caller identity passed into every core call."""

    role: Role
    id: UUID


class LoginRequest(BaseModel):
    """Name-based login request."""

    name: str = Field(..., min_length=1, max_length=255)


class IdentityResponse(BaseModel):
    """Resolved identity with its display name."""

    role: Role
    id: UUID
    name: str


class LoginResponse(IdentityResponse):
    """Login response with token and resolved identity."""

    access_token: str
    token_type: str = "bearer"
