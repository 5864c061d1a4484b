"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import decode_access_token
from app.database import get_db
from app.schemas.auth import Identity, Role
from app.services.appointment_service import AppointmentService
from app.services.directory_service import DirectoryService

# Security
security = HTTPBearer(auto_error=False)


def get_cache_manager() -> CacheManager:
    """Get Redis-backed cache manager."""
    return CacheManager(get_redis_client())


def get_directory_service(
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
) -> DirectoryService:
    """Get directory service instance."""
    return DirectoryService(cache_manager=cache_manager)


def get_appointment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    directory: Annotated[DirectoryService, Depends(get_directory_service)],
) -> AppointmentService:
    """Get appointment service bound to the request session."""
    return AppointmentService(db, directory=directory)


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Identity:
    """
    Resolve the caller's (role, id) pair from the bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Caller identity

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise _credentials_error("Not authenticated")

    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise _credentials_error()

    subject = payload.get("sub")
    role = payload.get("role")
    if not isinstance(subject, str) or not isinstance(role, str):
        raise _credentials_error()

    try:
        return Identity(role=Role(role), id=UUID(subject))
    except ValueError:
        raise _credentials_error("Invalid identity in token")


def require_role(role: Role):
    """Build a dependency that only admits callers with ``role``."""

    async def dependency(
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        if identity.role is not role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Only {role.value}s can perform this action",
            )
        return identity

    return dependency


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
CurrentDoctor = Annotated[Identity, Depends(require_role(Role.DOCTOR))]
CurrentClinic = Annotated[Identity, Depends(require_role(Role.CLINIC))]
Directory = Annotated[DirectoryService, Depends(get_directory_service)]
Appointments = Annotated[AppointmentService, Depends(get_appointment_service)]
