"""Authentication endpoints."""

from fastapi import APIRouter, HTTPException, status

from app.core.security import create_access_token
from app.dependencies import CurrentIdentity, DatabaseSession, Directory
from app.schemas.auth import IdentityResponse, LoginRequest, LoginResponse, Role

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Log in by doctor or clinic name",
)
async def login(
    request: LoginRequest,
    db: DatabaseSession,
    directory: Directory,
) -> LoginResponse:
    """
    Resolve a doctor or clinic by display name and issue an access token.

    Names are matched case-insensitively; a doctor wins over a clinic with the
    same name. The token carries the resolved role and entity ID and is the
    only identity later calls trust.

    Raises:
        UnauthorizedException: If no doctor or clinic has that name
    """
    identity, name = await directory.resolve_login(db, request.name)
    token = create_access_token({"sub": str(identity.id), "role": identity.role.value})

    return LoginResponse(
        access_token=token,
        role=identity.role,
        id=identity.id,
        name=name,
    )


@router.get(
    "/me",
    response_model=IdentityResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Current identity",
)
async def me(
    identity: CurrentIdentity,
    db: DatabaseSession,
    directory: Directory,
) -> IdentityResponse:
    """Return the identity behind the bearer token."""
    if identity.role is Role.DOCTOR:
        entity = await directory.get_doctor(db, identity.id)
    else:
        entity = await directory.get_clinic(db, identity.id)

    if entity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{identity.role.value.capitalize()} no longer exists",
        )

    return IdentityResponse(role=identity.role, id=identity.id, name=entity["name"])
