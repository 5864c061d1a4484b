"""Tests for name-based login."""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import insert

from app.core.security import create_access_token, decode_access_token
from app.models import clinics


@pytest.mark.asyncio
async def test_login_doctor(client: AsyncClient, doctor: dict) -> None:
    """Names match case-insensitively and the token carries the role."""
    response = await client.post("/api/v1/auth/login", json={"name": "dr. alice SMITH"})
    assert response.status_code == 200
    data = response.json()
    assert data["role"] == "doctor"
    assert data["id"] == str(doctor["id"])
    assert data["name"] == "Dr. Alice Smith"
    assert data["token_type"] == "bearer"

    payload = decode_access_token(data["access_token"])
    assert payload["sub"] == str(doctor["id"])
    assert payload["role"] == "doctor"


@pytest.mark.asyncio
async def test_login_clinic(client: AsyncClient, clinic: dict) -> None:
    response = await client.post("/api/v1/auth/login", json={"name": "smile dental care"})
    assert response.status_code == 200
    assert response.json()["role"] == "clinic"
    assert response.json()["id"] == str(clinic["id"])


@pytest.mark.asyncio
async def test_login_prefers_doctor(client: AsyncClient, db_session, doctor: dict) -> None:
    """A clinic sharing a doctor's name does not shadow the doctor."""
    await db_session.execute(insert(clinics).values(name=doctor["name"]))
    await db_session.commit()

    response = await client.post("/api/v1/auth/login", json={"name": doctor["name"]})
    assert response.json()["role"] == "doctor"


@pytest.mark.asyncio
async def test_login_unknown_name(client: AsyncClient, doctor: dict) -> None:
    response = await client.post("/api/v1/auth/login", json={"name": "Nobody"})
    assert response.status_code == 401

    response = await client.post("/api/v1/auth/login", json={"name": "   "})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me(client: AsyncClient, clinic: dict, clinic_headers: dict) -> None:
    response = await client.get("/api/v1/auth/me", headers=clinic_headers)
    assert response.status_code == 200
    assert response.json() == {"role": "clinic", "id": str(clinic["id"]), "name": clinic["name"]}


@pytest.mark.asyncio
async def test_me_for_deleted_entity(client: AsyncClient, db_session) -> None:
    token = create_access_token({"sub": str(uuid4()), "role": "doctor"})
    response = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_token_with_unknown_role(client: AsyncClient, db_session) -> None:
    token = create_access_token({"sub": str(uuid4()), "role": "admin"})
    response = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401
