import os
import sys
import tempfile
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

# Without a configured database the suite runs against a throwaway SQLite file
_SQLITE_TEST_FILE = os.path.join(tempfile.gettempdir(), f"slotbook_test_{os.getpid()}.db")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_SQLITE_TEST_FILE}")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_FORMAT", "console")

from app.config import settings  # noqa: E402
from app.core.lifecycle import is_consistent  # noqa: E402
from app.core.redis_client import CacheManager  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.database import get_db, to_async_url  # noqa: E402
from app.dependencies import get_cache_manager  # noqa: E402
from app.main import app  # noqa: E402
from app.models import appointments, clinics, doctors, metadata, patients  # noqa: E402
from app.schemas.auth import Role  # noqa: E402

# Test database URL - MUST be different from production
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or f"sqlite:///{_SQLITE_TEST_FILE}"

# Safety check: prevent running tests against production database
if settings.database_url == TEST_DATABASE_URL and not settings.is_sqlite:
    print("\n❌ CRITICAL ERROR: Test database URL is same as production database!")
    print("This would DROP all production data during tests.")
    print("Please set TEST_DATABASE_URL to a separate test database in .env")
    sys.exit(1)

TEST_DATABASE_URL = to_async_url(TEST_DATABASE_URL)

# Use NullPool so every session gets its own connection; concurrent claims
# then contend in the database rather than on a shared connection
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
    connect_args={"timeout": 30} if TEST_DATABASE_URL.startswith("sqlite") else {},
)

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on freshly created tables."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    # Drop tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Session factory for tests that need one connection per concurrent caller."""
    return TestSessionLocal


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in that always misses."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.keys.return_value = []
    return redis_client


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: CacheManager(mock_redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _insert(session: AsyncSession, table, **values: Any) -> dict[str, Any]:
    result = await session.execute(insert(table).values(**values).returning(table))
    row = dict(result.mappings().one())
    await session.commit()
    return row


@pytest_asyncio.fixture
async def clinic(db_session: AsyncSession) -> dict:
    """Create a clinic in the database."""
    return await _insert(db_session, clinics, name="Smile Dental Care")


@pytest_asyncio.fixture
async def other_clinic(db_session: AsyncSession) -> dict:
    """Create a second, unrelated clinic."""
    return await _insert(db_session, clinics, name="Bright Smiles Clinic")


@pytest_asyncio.fixture
async def doctor(db_session: AsyncSession) -> dict:
    """Create a doctor in the database."""
    return await _insert(
        db_session, doctors, name="Dr. Alice Smith", specialty="General Dentistry"
    )


@pytest_asyncio.fixture
async def other_doctor(db_session: AsyncSession) -> dict:
    """Create a second doctor in the database."""
    return await _insert(db_session, doctors, name="Dr. John Doe", specialty="Orthodontics")


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession, clinic: dict) -> dict:
    """Create a patient registered with ``clinic``."""
    return await _insert(db_session, patients, clinic_id=clinic["id"], name="Jamie Rivera")


@pytest.fixture
def slot_date() -> datetime:
    """A timezone-aware slot time one day ahead."""
    return (datetime.now(UTC) + timedelta(days=1)).replace(microsecond=0)


@pytest.fixture
def make_appointment(
    db_session: AsyncSession,
    clinic: dict,
    patient: dict,
    slot_date: datetime,
) -> Callable:
    """Factory inserting appointments straight into the store."""

    async def factory(**overrides: Any) -> dict[str, Any]:
        values = {
            "clinic_id": clinic["id"],
            "patient_id": patient["id"],
            "doctor_id": None,
            "date": slot_date,
            "notes": None,
            "status": "open",
        }
        values.update(overrides)
        return await _insert(db_session, appointments, **values)

    return factory


def make_auth_headers(role: Role, entity_id: UUID) -> dict:
    """Create authentication headers for a doctor or clinic."""
    token = create_access_token(
        data={"sub": str(entity_id), "role": role.value},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def clinic_headers(clinic: dict) -> dict:
    """Authentication headers for ``clinic``."""
    return make_auth_headers(Role.CLINIC, clinic["id"])


@pytest.fixture
def other_clinic_headers(other_clinic: dict) -> dict:
    """Authentication headers for ``other_clinic``."""
    return make_auth_headers(Role.CLINIC, other_clinic["id"])


@pytest.fixture
def doctor_headers(doctor: dict) -> dict:
    """Authentication headers for ``doctor``."""
    return make_auth_headers(Role.DOCTOR, doctor["id"])


@pytest.fixture
def other_doctor_headers(other_doctor: dict) -> dict:
    """Authentication headers for ``other_doctor``."""
    return make_auth_headers(Role.DOCTOR, other_doctor["id"])



@pytest.fixture
def failing_session() -> Callable[[Exception], MagicMock]:
    """Factory for a session whose statements all fail with ``error``."""

    def factory(error: Exception) -> MagicMock:
        session = MagicMock(spec=AsyncSession)
        session.execute = AsyncMock(side_effect=error)
        session.commit = AsyncMock()
        session.rollback = AsyncMock()
        return session

    return factory


@pytest.fixture
def assert_consistent() -> Callable[[Any], None]:
    """Check that an appointment is booked exactly when it has a doctor."""

    def check(appointment: Any) -> None:
        row = appointment if isinstance(appointment, dict) else appointment.model_dump()
        assert is_consistent(row), f"booked status and doctor disagree: {row}"

    return check
