"""Database configuration and connection management."""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import pool, text
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings
from app.core.exceptions import StoreUnavailableException, ValidationException

logger = structlog.get_logger()


def to_async_url(url: str) -> str:
    """Convert a sync database URL to its async driver equivalent."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def engine_options(url: str) -> dict[str, Any]:
    """Pooling options for the given database URL."""
    if url.startswith("sqlite"):
        # SQLite serializes writers itself; wait on its lock instead of failing
        return {"poolclass": pool.NullPool, "connect_args": {"timeout": 30}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
    }


DATABASE_URL = to_async_url(settings.database_url)

# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=settings.debug,
    **engine_options(DATABASE_URL),
)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


async def _rollback(db: AsyncSession, operation: str) -> None:
    """Roll back after a failed statement; a dead connection cannot roll back."""
    try:
        await db.rollback()
    except (OperationalError, InterfaceError, TimeoutError) as e:
        logger.warning("store_rollback_failed", operation=operation, error=str(e))


@asynccontextmanager
async def store_errors(
    db: AsyncSession,
    operation: str,
    integrity_message: str = "Request references an unknown record",
) -> AsyncIterator[None]:
    """
    Translate driver failures raised inside the block into store errors.

    Constraint violations become ``ValidationException``. Lost connections,
    driver interface errors and timeouts become ``StoreUnavailableException``,
    which tells the caller the request did not take effect and may be retried.

    Args:
        db: Session the block runs statements on
        operation: Name logged with the failure
        integrity_message: Message for constraint violations
    """
    try:
        yield
    except IntegrityError as e:
        await _rollback(db, operation)
        logger.warning("store_integrity_error", operation=operation, error=str(e.orig))
        raise ValidationException(integrity_message) from e
    except (OperationalError, InterfaceError, TimeoutError) as e:
        await _rollback(db, operation)
        logger.error("store_unavailable", operation=operation, error=str(e))
        raise StoreUnavailableException() from e
