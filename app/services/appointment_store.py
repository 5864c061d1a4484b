"""Transactional appointment record store."""

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, insert, select, true, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.database import store_errors
from app.models.appointments import appointments
from app.schemas.appointments import AppointmentFilters, AppointmentStatus


@dataclass(frozen=True)
class ConditionalUpdateResult:
    """Outcome of a compare-and-set write.

    ``row`` is the stored appointment after the statement: the new row when
    ``applied`` is true, otherwise the row as it currently is (None if the
    appointment does not exist).
    """

    applied: bool
    row: dict[str, Any] | None


class AppointmentStore:
    """SQLAlchemy Core access to the appointments table."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    def _guard(self, operation: str) -> AbstractAsyncContextManager[None]:
        """Translate driver failures of one store operation into store errors."""
        return store_errors(
            self.db,
            f"appointments.{operation}",
            integrity_message="Appointment references an unknown record",
        )

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a new appointment.

        Args:
            values: Column values

        Returns:
            The stored row including generated fields
        """
        async with self._guard("insert"):
            stmt = insert(appointments).values(**values).returning(appointments)
            result = await self.db.execute(stmt)
            row = result.mappings().one()
            await self.db.commit()
        return dict(row)

    async def conditional_update(
        self,
        appointment_id: UUID,
        set_values: dict[str, Any],
        where_values: dict[str, Any],
    ) -> ConditionalUpdateResult:
        """
        Update an appointment only if its stored columns still match.

        The comparison and the write happen in one UPDATE statement, so the
        database serializes concurrent writers of the same row and at most one
        of them sees the original values.

        Args:
            appointment_id: Appointment ID
            set_values: Columns to write
            where_values: Columns that must hold these values at write time

        Returns:
            Whether the write applied, together with the current row
        """
        conditions = [appointments.c.id == appointment_id]
        conditions.extend(appointments.c[column] == value for column, value in where_values.items())

        async with self._guard("conditional_update"):
            stmt = (
                update(appointments)
                .where(and_(*conditions))
                .values(**set_values, updated_at=func.now())
                .returning(appointments)
            )
            result = await self.db.execute(stmt)
            row = result.mappings().first()

            if row is None:
                # Read back inside the same transaction only to report the state
                current = await self.db.execute(
                    select(appointments).where(appointments.c.id == appointment_id)
                )
                current_row = current.mappings().first()
                await self.db.commit()
                return ConditionalUpdateResult(
                    applied=False,
                    row=dict(current_row) if current_row else None,
                )

            # Commit the applied transition
            await self.db.commit()
        return ConditionalUpdateResult(applied=True, row=dict(row))

    async def get(self, appointment_id: UUID) -> dict[str, Any]:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        async with self._guard("get"):
            result = await self.db.execute(
                select(appointments).where(appointments.c.id == appointment_id)
            )
            row = result.mappings().first()

        if row is None:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def list_by_filter(self, filters: AppointmentFilters) -> tuple[int, list[dict[str, Any]]]:
        """
        List appointments matching filters, ordered by date ascending.

        Returns:
            Total number of matches and the requested page
        """
        # Build filter conditions
        conditions = []

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.clinic_id:
            conditions.append(appointments.c.clinic_id == filters.clinic_id)

        if filters.from_date:
            conditions.append(appointments.c.date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.date <= filters.to_date)

        where = and_(true(), *conditions)

        # Calculate pagination
        offset = (filters.page - 1) * filters.page_size

        async with self._guard("list_by_filter"):
            # Get total count
            count_stmt = select(func.count()).select_from(appointments).where(where)
            total_result = await self.db.execute(count_stmt)
            total = total_result.scalar() or 0

            # Same-date slots keep a stable order across pages
            stmt = (
                select(appointments)
                .where(where)
                .order_by(appointments.c.date.asc(), appointments.c.id.asc())
                .limit(filters.page_size)
                .offset(offset)
            )
            result = await self.db.execute(stmt)
            rows = result.mappings().all()

        return total, [dict(row) for row in rows]

    async def booked_doctor_ids(self, clinic_id: UUID) -> set[UUID]:
        """Doctors currently holding a booking with the clinic."""
        stmt = (
            select(appointments.c.doctor_id)
            .where(
                appointments.c.clinic_id == clinic_id,
                appointments.c.status == AppointmentStatus.BOOKED.value,
            )
            .distinct()
        )
        async with self._guard("booked_doctor_ids"):
            result = await self.db.execute(stmt)
            return {doctor_id for doctor_id in result.scalars().all() if doctor_id is not None}
