"""Directory of doctors, clinics and patients."""

from uuid import UUID

import structlog
from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import UnauthorizedException
from app.core.redis_client import CacheManager
from app.database import store_errors
from app.models.clinics import clinics
from app.models.doctors import doctors
from app.models.patients import patients
from app.schemas.auth import Identity, Role
from app.schemas.clinics import PatientCreate
from app.schemas.doctors import DoctorNetworkResponse, DoctorResponse
from app.services.appointment_store import AppointmentStore

logger = structlog.get_logger()


class DirectoryService:
    """Reads reference entities and resolves caller identities.

    Doctor and clinic records are cached in Redis; they are owned by the
    surrounding directory and change rarely. Anything derived from
    appointments is always read from the store.
    """

    DOCTOR_LIST_CACHE_KEY = "doctor:list"

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_doctor_cache_key(doctor_id: UUID) -> str:
        """Generate cache key for doctor."""
        return f"doctor:{doctor_id}"

    @staticmethod
    def _get_clinic_cache_key(clinic_id: UUID) -> str:
        """Generate cache key for clinic."""
        return f"clinic:{clinic_id}"

    async def resolve_login(self, db: AsyncSession, name: str) -> tuple[Identity, str]:
        """
        Resolve a display name to a doctor or clinic identity.

        Names match case-insensitively; doctors are checked before clinics.

        Args:
            db: Database session
            name: Display name typed at login

        Returns:
            Tuple of (identity, canonical display name)

        Raises:
            UnauthorizedException: If no doctor or clinic has that name
        """
        normalized = name.strip().lower()
        if not normalized:
            raise UnauthorizedException("Please enter a name")

        for role, table in ((Role.DOCTOR, doctors), (Role.CLINIC, clinics)):
            query = (
                select(table.c.id, table.c.name)
                .where(func.lower(table.c.name) == normalized)
                .order_by(table.c.created_at.asc())
                .limit(1)
            )
            async with store_errors(db, "directory.resolve_login"):
                result = await db.execute(query)
                row = result.mappings().first()
            if row:
                logger.info("identity_resolved", role=role.value, entity_id=str(row["id"]))
                return Identity(role=role, id=row["id"]), row["name"]

        logger.info("identity_not_found")
        raise UnauthorizedException("No doctor or clinic found with that name")

    async def get_doctor(self, db: AsyncSession, doctor_id: UUID) -> dict | None:
        """Get doctor by ID with caching."""
        if self.cache:
            cached = self.cache.get_json(self._get_doctor_cache_key(doctor_id))
            if cached:
                return cached

        query = select(doctors.c.id, doctors.c.name, doctors.c.specialty).where(
            doctors.c.id == doctor_id
        )
        async with store_errors(db, "directory.get_doctor"):
            result = await db.execute(query)
            doctor = result.mappings().first()

        if not doctor:
            return None

        doctor_dict = dict(doctor)

        if self.cache:
            self.cache.set_json(
                self._get_doctor_cache_key(doctor_id),
                doctor_dict,
                ttl=settings.directory_cache_ttl,
            )

        return doctor_dict

    async def list_doctors(self, db: AsyncSession) -> list[dict]:
        """List every doctor ordered by name, with caching."""
        if self.cache:
            cached = self.cache.get_json(self.DOCTOR_LIST_CACHE_KEY)
            if cached is not None:
                return cached

        query = select(doctors.c.id, doctors.c.name, doctors.c.specialty).order_by(
            doctors.c.name.asc()
        )
        async with store_errors(db, "directory.list_doctors"):
            result = await db.execute(query)
            doctor_list = [dict(d) for d in result.mappings().all()]

        if self.cache:
            self.cache.set_json(
                self.DOCTOR_LIST_CACHE_KEY,
                doctor_list,
                ttl=settings.directory_list_cache_ttl,
            )

        return doctor_list

    async def get_clinic(self, db: AsyncSession, clinic_id: UUID) -> dict | None:
        """Get clinic by ID with caching."""
        if self.cache:
            cached = self.cache.get_json(self._get_clinic_cache_key(clinic_id))
            if cached:
                return cached

        async with store_errors(db, "directory.get_clinic"):
            result = await db.execute(
                select(clinics.c.id, clinics.c.name).where(clinics.c.id == clinic_id)
            )
            clinic = result.mappings().first()

        if not clinic:
            return None

        clinic_dict = dict(clinic)

        if self.cache:
            self.cache.set_json(
                self._get_clinic_cache_key(clinic_id),
                clinic_dict,
                ttl=settings.directory_cache_ttl,
            )

        return clinic_dict

    def invalidate(self) -> None:
        """Drop cached directory entries after the directory was reseeded."""
        if self.cache:
            self.cache.delete_pattern("doctor:*")
            self.cache.delete_pattern("clinic:*")

    async def get_patient(self, db: AsyncSession, patient_id: UUID) -> dict | None:
        """Get patient by ID."""
        async with store_errors(db, "directory.get_patient"):
            result = await db.execute(select(patients).where(patients.c.id == patient_id))
            patient = result.mappings().first()
        return dict(patient) if patient else None

    async def list_patients(self, db: AsyncSession, clinic_id: UUID) -> list[dict]:
        """List the clinic's patients ordered by name."""
        query = (
            select(patients)
            .where(patients.c.clinic_id == clinic_id)
            .order_by(patients.c.name.asc())
        )
        async with store_errors(db, "directory.list_patients"):
            result = await db.execute(query)
            return [dict(p) for p in result.mappings().all()]

    async def add_patient(
        self, db: AsyncSession, clinic_id: UUID, patient_data: PatientCreate
    ) -> dict:
        """Register a patient with the clinic."""
        query = (
            insert(patients)
            .values(clinic_id=clinic_id, name=patient_data.name)
            .returning(patients)
        )
        async with store_errors(
            db, "directory.add_patient", integrity_message="Clinic is not registered"
        ):
            result = await db.execute(query)
            patient = result.mappings().one()
            await db.commit()

        logger.info("patient_added", clinic_id=str(clinic_id), patient_id=str(patient["id"]))
        return dict(patient)

    async def partition_doctors(self, db: AsyncSession, clinic_id: UUID) -> DoctorNetworkResponse:
        """
        Split doctors into in-network and out-of-network for a clinic.

        A doctor is in-network when they hold at least one booked appointment
        with the clinic. The split is rebuilt from current bookings on every
        call.

        Args:
            db: Database session
            clinic_id: Clinic ID

        Returns:
            Both doctor lists, each ordered by name
        """
        booked_ids = await AppointmentStore(db).booked_doctor_ids(clinic_id)
        doctor_list = [DoctorResponse.model_validate(d) for d in await self.list_doctors(db)]

        return DoctorNetworkResponse(
            in_network=[d for d in doctor_list if d.id in booked_ids],
            out_of_network=[d for d in doctor_list if d.id not in booked_ids],
        )
