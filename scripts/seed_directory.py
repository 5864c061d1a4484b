#!/usr/bin/env python3
"""
Seed the directory with doctors and clinics.

Usage:
    python scripts/seed_directory.py
    python scripts/seed_directory.py --doctor "Dr. Jane Roe:Cardiology" --clinic "Downtown Clinic"

Without arguments the demo directory is inserted. Names that already exist
(case-insensitive) are skipped, so the script can be re-run safely.
"""

import argparse
import asyncio

import dotenv
from sqlalchemy import func, insert, select

dotenv.load_dotenv()

from app.core.redis_client import CacheManager, close_redis_connection, get_redis_client  # noqa: E402
from app.database import AsyncSessionLocal, engine  # noqa: E402
from app.models import clinics, doctors  # noqa: E402
from app.services.directory_service import DirectoryService  # noqa: E402

DEMO_DOCTORS = [
    ("Dr. Alice Smith", "General Dentistry"),
    ("Dr. John Doe", "Orthodontics"),
    ("Dr. Sarah Lee", None),
]

DEMO_CLINICS = [
    "Smile Dental Care",
    "Bright Smiles Clinic",
    "Healthy Teeth Center",
]


def parse_doctor(value: str) -> tuple[str, str | None]:
    """Parse ``name[:specialty]``."""
    name, _, specialty = value.partition(":")
    if not name.strip():
        raise argparse.ArgumentTypeError("Doctor name must not be empty")
    return name.strip(), specialty.strip() or None


async def _exists(session, table, name: str) -> bool:
    result = await session.execute(
        select(table.c.id).where(func.lower(table.c.name) == name.lower()).limit(1)
    )
    return result.first() is not None


async def seed(doctor_entries: list[tuple[str, str | None]], clinic_names: list[str]) -> None:
    """Insert missing doctors and clinics, then drop cached directory entries."""
    added = 0
    async with AsyncSessionLocal() as session:
        for name, specialty in doctor_entries:
            if await _exists(session, doctors, name):
                print(f"- doctor '{name}' already exists")
                continue
            await session.execute(insert(doctors).values(name=name, specialty=specialty))
            added += 1
            print(f"+ doctor '{name}'")

        for name in clinic_names:
            if await _exists(session, clinics, name):
                print(f"- clinic '{name}' already exists")
                continue
            await session.execute(insert(clinics).values(name=name))
            added += 1
            print(f"+ clinic '{name}'")

        await session.commit()

    DirectoryService(CacheManager(get_redis_client())).invalidate()
    close_redis_connection()
    await engine.dispose()

    print(f"✓ Directory seeded ({added} new entries)")


def main() -> None:
    """Parse arguments and seed the directory."""
    parser = argparse.ArgumentParser(description="Seed doctors and clinics")
    parser.add_argument(
        "--doctor",
        action="append",
        type=parse_doctor,
        default=[],
        help="Doctor as 'Name' or 'Name:Specialty' (repeatable)",
    )
    parser.add_argument(
        "--clinic",
        action="append",
        default=[],
        help="Clinic name (repeatable)",
    )
    args = parser.parse_args()

    if not args.doctor and not args.clinic:
        asyncio.run(seed(DEMO_DOCTORS, DEMO_CLINICS))
    else:
        asyncio.run(seed(args.doctor, args.clinic))


if __name__ == "__main__":
    main()
