# clinic/modules/doctors/repository.py
from __future__ import annotations

from datetime import date, time
from typing import Dict, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.modules.appointments.lifecycle import ACTIVE_STATUSES
from clinic.modules.appointments.models import Appointment
from clinic.modules.doctors.models import DoctorAvailability


async def list_by_doctor(
    db: AsyncSession, *, doctor_id: UUID
) -> Dict[str, DoctorAvailability]:
    """Stored weekly entries of a doctor keyed by weekday name."""
    rows = await db.execute(
        select(DoctorAvailability).where(DoctorAvailability.doctor_id == doctor_id)
    )
    return {entry.day_of_week: entry for entry in rows.scalars().all()}


async def upsert_availability(
    db: AsyncSession,
    *,
    doctor_id: UUID,
    day_of_week: str,
    enabled: bool,
    start_time: time,
    end_time: time,
    existing: Dict[str, DoctorAvailability],
) -> DoctorAvailability:
    """
    Update the (doctor, weekday) row if present, insert it otherwise.
    `existing` is the result of list_by_doctor for the same doctor.
    """
    entry = existing.get(day_of_week)
    if entry is None:
        entry = DoctorAvailability(doctor_id=doctor_id, day_of_week=day_of_week)
        db.add(entry)
        existing[day_of_week] = entry
    entry.enabled = enabled
    entry.start_time = start_time
    entry.end_time = end_time
    return entry


async def list_active_between(
    db: AsyncSession, *, doctor_id: UUID, start: date, end: date
) -> Sequence[Appointment]:
    """Doctor's PENDING/CONFIRMED appointments dated start..end inclusive."""
    rows = await db.execute(
        select(Appointment)
        .where(
            Appointment.doctor_id == doctor_id,
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.requested_date >= start,
            Appointment.requested_date <= end,
        )
        .order_by(Appointment.requested_date, Appointment.requested_time)
    )
    return rows.scalars().all()
