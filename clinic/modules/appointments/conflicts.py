# clinic/modules/appointments/conflicts.py
"""
Booking legality checks.

Two questions are answered here:

* is (doctor, date, time) inside the doctor's weekly availability window?
* does (doctor, date, time) collide with another active appointment?

Appointments have no duration field; every booking is treated as a fixed
slot of settings.SLOT_MINUTES, so two active bookings of one doctor collide
when their start times are strictly less than that many minutes apart.
Only bookings on the same calendar day are compared: two bookings ten
minutes apart on either side of midnight are not detected.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.config import settings
from clinic.modules.appointments.errors import InvalidTime
from clinic.modules.appointments.lifecycle import ACTIVE_STATUSES
from clinic.modules.appointments.models import Appointment
from clinic.modules.doctors.models import WEEKDAYS, DoctorAvailability

logger = logging.getLogger(__name__)

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def weekday_name(day: date) -> str:
    """English weekday name, independent of the process locale."""
    return WEEKDAYS[day.weekday()]


def parse_hhmm(value: Optional[str]) -> Optional[time]:
    """Parse a strict 24h HH:MM string; None if malformed."""
    if not isinstance(value, str):
        return None
    match = HHMM_RE.match(value.strip())
    if not match:
        return None
    return time(int(match.group(1)), int(match.group(2)))


def require_hhmm(value: Optional[str]) -> str:
    """Return the normalized HH:MM string or raise InvalidTime."""
    parsed = parse_hhmm(value)
    if parsed is None:
        raise InvalidTime(f"Invalid time {value!r}; expected HH:MM")
    return parsed.strftime("%H:%M")


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def within_window(day: date, requested: time, start: time, end: time) -> bool:
    """start <= requested <= end, all anchored on the same day."""
    at = datetime.combine(day, requested)
    return datetime.combine(day, start) <= at <= datetime.combine(day, end)


def too_close(day: date, first: time, second: time, minutes: Optional[int] = None) -> bool:
    separation = timedelta(minutes=minutes or settings.SLOT_MINUTES)
    delta = datetime.combine(day, first) - datetime.combine(day, second)
    return abs(delta) < separation


def slot_key(doctor_id: UUID, day: date, hhmm: str) -> str:
    """
    Normalized reservation key: doctor, date and the start of the
    SLOT_MINUTES bucket containing hhmm. Two times in one bucket are always
    closer than SLOT_MINUTES, so a unique key never rejects a legal booking.
    """
    parsed = parse_hhmm(hhmm)
    if parsed is None:
        raise InvalidTime(f"Invalid time {hhmm!r}; expected HH:MM")
    minutes = parsed.hour * 60 + parsed.minute
    bucket = minutes - minutes % settings.SLOT_MINUTES
    return f"{doctor_id}:{day.isoformat()}:{bucket // 60:02d}:{bucket % 60:02d}"


# ---------------------------------------------------------------------------
# Store-backed checks
# ---------------------------------------------------------------------------

async def get_availability_entry(
    session: AsyncSession, doctor_id: UUID, day_name: str
) -> Optional[DoctorAvailability]:
    stmt = select(DoctorAvailability).where(
        DoctorAvailability.doctor_id == doctor_id,
        DoctorAvailability.day_of_week == day_name,
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def is_within_availability(
    session: AsyncSession, doctor_id: UUID, day: date, hhmm: Optional[str]
) -> bool:
    """
    True if the doctor works on day's weekday and hhmm falls inside the
    declared window (inclusive on both ends).

    A malformed hhmm degrades to a day-only check.
    """
    entry = await get_availability_entry(session, doctor_id, weekday_name(day))
    if entry is None or not entry.enabled:
        return False

    requested = parse_hhmm(hhmm)
    if requested is None:
        # TODO: reject malformed times here instead of falling back to a day-only check
        logger.warning(
            "Malformed time %r for doctor %s on %s; checking day availability only",
            hhmm, doctor_id, day,
        )
        return True

    return within_window(day, requested, entry.start_time, entry.end_time)


async def find_conflicts(
    session: AsyncSession,
    doctor_id: UUID,
    day: date,
    hhmm: str,
    *,
    exclude_id: Optional[UUID] = None,
) -> List[Appointment]:
    """
    Active appointments of the doctor on the same calendar day whose start
    is strictly closer than SLOT_MINUTES to hhmm.
    """
    requested = parse_hhmm(hhmm)
    if requested is None:
        raise InvalidTime(f"Invalid time {hhmm!r}; expected HH:MM")

    stmt = select(Appointment).where(
        Appointment.doctor_id == doctor_id,
        Appointment.requested_date == day,
        Appointment.status.in_(ACTIVE_STATUSES),
    )
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)

    rows = (await session.execute(stmt)).scalars().all()
    conflicts: List[Appointment] = []
    for existing in rows:
        existing_time = parse_hhmm(existing.requested_time)
        if existing_time is None:
            logger.warning("Appointment %s has malformed time %r", existing.id, existing.requested_time)
            continue
        if too_close(day, requested, existing_time):
            conflicts.append(existing)
    return conflicts


async def has_conflict(
    session: AsyncSession,
    doctor_id: UUID,
    day: date,
    hhmm: str,
    *,
    exclude_id: Optional[UUID] = None,
) -> bool:
    return bool(await find_conflicts(session, doctor_id, day, hhmm, exclude_id=exclude_id))
