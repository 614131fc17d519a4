# clinic/modules/doctors/service.py
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.config import settings
from clinic.db.base import utcnow
from clinic.modules.appointments.conflicts import format_hhmm, parse_hhmm, require_hhmm, weekday_name
from clinic.modules.appointments.errors import AvailabilityConflict, DoctorNotFound, InvalidWindow
from clinic.modules.appointments.locks import lock_doctor_calendar
from clinic.modules.appointments.models import Appointment
from clinic.modules.doctors import repository as doctors_repo
from clinic.modules.doctors.models import WEEKDAYS, DoctorAvailability
from clinic.modules.doctors.schemas import (
    AvailabilityEntry,
    AvailabilityEntryIn,
    UpcomingAppointment,
    WeeklyAvailabilityEntry,
)
from clinic.modules.log import write_audit_log
from clinic.modules.users import repository as users_repo
from clinic.modules.users.models import UserRole

logger = logging.getLogger(__name__)


def upcoming_window(today: Optional[date] = None) -> tuple[date, date]:
    """today .. today + UPCOMING_WINDOW_DAYS, both inclusive; today is the UTC date."""
    start = today or utcnow().date()
    return start, start + timedelta(days=settings.UPCOMING_WINDOW_DAYS)


async def upcoming_by_weekday(
    session: AsyncSession, doctor_id: UUID, today: Optional[date] = None
) -> Dict[str, List[Appointment]]:
    start, end = upcoming_window(today)
    rows = await doctors_repo.list_active_between(
        session, doctor_id=doctor_id, start=start, end=end
    )
    grouped: Dict[str, List[Appointment]] = defaultdict(list)
    for appt in rows:
        grouped[weekday_name(appt.requested_date)].append(appt)
    return grouped


def _entry_view(day: str, stored: Optional[DoctorAvailability]) -> dict:
    if stored is None:
        return {
            "day_of_week": day,
            "enabled": False,
            "start_time": format_hhmm(settings.DEFAULT_DAY_START),
            "end_time": format_hhmm(settings.DEFAULT_DAY_END),
        }
    return {
        "day_of_week": day,
        "enabled": stored.enabled,
        "start_time": format_hhmm(stored.start_time),
        "end_time": format_hhmm(stored.end_time),
    }


async def get_weekly_availability(
    session: AsyncSession, doctor_id: UUID, today: Optional[date] = None
) -> List[WeeklyAvailabilityEntry]:
    """
    Seven entries, Monday first. Weekdays without a stored row come back
    disabled with the default working hours. Each entry lists the doctor's
    upcoming active appointments falling on that weekday.
    """
    stored = await doctors_repo.list_by_doctor(session, doctor_id=doctor_id)
    upcoming = await upcoming_by_weekday(session, doctor_id, today)

    result: List[WeeklyAvailabilityEntry] = []
    for day in WEEKDAYS:
        appts = upcoming.get(day, [])
        result.append(
            WeeklyAvailabilityEntry(
                **_entry_view(day, stored.get(day)),
                has_upcoming_appointments=bool(appts),
                upcoming_appointments=[UpcomingAppointment.model_validate(a) for a in appts],
            )
        )
    return result


async def get_doctor_availability(
    session: AsyncSession, doctor_id: UUID
) -> List[AvailabilityEntry]:
    """Public weekly view of a doctor's hours, without appointment details."""
    if await users_repo.get_with_role(session, doctor_id, UserRole.DOCTOR) is None:
        raise DoctorNotFound()
    stored = await doctors_repo.list_by_doctor(session, doctor_id=doctor_id)
    return [AvailabilityEntry(**_entry_view(day, stored.get(day))) for day in WEEKDAYS]


async def set_weekly_availability(
    session: AsyncSession,
    doctor_id: UUID,
    entries: Sequence[AvailabilityEntryIn],
    today: Optional[date] = None,
) -> List[WeeklyAvailabilityEntry]:
    """
    Replace the doctor's weekly hours.

    Unknown weekday names are ignored. Disabling a weekday that still has
    upcoming active appointments rejects the whole update with
    AvailabilityConflict; otherwise every accepted entry is upserted and
    committed while the doctor's calendar is locked, so no booking can land
    on a day between the check and the write.
    """
    accepted: Dict[str, tuple] = {}
    for entry in entries:
        if entry.day_of_week not in WEEKDAYS:
            logger.info("Ignoring unknown weekday %r for doctor %s", entry.day_of_week, doctor_id)
            continue
        start = parse_hhmm(require_hhmm(entry.start_time))
        end = parse_hhmm(require_hhmm(entry.end_time))
        if entry.enabled and start >= end:
            raise InvalidWindow(f"{entry.day_of_week}: start time must be before end time")
        accepted[entry.day_of_week] = (entry.enabled, start, end)

    async with lock_doctor_calendar(session, doctor_id):
        disabled = [day for day, (enabled, _, _) in accepted.items() if not enabled]
        if disabled:
            upcoming = await upcoming_by_weekday(session, doctor_id, today)
            counts = {day: len(upcoming[day]) for day in disabled if upcoming.get(day)}
            if counts:
                raise AvailabilityConflict(counts)

        stored = await doctors_repo.list_by_doctor(session, doctor_id=doctor_id)
        for day, (enabled, start, end) in accepted.items():
            await doctors_repo.upsert_availability(
                session,
                doctor_id=doctor_id,
                day_of_week=day,
                enabled=enabled,
                start_time=start,
                end_time=end,
                existing=stored,
            )
        await session.flush()

        await write_audit_log(
            session,
            doctor_id,
            "UPDATE_AVAILABILITY",
            f"Updated availability for {', '.join(accepted) or 'no days'}",
        )
    logger.info("Doctor %s updated availability (%d entries)", doctor_id, len(accepted))
    return await get_weekly_availability(session, doctor_id, today)
