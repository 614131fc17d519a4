# clinic/routers/doctors.py
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.permission import require_roles
from clinic.db.sql import get_session
from clinic.dependencies import get_current_user
from clinic.modules.appointments.reschedule import reschedule_day_svc
from clinic.modules.doctors.schemas import (
    AvailabilityEntry,
    DayRescheduleRequest,
    DayRescheduleResult,
    WeeklyAvailabilityEntry,
    WeeklyAvailabilityUpdate,
)
from clinic.modules.doctors.service import (
    get_doctor_availability,
    get_weekly_availability,
    set_weekly_availability,
)
from clinic.modules.users.models import User

router = APIRouter(tags=["doctors"])


@router.get(
    "/doctors/me/availability",
    response_model=List[WeeklyAvailabilityEntry],
    summary="Weekly availability with upcoming appointments per weekday",
)
async def doctors_my_availability(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles("doctor")),
):
    return await get_weekly_availability(session, current_user.id)


@router.put(
    "/doctors/me/availability",
    response_model=List[WeeklyAvailabilityEntry],
    summary="Replace weekly availability",
    responses={
        409: {"description": "A disabled weekday still has upcoming appointments"},
    },
)
async def doctors_set_availability(
    payload: WeeklyAvailabilityUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles("doctor")),
):
    """
    Disabling a weekday is refused while active appointments fall on it in
    the upcoming window; the 409 body lists them per weekday and sets
    requiresReschedule. Unknown weekday names are ignored.
    """
    return await set_weekly_availability(session, current_user.id, payload.availability)


@router.post(
    "/doctors/me/availability/reschedule-day",
    response_model=DayRescheduleResult,
    summary="Reschedule every upcoming appointment on one weekday",
)
async def doctors_reschedule_day(
    payload: DayRescheduleRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles("doctor")),
):
    return await reschedule_day_svc(session, current_user, payload)


@router.get(
    "/doctors/{doctor_id}/availability",
    response_model=List[AvailabilityEntry],
    summary="A doctor's weekly hours",
)
async def doctors_availability(
    doctor_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await get_doctor_availability(session, doctor_id)
