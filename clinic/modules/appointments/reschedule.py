# clinic/modules/appointments/reschedule.py
"""
Reschedule proposals.

Single path: either party proposes a new date/time for a CONFIRMED
appointment; the proposal waits as PENDING until either party approves or
rejects it. Approval moves the appointment and marks it RESCHEDULED.

Bulk path: a doctor sweeps every upcoming active appointment on one weekday.
One proposal is recorded per appointment; whether the appointments are
marked RESCHEDULED right away depends on
settings.BULK_RESCHEDULE_REQUIRES_PATIENT_APPROVAL.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.config import settings
from clinic.db.base import utcnow
from clinic.modules.appointments.conflicts import require_hhmm
from clinic.modules.appointments.errors import (
    AppointmentNotConfirmed,
    InvalidDayOfWeek,
    RescheduleAlreadyResolved,
    RescheduleNotFound,
)
from clinic.modules.appointments.lifecycle import check_transition, ensure_mutable
from clinic.modules.appointments.locks import lock_doctor_calendar
from clinic.modules.appointments.models import (
    AppointmentStatus,
    ProposedBy,
    RescheduleRequest,
    RescheduleStatus,
)
from clinic.modules.appointments.schemas import (
    RescheduleCreateRequest,
    ReschedulePublic,
    RescheduleResolveRequest,
)
from clinic.modules.appointments.service import (
    append_notes,
    counterparty_of,
    ensure_party,
    load_appointment,
)
from clinic.modules.doctors.models import WEEKDAYS
from clinic.modules.doctors.schemas import DayRescheduleRequest, DayRescheduleResult
from clinic.modules.doctors.service import upcoming_by_weekday
from clinic.modules.log import write_audit_log
from clinic.modules.notifications.models import NotificationType
from clinic.modules.notifications.service import notify
from clinic.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


def _to_public(rr: RescheduleRequest) -> ReschedulePublic:
    return ReschedulePublic.model_validate(rr)


def _proposed_by(user: User) -> ProposedBy:
    return ProposedBy.DOCTOR if user.role == UserRole.DOCTOR.value else ProposedBy.PATIENT


async def request_reschedule_svc(
    session: AsyncSession,
    appointment_id: UUID,
    payload: RescheduleCreateRequest,
    current_user: User,
) -> ReschedulePublic:
    appt = await load_appointment(session, appointment_id)
    ensure_party(appt, current_user)
    if appt.status != AppointmentStatus.CONFIRMED:
        raise AppointmentNotConfirmed()

    new_time = require_hhmm(payload.new_time)
    rr = RescheduleRequest(
        appointment_id=appt.id,
        requested_by=current_user.id,
        requested_by_role=current_user.role,
        current_date=appt.requested_date,
        current_time=appt.requested_time,
        new_date=payload.new_date,
        new_time=new_time,
        reason=payload.reason,
        notes=payload.notes,
        proposed_by=_proposed_by(current_user),
        status=RescheduleStatus.PENDING,
    )
    session.add(rr)
    await session.flush()

    await write_audit_log(
        session,
        current_user.id,
        "REQUEST_RESCHEDULE",
        f"Proposed moving appointment {appt.id} to {payload.new_date} {new_time}",
    )
    await notify(
        session,
        user_id=counterparty_of(appt, current_user),
        type=NotificationType.RESCHEDULE_REQUESTED,
        title="Reschedule requested",
        message=(
            f"{current_user.full_name} proposed moving the appointment on "
            f"{appt.requested_date} to {payload.new_date} at {new_time}"
        ),
        related_id=rr.id,
        related_type="reschedule",
    )
    logger.info("Reschedule %s requested for appointment %s", rr.id, appt.id)
    return _to_public(rr)


async def resolve_reschedule_svc(
    session: AsyncSession,
    reschedule_id: UUID,
    payload: RescheduleResolveRequest,
    current_user: User,
) -> ReschedulePublic:
    """
    Approve or reject a pending proposal. Approval moves the appointment to
    the proposed date/time, marks it RESCHEDULED and releases its slot; the
    doctor re-confirms it explicitly afterwards.
    """
    rr = await session.get(RescheduleRequest, reschedule_id)
    if rr is None:
        raise RescheduleNotFound()
    appt = await load_appointment(session, rr.appointment_id)
    ensure_party(appt, current_user)

    if rr.status != RescheduleStatus.PENDING:
        raise RescheduleAlreadyResolved()
    ensure_mutable(appt.status)

    rr.status = payload.status
    rr.resolved_at = utcnow()
    rr.resolved_by = current_user.id
    rr.notes = append_notes(rr.notes, payload.notes)

    if payload.status == RescheduleStatus.APPROVED:
        if check_transition(appt.status, AppointmentStatus.RESCHEDULED):
            appt.status = AppointmentStatus.RESCHEDULED
        appt.requested_date = rr.new_date
        appt.requested_time = rr.new_time
        appt.slot_key = None
    await session.flush()

    await write_audit_log(
        session,
        current_user.id,
        "UPDATE_RESCHEDULE_STATUS",
        f"Reschedule {rr.id} {payload.status.value.lower()} for appointment {appt.id}",
    )
    await notify(
        session,
        user_id=counterparty_of(appt, current_user),
        type=NotificationType.RESCHEDULE_RESOLVED,
        title=f"Reschedule {payload.status.value.lower()}",
        message=(
            f"The proposal to move your appointment to {rr.new_date} at {rr.new_time} "
            f"was {payload.status.value.lower()}"
        ),
        related_id=rr.id,
        related_type="reschedule",
    )
    logger.info("Reschedule %s resolved as %s", rr.id, payload.status.value)
    return _to_public(rr)


async def list_reschedules_svc(
    session: AsyncSession, appointment_id: UUID, current_user: User
) -> List[ReschedulePublic]:
    appt = await load_appointment(session, appointment_id)
    ensure_party(appt, current_user, allow_admin=True)
    stmt = (
        select(RescheduleRequest)
        .where(RescheduleRequest.appointment_id == appt.id)
        .order_by(RescheduleRequest.created_at.desc(), RescheduleRequest.id)
    )
    rows = (await session.execute(stmt)).scalars().all()
    return [_to_public(rr) for rr in rows]


async def reschedule_day_svc(
    session: AsyncSession,
    doctor: User,
    payload: DayRescheduleRequest,
    today: Optional[date] = None,
) -> DayRescheduleResult:
    """
    Propose new times for every upcoming active appointment of the doctor
    on payload.day_of_week. Without a proposed date/time each record
    carries the appointment's own date/time as a placeholder.

    The sweep reads and writes while the doctor's calendar is locked and
    commits before releasing it, so a booking made meanwhile is either
    swept or lands after the sweep.
    """
    if payload.day_of_week not in WEEKDAYS:
        raise InvalidDayOfWeek(f"Unknown weekday {payload.day_of_week!r}")
    new_time = require_hhmm(payload.new_time) if payload.new_time is not None else None
    needs_approval = settings.BULK_RESCHEDULE_REQUIRES_PATIENT_APPROVAL

    async with lock_doctor_calendar(session, doctor.id):
        upcoming = await upcoming_by_weekday(session, doctor.id, today)
        affected = upcoming.get(payload.day_of_week, [])

        for appt in affected:
            target_date = payload.new_date or appt.requested_date
            target_time = new_time or appt.requested_time
            session.add(
                RescheduleRequest(
                    appointment_id=appt.id,
                    requested_by=doctor.id,
                    requested_by_role=doctor.role,
                    current_date=appt.requested_date,
                    current_time=appt.requested_time,
                    new_date=target_date,
                    new_time=target_time,
                    reason=payload.reason,
                    proposed_by=ProposedBy.DOCTOR,
                    status=RescheduleStatus.PENDING,
                )
            )
            if not needs_approval:
                check_transition(appt.status, AppointmentStatus.RESCHEDULED)
                appt.status = AppointmentStatus.RESCHEDULED
                appt.slot_key = None

            await notify(
                session,
                user_id=appt.patient_id,
                type=NotificationType.DAY_RESCHEDULED,
                title="Appointment needs rescheduling",
                message=(
                    f"Your appointment on {appt.requested_date} at {appt.requested_time} "
                    f"needs to be rescheduled: {payload.reason}. "
                    f"Proposed new time: {target_date} at {target_time}"
                ),
                related_id=appt.id,
                related_type="appointment",
            )
        await session.flush()

        await write_audit_log(
            session,
            doctor.id,
            "RESCHEDULE_DAY",
            f"Requested reschedule of {len(affected)} appointment(s) on {payload.day_of_week}",
        )
    logger.info(
        "Doctor %s swept %d appointment(s) on %s (approval required: %s)",
        doctor.id, len(affected), payload.day_of_week, needs_approval,
    )
    return DayRescheduleResult(
        rescheduled_count=len(affected),
        requires_patient_approval=needs_approval,
    )
