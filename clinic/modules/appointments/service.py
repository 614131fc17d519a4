# clinic/modules/appointments/service.py
from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.schemas import Pagination
from clinic.modules.appointments import conflicts
from clinic.modules.appointments.errors import (
    AppointmentNotFound,
    DoctorNotAvailable,
    NotAppointmentParty,
    NotOwnPatientId,
    OnlyPatientsCanBook,
    SlotConflict,
)
from clinic.modules.appointments.lifecycle import check_transition, is_active
from clinic.modules.appointments.locks import lock_doctor_calendar
from clinic.modules.appointments.models import Appointment, AppointmentStatus
from clinic.modules.appointments.schemas import (
    AppointmentCreateRequest,
    AppointmentPage,
    AppointmentPublic,
    CancelRequest,
    StatusUpdateRequest,
)
from clinic.modules.consultations.service import create_for_appointment
from clinic.modules.log import write_audit_log
from clinic.modules.notifications.models import NotificationType
from clinic.modules.notifications.service import notify
from clinic.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


def _to_public(appt: Appointment) -> AppointmentPublic:
    return AppointmentPublic.model_validate(appt)


def append_notes(existing: Optional[str], extra: Optional[str]) -> Optional[str]:
    if not extra:
        return existing
    return f"{existing}\n{extra}" if existing else extra


def ensure_party(appt: Appointment, user: User, *, allow_admin: bool = False) -> None:
    if allow_admin and user.role == UserRole.ADMIN.value:
        return
    if user.id not in (appt.patient_id, appt.doctor_id):
        raise NotAppointmentParty()


def counterparty_of(appt: Appointment, user: User) -> UUID:
    return appt.doctor_id if user.id == appt.patient_id else appt.patient_id


async def load_appointment(session: AsyncSession, appointment_id: UUID) -> Appointment:
    appt = await session.get(Appointment, appointment_id)
    if appt is None:
        raise AppointmentNotFound()
    return appt


@asynccontextmanager
async def reserve_slot(session: AsyncSession, doctor_id: UUID) -> AsyncIterator[User]:
    """
    Serialize booking decisions for one doctor.

    Runs the caller's checks and writes while the doctor's calendar is
    locked (see lock_doctor_calendar) and commits before releasing it. A
    unique violation on slot_key, the storage guard against double booking,
    surfaces as SlotConflict.

        async with reserve_slot(session, doctor_id) as doctor:
            ...check availability and conflicts, then write...
    """
    try:
        async with lock_doctor_calendar(session, doctor_id) as doctor:
            yield doctor
    except IntegrityError as exc:
        await session.rollback()
        if "slot_key" not in str(exc.orig):
            raise
        logger.warning("Slot key collision for doctor %s", doctor_id)
        raise SlotConflict() from exc


# CREATE
async def create_appointment_svc(
    session: AsyncSession,
    payload: AppointmentCreateRequest,
    current_user: User,
) -> AppointmentPublic:
    """
    Book a PENDING appointment for the calling patient.

    The time must be HH:MM, inside the doctor's window for that weekday and
    at least SLOT_MINUTES away from the doctor's other active bookings.
    """
    if current_user.role != UserRole.PATIENT.value:
        raise OnlyPatientsCanBook()
    if payload.patient_id != current_user.id:
        raise NotOwnPatientId()

    hhmm = conflicts.require_hhmm(payload.requested_time)
    day = payload.requested_date

    async with reserve_slot(session, payload.doctor_id) as doctor:
        if not await conflicts.is_within_availability(session, doctor.id, day, hhmm):
            raise DoctorNotAvailable(
                f"Doctor is not available on {conflicts.weekday_name(day)} at {hhmm}"
            )
        if await conflicts.has_conflict(session, doctor.id, day, hhmm):
            raise SlotConflict()

        appt = Appointment(
            patient_id=current_user.id,
            doctor_id=doctor.id,
            requested_date=day,
            requested_time=hhmm,
            reason=payload.reason,
            priority=payload.priority,
            notes=payload.notes,
            status=AppointmentStatus.PENDING,
            slot_key=conflicts.slot_key(doctor.id, day, hhmm),
        )
        session.add(appt)
        await session.flush()

        await write_audit_log(
            session,
            current_user.id,
            "CREATE_APPOINTMENT_REQUEST",
            f"Requested appointment {appt.id} with doctor {doctor.id} on {day} {hhmm}",
        )
        await notify(
            session,
            user_id=doctor.id,
            type=NotificationType.APPOINTMENT_REQUESTED,
            title="New appointment request",
            message=f"{current_user.full_name} requested an appointment on {day} at {hhmm}",
            related_id=appt.id,
            related_type="appointment",
        )

    logger.info("Appointment %s requested by patient %s", appt.id, current_user.id)
    return _to_public(appt)


# LIST
async def list_my_appointments_svc(
    session: AsyncSession,
    current_user: User,
    status: Optional[AppointmentStatus] = None,
    page: int = 1,
    limit: int = 20,
) -> AppointmentPage:
    """
    Appointments visible to the caller:
    - patient => own requests
    - doctor => requests addressed to them
    - admin => everything
    """
    cond = []
    if current_user.role == UserRole.PATIENT.value:
        cond.append(Appointment.patient_id == current_user.id)
    elif current_user.role == UserRole.DOCTOR.value:
        cond.append(Appointment.doctor_id == current_user.id)
    if status is not None:
        cond.append(Appointment.status == status)

    total_stmt = select(func.count()).select_from(Appointment).where(*cond)
    total = (await session.execute(total_stmt)).scalar_one()

    stmt = (
        select(Appointment)
        .where(*cond)
        .order_by(
            Appointment.requested_date.desc(),
            Appointment.requested_time.desc(),
            Appointment.id,
        )
        .limit(limit)
        .offset((page - 1) * limit)
    )
    rows: List[Appointment] = (await session.execute(stmt)).scalars().all()

    return AppointmentPage(
        items=[_to_public(a) for a in rows],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        ),
    )


async def get_appointment_svc(
    session: AsyncSession, appointment_id: UUID, current_user: User
) -> AppointmentPublic:
    appt = await load_appointment(session, appointment_id)
    ensure_party(appt, current_user, allow_admin=True)
    return _to_public(appt)


# STATUS
async def update_status_svc(
    session: AsyncSession,
    appointment_id: UUID,
    payload: StatusUpdateRequest,
    doctor: User,
) -> AppointmentPublic:
    """
    Doctor decision on an appointment (confirm, complete, cancel...).

    Same-status requests change nothing. Confirming creates the consultation
    session, or re-syncs the existing one after a reschedule. Moving back
    into an active status re-checks conflicts under the booking lock.
    """
    appt = await load_appointment(session, appointment_id)
    if appt.doctor_id != doctor.id:
        raise NotAppointmentParty("Only the appointment's doctor can change its status")

    previous = appt.status
    if not check_transition(previous, payload.status):
        logger.info("Appointment %s already %s; nothing to do", appt.id, previous.value)
        return _to_public(appt)

    new_status = payload.status

    async def apply() -> None:
        appt.status = new_status
        appt.notes = append_notes(appt.notes, payload.notes)
        if not is_active(new_status):
            appt.slot_key = None
        await session.flush()

        if new_status == AppointmentStatus.CONFIRMED:
            await create_for_appointment(session, appt)

        await write_audit_log(
            session,
            doctor.id,
            "UPDATE_APPOINTMENT_STATUS",
            f"Appointment {appt.id}: {previous.value} -> {new_status.value}",
        )
        await notify(
            session,
            user_id=appt.patient_id,
            type=NotificationType.APPOINTMENT_STATUS_CHANGED,
            title="Appointment status updated",
            message=(
                f"Your appointment on {appt.requested_date} at {appt.requested_time} "
                f"is now {new_status.value.lower()}"
            ),
            related_id=appt.id,
            related_type="appointment",
        )

    if is_active(new_status) and not is_active(previous):
        async with reserve_slot(session, appt.doctor_id):
            if await conflicts.has_conflict(
                session, appt.doctor_id, appt.requested_date, appt.requested_time,
                exclude_id=appt.id,
            ):
                raise SlotConflict()
            appt.slot_key = conflicts.slot_key(
                appt.doctor_id, appt.requested_date, appt.requested_time
            )
            await apply()
    else:
        await apply()

    logger.info("Appointment %s moved %s -> %s", appt.id, previous.value, new_status.value)
    return _to_public(appt)


# CANCEL
async def cancel_appointment_svc(
    session: AsyncSession,
    appointment_id: UUID,
    payload: CancelRequest,
    current_user: User,
) -> AppointmentPublic:
    """
    Either party cancels. The reason is stored apart from the notes, and the
    slot is released.
    """
    appt = await load_appointment(session, appointment_id)
    ensure_party(appt, current_user)
    check_transition(appt.status, AppointmentStatus.CANCELLED)

    previous = appt.status
    appt.status = AppointmentStatus.CANCELLED
    appt.cancellation_reason = payload.reason
    appt.cancelled_by = current_user.id
    appt.slot_key = None
    await session.flush()

    await write_audit_log(
        session,
        current_user.id,
        "CANCEL_APPOINTMENT",
        f"Cancelled appointment {appt.id} (was {previous.value}): {payload.reason}",
    )
    await notify(
        session,
        user_id=counterparty_of(appt, current_user),
        type=NotificationType.APPOINTMENT_CANCELLED,
        title="Appointment cancelled",
        message=(
            f"The appointment on {appt.requested_date} at {appt.requested_time} "
            f"was cancelled: {payload.reason}"
        ),
        related_id=appt.id,
        related_type="appointment",
    )
    logger.info("Appointment %s cancelled by %s", appt.id, current_user.id)
    return _to_public(appt)
