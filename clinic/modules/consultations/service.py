# clinic/modules/consultations/service.py
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from clinic.db.base import utcnow
from clinic.modules.appointments.errors import AppointmentNotFound, NotAppointmentParty
from clinic.modules.appointments.models import Appointment
from clinic.modules.consultations.codes import (
    CodePrefix,
    appointment_digits,
    direct_digits,
    is_valid_code,
    new_unique_code,
)
from clinic.modules.consultations.models import Consultation
from clinic.modules.consultations.schemas import (
    ConsultationPublic,
    ConsultationUpdate,
    DirectConsultationCreate,
    JoinResponse,
)
from clinic.modules.log import write_audit_log
from clinic.modules.users import repository as users_repo
from clinic.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


class ConsultationNotFound(NotFoundError):
    code = "consultation_not_found"
    message = "Consultation not found"


class PatientNotFound(NotFoundError):
    code = "patient_not_found"
    message = "Patient not found"


class NotConsultationParty(AuthorizationError):
    code = "not_owner"
    message = "You are not a participant of this consultation"


class MalformedConsultationCode(ValidationError):
    code = "invalid_code_format"
    message = "Consultation code must look like QH1409K2Z"


class UnknownConsultationCode(NotFoundError):
    code = "invalid_consultation_code"
    message = "No consultation matches this code"


class ConsultationEnded(ConflictError):
    code = "consultation_ended"
    message = "This consultation has already ended"


def _to_public(consultation: Consultation) -> ConsultationPublic:
    return ConsultationPublic.model_validate(consultation)


def day_start(day: date) -> datetime:
    """Midnight UTC of day. Appointment sessions carry the date only."""
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def _ensure_party(consultation: Consultation, user: User) -> None:
    if user.role == UserRole.ADMIN.value:
        return
    if user.id not in (consultation.doctor_id, consultation.patient_id):
        raise NotConsultationParty()


async def find_by_appointment(
    session: AsyncSession, appointment_id: UUID
) -> Optional[Consultation]:
    stmt = select(Consultation).where(Consultation.appointment_request_id == appointment_id)
    return (await session.execute(stmt)).scalar_one_or_none()


async def create_for_appointment(session: AsyncSession, appt: Appointment) -> Consultation:
    """
    Materialize a confirmed appointment as a consultation.

    At most one consultation exists per appointment: on re-confirmation the
    existing session is kept and its start is moved to the appointment's
    current date.
    """
    existing = await find_by_appointment(session, appt.id)
    if existing is not None:
        existing.start_time = day_start(appt.requested_date)
        await session.flush()
        logger.info("Consultation %s re-synced to %s", existing.id, appt.requested_date)
        return existing

    code = await new_unique_code(
        session,
        CodePrefix.APPOINTMENT,
        appointment_digits(appt.requested_date, appt.requested_time),
    )
    consultation = Consultation(
        doctor_id=appt.doctor_id,
        patient_id=appt.patient_id,
        appointment_request_id=appt.id,
        start_time=day_start(appt.requested_date),
        consultation_code=code,
        notes=f"Consultation for appointment: {appt.reason}",
    )
    session.add(consultation)
    await session.flush()

    await write_audit_log(
        session,
        appt.doctor_id,
        "CREATE_CONSULTATION",
        f"Created consultation {consultation.id} for appointment {appt.id}",
    )
    logger.info("Consultation %s created for appointment %s", consultation.id, appt.id)
    return consultation


async def create_direct_consultation_svc(
    session: AsyncSession, payload: DirectConsultationCreate, doctor: User
) -> ConsultationPublic:
    patient = await users_repo.get_with_role(session, payload.patient_id, UserRole.PATIENT)
    if patient is None:
        raise PatientNotFound()

    code = await new_unique_code(
        session, CodePrefix.DIRECT, direct_digits(doctor.id, patient.id)
    )
    consultation = Consultation(
        doctor_id=doctor.id,
        patient_id=patient.id,
        start_time=payload.start_time or utcnow(),
        end_time=payload.end_time,
        consultation_code=code,
        notes=payload.notes or "Direct consultation",
        diagnosis=payload.diagnosis,
        treatment=payload.treatment,
        follow_up_date=payload.follow_up_date,
    )
    session.add(consultation)
    await session.flush()

    await write_audit_log(
        session,
        doctor.id,
        "CREATE_CONSULTATION",
        f"Created direct consultation {consultation.id} with patient {patient.id}",
    )
    logger.info("Direct consultation %s created by doctor %s", consultation.id, doctor.id)
    return _to_public(consultation)


async def get_consultation_svc(
    session: AsyncSession, consultation_id: UUID, user: User
) -> ConsultationPublic:
    consultation = await session.get(Consultation, consultation_id)
    if consultation is None:
        raise ConsultationNotFound()
    _ensure_party(consultation, user)
    return _to_public(consultation)


async def get_for_appointment_svc(
    session: AsyncSession, appointment_id: UUID, user: User
) -> ConsultationPublic:
    appt = await session.get(Appointment, appointment_id)
    if appt is None:
        raise AppointmentNotFound()
    if user.role != UserRole.ADMIN.value and user.id not in (appt.doctor_id, appt.patient_id):
        raise NotAppointmentParty()

    consultation = await find_by_appointment(session, appointment_id)
    if consultation is None:
        raise ConsultationNotFound("No consultation has been created for this appointment yet")
    return _to_public(consultation)


async def update_consultation_svc(
    session: AsyncSession, consultation_id: UUID, payload: ConsultationUpdate, doctor: User
) -> ConsultationPublic:
    consultation = await session.get(Consultation, consultation_id)
    if consultation is None:
        raise ConsultationNotFound()
    if consultation.doctor_id != doctor.id:
        raise NotConsultationParty("Only the consultation's doctor can update it")

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(consultation, field, value)
    await session.flush()

    await write_audit_log(
        session, doctor.id, "UPDATE_CONSULTATION", f"Updated consultation {consultation.id}"
    )
    return _to_public(consultation)


async def join_consultation_svc(session: AsyncSession, code: str, user: User) -> JoinResponse:
    normalized = code.strip().upper()
    if not is_valid_code(normalized):
        raise MalformedConsultationCode()

    stmt = select(Consultation).where(Consultation.consultation_code == normalized)
    consultation = (await session.execute(stmt)).scalar_one_or_none()
    if consultation is None:
        raise UnknownConsultationCode()
    if user.id not in (consultation.doctor_id, consultation.patient_id):
        raise NotConsultationParty()
    if consultation.end_time is not None:
        raise ConsultationEnded()

    await write_audit_log(
        session, user.id, "JOIN_CONSULTATION", f"Joined consultation {consultation.id}"
    )
    logger.info("User %s joined consultation %s", user.id, consultation.id)
    return JoinResponse(
        consultation_id=consultation.id,
        consultation_code=consultation.consultation_code,
        doctor_id=consultation.doctor_id,
        patient_id=consultation.patient_id,
        start_time=consultation.start_time,
        role=user.role,
    )
