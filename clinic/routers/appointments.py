# clinic/routers/appointments.py
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.permission import require_roles
from clinic.db.sql import get_session
from clinic.dependencies import get_current_user
from clinic.modules.appointments.models import AppointmentStatus
from clinic.modules.appointments.reschedule import list_reschedules_svc, request_reschedule_svc
from clinic.modules.appointments.schemas import (
    AppointmentCreateRequest,
    AppointmentPage,
    AppointmentPublic,
    CancelRequest,
    RescheduleCreateRequest,
    ReschedulePublic,
    StatusUpdateRequest,
)
from clinic.modules.appointments.service import (
    cancel_appointment_svc,
    create_appointment_svc,
    get_appointment_svc,
    list_my_appointments_svc,
    update_status_svc,
)
from clinic.modules.consultations.schemas import ConsultationPublic
from clinic.modules.consultations.service import get_for_appointment_svc
from clinic.modules.users.models import User

router = APIRouter(tags=["appointments"])


@router.post(
    "/appointments",
    response_model=AppointmentPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Request an appointment (patients only)",
    responses={
        403: {"description": "Not a patient, or patientId is not the caller"},
        404: {"description": "Doctor not found"},
        409: {"description": "Outside availability or conflicting booking"},
    },
)
async def appointments_create(
    payload: AppointmentCreateRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await create_appointment_svc(session, payload, current_user)


@router.get(
    "/appointments",
    response_model=AppointmentPage,
    summary="List the caller's appointments",
)
async def appointments_index(
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await list_my_appointments_svc(session, current_user, status_filter, page, limit)


@router.get(
    "/appointments/{appointment_id}",
    response_model=AppointmentPublic,
    summary="Get one appointment",
)
async def appointments_get(
    appointment_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await get_appointment_svc(session, appointment_id, current_user)


@router.patch(
    "/appointments/{appointment_id}/status",
    response_model=AppointmentPublic,
    summary="Change appointment status (owning doctor only)",
)
async def appointments_update_status(
    appointment_id: UUID,
    payload: StatusUpdateRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles("doctor")),
):
    """
    Confirming creates the consultation session for the appointment.
    Repeating the current status is a no-op.
    """
    return await update_status_svc(session, appointment_id, payload, current_user)


@router.post(
    "/appointments/{appointment_id}/cancel",
    response_model=AppointmentPublic,
    summary="Cancel an appointment (patient or doctor)",
)
async def appointments_cancel(
    appointment_id: UUID,
    payload: CancelRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await cancel_appointment_svc(session, appointment_id, payload, current_user)


@router.post(
    "/appointments/{appointment_id}/reschedule",
    response_model=ReschedulePublic,
    status_code=status.HTTP_201_CREATED,
    summary="Propose a new date/time for a confirmed appointment",
)
async def appointments_reschedule(
    appointment_id: UUID,
    payload: RescheduleCreateRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await request_reschedule_svc(session, appointment_id, payload, current_user)


@router.get(
    "/appointments/{appointment_id}/reschedules",
    response_model=List[ReschedulePublic],
    summary="Reschedule history of an appointment, newest first",
)
async def appointments_reschedules(
    appointment_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await list_reschedules_svc(session, appointment_id, current_user)


@router.get(
    "/appointments/{appointment_id}/consultation",
    response_model=ConsultationPublic,
    summary="Consultation session created for an appointment",
)
async def appointments_consultation(
    appointment_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await get_for_appointment_svc(session, appointment_id, current_user)
