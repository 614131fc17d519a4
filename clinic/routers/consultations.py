# clinic/routers/consultations.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.permission import require_roles
from clinic.db.sql import get_session
from clinic.dependencies import get_current_user
from clinic.modules.consultations.schemas import (
    ConsultationPublic,
    ConsultationUpdate,
    DirectConsultationCreate,
    JoinRequest,
    JoinResponse,
)
from clinic.modules.consultations.service import (
    create_direct_consultation_svc,
    get_consultation_svc,
    join_consultation_svc,
    update_consultation_svc,
)
from clinic.modules.users.models import User

router = APIRouter(tags=["consultations"])


@router.post(
    "/consultations/direct",
    response_model=ConsultationPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Start a consultation without an appointment (doctors only)",
)
async def consultations_direct(
    payload: DirectConsultationCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles("doctor")),
):
    return await create_direct_consultation_svc(session, payload, current_user)


@router.post(
    "/consultations/join",
    response_model=JoinResponse,
    summary="Join a consultation by its 9-character code",
)
async def consultations_join(
    payload: JoinRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await join_consultation_svc(session, payload.code, current_user)


@router.get(
    "/consultations/{consultation_id}",
    response_model=ConsultationPublic,
    summary="Get a consultation",
)
async def consultations_get(
    consultation_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await get_consultation_svc(session, consultation_id, current_user)


@router.patch(
    "/consultations/{consultation_id}",
    response_model=ConsultationPublic,
    summary="Record notes, diagnosis or treatment (owning doctor only)",
)
async def consultations_update(
    consultation_id: UUID,
    payload: ConsultationUpdate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles("doctor")),
):
    return await update_consultation_svc(session, consultation_id, payload, current_user)
