# clinic/routers/reschedule.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.db.sql import get_session
from clinic.dependencies import get_current_user
from clinic.modules.appointments.reschedule import resolve_reschedule_svc
from clinic.modules.appointments.schemas import ReschedulePublic, RescheduleResolveRequest
from clinic.modules.users.models import User

router = APIRouter(tags=["reschedule"])


@router.patch(
    "/reschedule/{reschedule_id}",
    response_model=ReschedulePublic,
    summary="Approve or reject a reschedule proposal",
    responses={409: {"description": "Already resolved, or the appointment is closed"}},
)
async def reschedule_resolve(
    reschedule_id: UUID,
    payload: RescheduleResolveRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await resolve_reschedule_svc(session, reschedule_id, payload, current_user)
