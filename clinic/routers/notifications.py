# clinic/routers/notifications.py
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.db.sql import get_session
from clinic.dependencies import get_current_user
from clinic.modules.notifications.schemas import NotificationList, NotificationPublic
from clinic.modules.notifications.service import list_notifications_svc, mark_read_svc
from clinic.modules.users.models import User

router = APIRouter(tags=["notifications"])


@router.get("/notifications", response_model=NotificationList)
async def notifications_index(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await list_notifications_svc(session, current_user.id, unread_only, limit)


@router.post("/notifications/{notification_id}/read", response_model=NotificationPublic)
async def notifications_mark_read(
    notification_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await mark_read_svc(session, notification_id, current_user.id)
