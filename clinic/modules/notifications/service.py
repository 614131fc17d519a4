# clinic/modules/notifications/service.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.errors import NotFoundError
from clinic.modules.notifications.models import Notification, NotificationType
from clinic.modules.notifications.schemas import NotificationList, NotificationPublic

logger = logging.getLogger(__name__)


class NotificationNotFound(NotFoundError):
    code = "notification_not_found"
    message = "Notification not found"


async def notify(
    session: AsyncSession,
    *,
    user_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    related_id: Optional[UUID] = None,
    related_type: Optional[str] = None,
) -> Notification:
    """Queue a notification for a user in the current transaction."""
    note = Notification(
        user_id=user_id,
        type=type.value,
        title=title,
        message=message,
        related_id=str(related_id) if related_id else None,
        related_type=related_type,
        is_read=False,
    )
    session.add(note)
    logger.info("Notification %s queued for user %s", type.value, user_id)
    return note


async def list_notifications_svc(
    session: AsyncSession,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 50,
) -> NotificationList:
    cond = [Notification.user_id == user_id]
    if unread_only:
        cond.append(Notification.is_read.is_(False))

    stmt = (
        select(Notification)
        .where(*cond)
        .order_by(Notification.created_at.desc(), Notification.id)
        .limit(limit)
    )
    rows = (await session.execute(stmt)).scalars().all()

    unread_stmt = select(func.count()).select_from(Notification).where(
        Notification.user_id == user_id, Notification.is_read.is_(False)
    )
    unread = (await session.execute(unread_stmt)).scalar_one()
    return NotificationList(
        items=[NotificationPublic.model_validate(n) for n in rows],
        unread=unread,
    )


async def mark_read_svc(
    session: AsyncSession, notification_id: UUID, user_id: UUID
) -> NotificationPublic:
    note = await session.get(Notification, notification_id)
    if note is None or note.user_id != user_id:
        raise NotificationNotFound()
    note.is_read = True
    await session.flush()
    return NotificationPublic.model_validate(note)
