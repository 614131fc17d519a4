# clinic/modules/log.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.modules.users.models import AuditLog


async def write_audit_log(
    session: AsyncSession,
    user_id: Optional[UUID],
    action: str,
    details: Optional[str] = None,
) -> None:
    """
    Write an audit log entry in the caller's transaction, so it commits or
    rolls back together with the change it describes.

    action:
        "CREATE_APPOINTMENT_REQUEST"
        "UPDATE_APPOINTMENT_STATUS"
        "CANCEL_APPOINTMENT"
        "REQUEST_RESCHEDULE"
        "UPDATE_RESCHEDULE_STATUS"
        "RESCHEDULE_DAY"
        "UPDATE_AVAILABILITY"
        "CREATE_CONSULTATION"
        "UPDATE_CONSULTATION"
        "JOIN_CONSULTATION"
    """
    stmt = insert(AuditLog).values(
        user_id=user_id,
        action=action,
        details=details,
    )
    await session.execute(stmt)
