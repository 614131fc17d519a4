# clinic/modules/notifications/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from clinic.core.schemas import CamelModel


class NotificationPublic(CamelModel):
    id: UUID
    user_id: UUID
    type: str
    title: str
    message: str
    related_id: Optional[str] = None
    related_type: Optional[str] = None
    is_read: bool
    created_at: datetime


class NotificationList(CamelModel):
    items: List[NotificationPublic]
    unread: int
