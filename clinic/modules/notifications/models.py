# clinic/modules/notifications/models.py
from __future__ import annotations

import uuid
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clinic.db.base import Base, ReprMixin, TimestampMixin, UUIDPKMixin


class NotificationType(str, PyEnum):
    APPOINTMENT_REQUESTED = "APPOINTMENT_REQUESTED"
    APPOINTMENT_STATUS_CHANGED = "APPOINTMENT_STATUS_CHANGED"
    APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
    RESCHEDULE_REQUESTED = "RESCHEDULE_REQUESTED"
    RESCHEDULE_RESOLVED = "RESCHEDULE_RESOLVED"
    DAY_RESCHEDULED = "DAY_RESCHEDULED"


class Notification(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    Outbox row for a user-facing notification. Delivery (email, sockets...)
    reads from here; this service only records them.
    """

    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[Optional[str]] = mapped_column(String(64))
    related_type: Mapped[Optional[str]] = mapped_column(String(40))
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)
