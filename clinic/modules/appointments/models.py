# clinic/modules/appointments/models.py
from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from clinic.db.base import Base, ReprMixin, TimestampMixin, UUIDPKMixin


class AppointmentStatus(str, PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    RESCHEDULED = "RESCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Priority(str, PyEnum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class RescheduleStatus(str, PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ProposedBy(str, PyEnum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"


def _enum(cls: type[PyEnum], name: str) -> SAEnum:
    # Stored as VARCHAR + CHECK so adding a member doesn't need ALTER TYPE
    return SAEnum(cls, name=name, native_enum=False, length=20, validate_strings=True)


class Appointment(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    An appointment request from a patient to a doctor.

    slot_key holds the normalized (doctor, date, 30-minute bucket) key while
    the appointment is active and NULL otherwise; the unique index on it is
    the storage-level guard against double booking.
    """

    __tablename__ = "appointment_requests"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    requested_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    requested_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[Priority] = mapped_column(
        _enum(Priority, "appointment_priority"), nullable=False, default=Priority.NORMAL
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)

    status: Mapped[AppointmentStatus] = mapped_column(
        _enum(AppointmentStatus, "appointment_status"),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text)
    cancelled_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    slot_key: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        Index("uq_appt_slot_key", "slot_key", unique=True),
        Index("ix_appt_doctor_date_status", "doctor_id", "requested_date", "status"),
        Index("ix_appt_patient_date", "patient_id", "requested_date"),
    )


class RescheduleRequest(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    __tablename__ = "reschedule_requests"

    appointment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("appointment_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    requested_by: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    requested_by_role: Mapped[str] = mapped_column(String(20), nullable=False)

    current_date: Mapped[dt.date] = mapped_column("original_date", Date, nullable=False)
    current_time: Mapped[str] = mapped_column("original_time", String(5), nullable=False)
    new_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    new_time: Mapped[str] = mapped_column(String(5), nullable=False)

    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    proposed_by: Mapped[ProposedBy] = mapped_column(
        _enum(ProposedBy, "reschedule_proposed_by"), nullable=False
    )

    status: Mapped[RescheduleStatus] = mapped_column(
        _enum(RescheduleStatus, "reschedule_status"),
        nullable=False,
        default=RescheduleStatus.PENDING,
    )
    resolved_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    resolved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
