# clinic/modules/consultations/models.py
from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from clinic.db.base import Base, ReprMixin, TimestampMixin, UUIDPKMixin


class Consultation(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    A consultation session. Appointment-derived sessions link back to their
    appointment (at most one session per appointment); direct sessions don't.
    """

    __tablename__ = "consultations"

    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    appointment_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("appointment_requests.id", ondelete="SET NULL"), nullable=True
    )

    start_time: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))

    consultation_code: Mapped[str] = mapped_column(String(9), nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text)
    diagnosis: Mapped[Optional[str]] = mapped_column(Text)
    treatment: Mapped[Optional[str]] = mapped_column(Text)
    follow_up_date: Mapped[Optional[dt.date]] = mapped_column(Date)

    __table_args__ = (
        UniqueConstraint("consultation_code", name="uq_consultation_code"),
        UniqueConstraint("appointment_request_id", name="uq_consultation_appointment"),
        CheckConstraint("length(consultation_code) = 9", name="ck_consultation_code_len"),
    )
