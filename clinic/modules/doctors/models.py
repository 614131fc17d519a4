# clinic/modules/doctors/models.py
from __future__ import annotations

import uuid
from datetime import time

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from clinic.db.base import Base, ReprMixin, TimestampMixin, UUIDPKMixin

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


class DoctorAvailability(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    A doctor's weekly calendar entry. One row per (doctor, weekday);
    a missing row means the doctor does not work that day.
    """

    __tablename__ = "doctor_availability"

    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week: Mapped[str] = mapped_column(String(9), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    __table_args__ = (
        UniqueConstraint("doctor_id", "day_of_week", name="uq_availability_doctor_day"),
        CheckConstraint(
            "day_of_week IN ('Monday', 'Tuesday', 'Wednesday', 'Thursday', "
            "'Friday', 'Saturday', 'Sunday')",
            name="ck_availability_day_valid",
        ),
    )
