# clinic/modules/doctors/schemas.py
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from clinic.core.schemas import CamelModel
from clinic.modules.appointments.models import AppointmentStatus


class AvailabilityEntryIn(CamelModel):
    day_of_week: str = Field(..., description="Monday..Sunday; other names are ignored")
    enabled: bool = False
    start_time: str = Field("09:00", description="HH:MM")
    end_time: str = Field("17:00", description="HH:MM")


class WeeklyAvailabilityUpdate(CamelModel):
    availability: List[AvailabilityEntryIn]


class UpcomingAppointment(CamelModel):
    id: UUID
    patient_id: UUID
    requested_date: date
    requested_time: str
    status: AppointmentStatus


class AvailabilityEntry(CamelModel):
    day_of_week: str
    enabled: bool
    start_time: str
    end_time: str


class WeeklyAvailabilityEntry(AvailabilityEntry):
    has_upcoming_appointments: bool = False
    upcoming_appointments: List[UpcomingAppointment] = Field(default_factory=list)


class DayRescheduleRequest(CamelModel):
    day_of_week: str
    reason: str = Field(..., min_length=1)
    new_date: Optional[date] = None
    new_time: Optional[str] = Field(None, description="HH:MM")


class DayRescheduleResult(CamelModel):
    rescheduled_count: int
    requires_patient_approval: bool
