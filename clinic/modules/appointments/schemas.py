# clinic/modules/appointments/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, List, Optional
from uuid import UUID

from pydantic import Field, StringConstraints, field_validator

from clinic.core.schemas import CamelModel, Pagination
from clinic.modules.appointments.models import (
    AppointmentStatus,
    Priority,
    ProposedBy,
    RescheduleStatus,
)

ReasonStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class AppointmentCreateRequest(CamelModel):
    patient_id: UUID
    doctor_id: UUID
    requested_date: date = Field(..., description="ISO date, YYYY-MM-DD")
    # Format is checked by the service so the error carries code invalid_time
    requested_time: str = Field(..., description="24h HH:MM")
    reason: ReasonStr
    priority: Priority = Priority.NORMAL
    notes: Optional[str] = None


class AppointmentPublic(CamelModel):
    id: UUID
    patient_id: UUID
    doctor_id: UUID
    requested_date: date
    requested_time: str
    reason: str
    priority: Priority
    notes: Optional[str] = None
    status: AppointmentStatus
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class AppointmentPage(CamelModel):
    items: List[AppointmentPublic]
    pagination: Pagination


class StatusUpdateRequest(CamelModel):
    status: AppointmentStatus
    notes: Optional[str] = None


class CancelRequest(CamelModel):
    reason: ReasonStr


class RescheduleCreateRequest(CamelModel):
    new_date: date
    new_time: str = Field(..., description="24h HH:MM")
    reason: ReasonStr
    notes: Optional[str] = None


class RescheduleResolveRequest(CamelModel):
    status: RescheduleStatus
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _must_be_decision(cls, v: RescheduleStatus) -> RescheduleStatus:
        if v == RescheduleStatus.PENDING:
            raise ValueError("status must be APPROVED or REJECTED")
        return v


class ReschedulePublic(CamelModel):
    id: UUID
    appointment_id: UUID
    requested_by: UUID
    requested_by_role: str
    current_date: date
    current_time: str
    new_date: date
    new_time: str
    reason: str
    notes: Optional[str] = None
    proposed_by: ProposedBy
    status: RescheduleStatus
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[UUID] = None
    created_at: datetime
