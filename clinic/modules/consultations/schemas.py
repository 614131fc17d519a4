# clinic/modules/consultations/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from clinic.core.schemas import CamelModel


class ConsultationPublic(CamelModel):
    id: UUID
    doctor_id: UUID
    patient_id: UUID
    appointment_request_id: Optional[UUID] = None
    start_time: datetime = Field(
        ...,
        description=(
            "For appointment-derived sessions this is midnight UTC of the "
            "appointment date; the appointment's HH:MM time is not included."
        ),
    )
    end_time: Optional[datetime] = None
    consultation_code: str
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    follow_up_date: Optional[date] = None
    created_at: datetime


class DirectConsultationCreate(CamelModel):
    patient_id: UUID
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    follow_up_date: Optional[date] = None


class ConsultationUpdate(CamelModel):
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    follow_up_date: Optional[date] = None
    end_time: Optional[datetime] = None


class JoinRequest(CamelModel):
    code: str = Field(..., min_length=1, max_length=32)


class JoinResponse(CamelModel):
    consultation_id: UUID
    consultation_code: str
    doctor_id: UUID
    patient_id: UUID
    start_time: datetime
    role: str
