# clinic/modules/appointments/errors.py
# Scheduling errors; the app maps them to HTTP via clinic.core.errors.
from __future__ import annotations

from clinic.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError


class InvalidTime(ValidationError):
    code = "invalid_time"
    message = "Time must be in HH:MM format"


class InvalidDayOfWeek(ValidationError):
    code = "invalid_day_of_week"
    message = "dayOfWeek must be one of Monday..Sunday"


class InvalidWindow(ValidationError):
    code = "invalid_window"
    message = "Start time must be before end time"


class NotOwnPatientId(AuthorizationError):
    code = "not_own_patient_id"
    message = "You can only create appointments for yourself"


class NotAppointmentParty(AuthorizationError):
    code = "not_owner"
    message = "You are not a participant of this appointment"


class OnlyPatientsCanBook(AuthorizationError):
    code = "only_patients_can_create"
    message = "Only patients can request appointments"


class DoctorNotFound(NotFoundError):
    code = "doctor_not_found"
    message = "Doctor not found"


class AppointmentNotFound(NotFoundError):
    code = "appointment_not_found"
    message = "Appointment not found"


class RescheduleNotFound(NotFoundError):
    code = "reschedule_not_found"
    message = "Reschedule request not found"


class DoctorNotAvailable(ConflictError):
    code = "doctor_not_available"
    message = "Doctor is not available at the requested time"


class SlotConflict(ConflictError):
    code = "slot_conflict"
    message = "The requested time conflicts with an existing appointment"


class InvalidStatusTransition(ConflictError):
    code = "invalid_status_transition"
    message = "This status change is not allowed"


class AppointmentNotConfirmed(ConflictError):
    code = "appointment_not_confirmed"
    message = "Can only reschedule confirmed appointments"


class RescheduleAlreadyResolved(ConflictError):
    code = "reschedule_already_resolved"
    message = "This reschedule request has already been resolved"


class AvailabilityConflict(ConflictError):
    """
    Disabling a weekday that still has upcoming appointments.
    The response carries the per-day conflict list and requiresReschedule.
    """

    code = "availability_conflict"
    message = "Some days still have upcoming appointments; reschedule them first"

    def __init__(self, counts: dict[str, int]):
        self.counts = counts
        conflicts = [f"{day} has {n} existing appointment(s)" for day, n in counts.items()]
        super().__init__(
            extra={
                "conflicts": conflicts,
                "conflictCounts": counts,
                "requiresReschedule": True,
            }
        )
