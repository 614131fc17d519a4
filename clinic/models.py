# clinic/models.py
# Import every model module so Base.metadata knows all tables.
from clinic.modules.appointments.models import Appointment, RescheduleRequest
from clinic.modules.consultations.models import Consultation
from clinic.modules.doctors.models import DoctorAvailability
from clinic.modules.notifications.models import Notification
from clinic.modules.users.models import AuditLog, User

__all__ = [
    "Appointment",
    "AuditLog",
    "Consultation",
    "DoctorAvailability",
    "Notification",
    "RescheduleRequest",
    "User",
]
