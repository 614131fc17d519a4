from . import health
from . import auth
from . import appointments
from . import reschedule
from . import doctors
from . import consultations
from . import notifications

__all__ = [
    "health",
    "auth",
    "appointments",
    "reschedule",
    "doctors",
    "consultations",
    "notifications",
]
