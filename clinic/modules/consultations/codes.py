# clinic/modules/consultations/codes.py
"""
Consultation join codes.

A code is exactly nine characters: a two-letter prefix, four digits and a
three-character random suffix, e.g. ``QH1409K2Z``.

* ``QH`` codes belong to appointment-derived sessions; their digits are
  the appointment's day-of-month and hour.
* ``DM`` codes belong to direct sessions; their digits are the doctor and
  patient ids reduced modulo 100.

The context digits make collisions likely within one day, so a fresh code
is checked against the store and regenerated, and after a bounded number
of attempts the digits are randomized too.
"""
from __future__ import annotations

import logging
import re
import secrets
import string
import uuid
from datetime import date
from enum import Enum
from typing import Awaitable, Callable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.config import settings
from clinic.core.errors import InternalError
from clinic.modules.appointments.conflicts import parse_hhmm
from clinic.modules.consultations.models import Consultation

logger = logging.getLogger(__name__)

CODE_RE = re.compile(r"^(QH|DM)[0-9]{4}[A-Z0-9]{3}$")
SUFFIX_ALPHABET = string.digits + string.ascii_uppercase
SUFFIX_LEN = 3


class CodePrefix(str, Enum):
    APPOINTMENT = "QH"
    DIRECT = "DM"


class ConsultationCodeExhausted(InternalError):
    code = "consultation_code_exhausted"
    message = "Could not allocate a unique consultation code"


def random_suffix() -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(SUFFIX_LEN))


def random_digits() -> str:
    return f"{secrets.randbelow(10_000):04d}"


def appointment_digits(day: date, hhmm: Optional[str]) -> str:
    parsed = parse_hhmm(hhmm)
    hour = parsed.hour if parsed is not None else 0
    return f"{day.day:02d}{hour:02d}"


def direct_digits(doctor_id: uuid.UUID, patient_id: uuid.UUID) -> str:
    return f"{doctor_id.int % 100:02d}{patient_id.int % 100:02d}"


def generate_code(prefix: CodePrefix, digits: str) -> str:
    code = f"{prefix.value}{digits}{random_suffix()}"
    # Keeps a bad digits argument from ever reaching the column
    if not CODE_RE.match(code):
        raise ValueError(f"Generated malformed consultation code {code!r}")
    return code


def is_valid_code(code: str) -> bool:
    return bool(CODE_RE.match(code))


async def code_exists(session: AsyncSession, code: str) -> bool:
    stmt = select(Consultation.id).where(Consultation.consultation_code == code)
    return (await session.execute(stmt)).first() is not None


async def new_unique_code(
    session: AsyncSession,
    prefix: CodePrefix,
    digits: str,
    exists: Optional[Callable[[AsyncSession, str], Awaitable[bool]]] = None,
) -> str:
    """
    Generate-check-retry. Tries CONSULTATION_CODE_MAX_ATTEMPTS codes with the
    context digits, then as many with random digits, then gives up.
    """
    exists = exists or code_exists
    attempts = settings.CONSULTATION_CODE_MAX_ATTEMPTS

    for attempt in range(attempts):
        code = generate_code(prefix, digits)
        if not await exists(session, code):
            return code
        logger.info("Consultation code collision on attempt %d", attempt + 1)

    logger.warning("Context code space for %s%s is crowded; using random digits", prefix.value, digits)
    for _ in range(attempts):
        code = generate_code(prefix, random_digits())
        if not await exists(session, code):
            return code

    logger.error("Consultation code generation exhausted for prefix %s", prefix.value)
    raise ConsultationCodeExhausted()
