# clinic/modules/users/schemas.py
from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import EmailStr, Field, SecretStr, StringConstraints, field_validator

from clinic.core.schemas import CamelModel
from clinic.modules.users.models import UserRole

NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
PhoneStr = Annotated[str, StringConstraints(pattern=r"^\+?[1-9]\d{1,14}$")]  # E.164 simple

PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d\S]{8,64}$")


class RegisterRequest(CamelModel):
    email: EmailStr
    password: SecretStr = Field(..., description="8-64 chars, at least one letter and one digit")
    first_name: NameStr
    last_name: NameStr
    role: UserRole = UserRole.PATIENT
    phone: Optional[PhoneStr] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, v: SecretStr) -> SecretStr:
        if not PASSWORD_RE.match(v.get_secret_value()):
            raise ValueError(
                "Password must be 8-64 chars and include at least one letter and one digit"
            )
        return v


class UserPublic(CamelModel):
    id: UUID
    email: EmailStr
    role: UserRole
    first_name: str
    last_name: str
    phone: Optional[str] = None
    is_active: bool
    created_at: datetime


class TokenPair(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
