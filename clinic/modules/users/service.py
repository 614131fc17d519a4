# clinic/modules/users/service.py
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from clinic.core.config import settings
from clinic.core.errors import AuthorizationError, ConflictError
from clinic.core.security import create_access_token, hash_password, verify_password
from clinic.modules.users import repository as users_repo
from clinic.modules.users.models import User, UserRole
from clinic.modules.users.schemas import RegisterRequest, TokenPair, UserPublic

logger = logging.getLogger(__name__)


class EmailAlreadyExists(ConflictError):
    code = "email_already_exists"
    message = "Email already registered"


class InvalidCredentials(AuthorizationError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid email or password"


class AdminSelfRegistration(AuthorizationError):
    code = "forbidden_role"
    message = "Admin accounts cannot be self-registered"


def issue_token(user: User) -> TokenPair:
    access = create_access_token(subject=str(user.id), role=user.role, email=user.email)
    return TokenPair(access_token=access, expires_in=settings.ACCESS_EXPIRES_MIN * 60)


async def register_user(session: AsyncSession, payload: RegisterRequest) -> UserPublic:
    """
    1) Check email uniqueness.
    2) Hash password with bcrypt.
    3) Persist user.
    """
    if payload.role == UserRole.ADMIN:
        raise AdminSelfRegistration()

    if await users_repo.get_by_email(session, payload.email):
        raise EmailAlreadyExists()

    try:
        user = await users_repo.create_user(
            session,
            email=payload.email,
            password_hash=hash_password(payload.password.get_secret_value()),
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
            role=payload.role,
        )
    except users_repo.EmailAlreadyExistsError as exc:
        raise EmailAlreadyExists() from exc

    logger.info("Registered %s user %s", user.role, user.id)
    return UserPublic.model_validate(user)


async def login_user(session: AsyncSession, email: str, password: str) -> TokenPair:
    user = await users_repo.get_by_email(session, email)
    if not user or not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    if not user.is_active:
        raise InvalidCredentials("Account is inactive", code="user_inactive")
    return issue_token(user)
