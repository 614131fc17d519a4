# clinic/modules/users/repository.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.modules.users.models import User, UserRole


class EmailAlreadyExistsError(Exception):
    """Raised when trying to insert a user with an email that already exists."""


async def get_by_id(session: AsyncSession, user_id: UUID) -> Optional[User]:
    return await session.get(User, user_id)


async def get_by_email(session: AsyncSession, email: str) -> Optional[User]:
    """
    Returns a User by email (normalized to lowercase) or None.
    """
    stmt = select(User).where(User.email == email.strip().lower())
    return (await session.execute(stmt)).scalar_one_or_none()


async def get_with_role(
    session: AsyncSession, user_id: UUID, role: UserRole, *, for_update: bool = False
) -> Optional[User]:
    """
    Return the user only if it has the given role.
    for_update locks the row until the transaction ends (no-op on SQLite).
    """
    stmt = select(User).where(User.id == user_id, User.role == role.value)
    if for_update:
        stmt = stmt.with_for_update()
    return (await session.execute(stmt)).scalar_one_or_none()


async def create_user(
    session: AsyncSession,
    *,
    email: str,
    password_hash: str,
    first_name: str,
    last_name: str,
    phone: Optional[str] = None,
    role: UserRole = UserRole.PATIENT,
) -> User:
    """
    Insert a user. Expects an already hashed password.
    """
    user = User(
        email=email.strip().lower(),
        password_hash=password_hash,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        phone=phone,
        role=role.value,
        is_active=True,
    )
    session.add(user)
    try:
        # Flush to surface the unique-email violation here
        await session.flush()
    except IntegrityError as exc:
        raise EmailAlreadyExistsError("Email already registered") from exc
    return user
