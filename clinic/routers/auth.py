# clinic/routers/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from clinic.db.sql import get_session
from clinic.dependencies import get_current_user
from clinic.modules.users.models import User
from clinic.modules.users.schemas import RegisterRequest, TokenPair, UserPublic
from clinic.modules.users.service import login_user, register_user

router = APIRouter(tags=["auth"])


@router.post(
    "/auth/register",
    response_model=UserPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new user account",
    responses={
        201: {"description": "User created"},
        403: {"description": "Admin accounts cannot self-register"},
        409: {"description": "Email already registered"},
    },
)
async def auth_register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_session),
):
    """
    Register a new patient or doctor account (default role: `patient`).

    Notes:
    - Email is normalized to lowercase.
    - Password must be 8-64 chars with at least one letter and one digit.
    """
    return await register_user(session, payload)


@router.post(
    "/auth/token",
    response_model=TokenPair,
    summary="OAuth2 password flow login",
    responses={401: {"description": "Invalid credentials"}},
)
async def auth_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_session),
):
    """
    Swagger sends form data: username (the email) and password.
    """
    return await login_user(session, form_data.username, form_data.password)


@router.get(
    "/auth/me",
    response_model=UserPublic,
    summary="Return the current user's profile",
)
async def auth_me(current_user: User = Depends(get_current_user)):
    return UserPublic.model_validate(current_user)
