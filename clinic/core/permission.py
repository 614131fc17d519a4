# clinic/core/permission.py
from __future__ import annotations

from fastapi import Depends, HTTPException, status

from clinic.dependencies import get_current_user
from clinic.modules.users.models import User


def require_roles(*allowed: str):
    """
    Role guard factory. Example: Depends(require_roles("doctor"))
    """

    async def dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="forbidden_role",
            )
        return user

    return dep
