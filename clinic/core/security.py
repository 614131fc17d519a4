# clinic/core/security.py
"""
Password hashing and bearer tokens for clinic users.

Access tokens are HS256 JWTs whose subject is the user id. They also carry
the role and email for clients; the server always re-reads the user row
and never trusts those claims for authorization.
"""
from __future__ import annotations

import uuid
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from clinic.core.config import settings
from clinic.db.base import utcnow

# =========
# Passwords
# =========

# bcrypt_sha256 lifts bcrypt's 72-byte limit; plain bcrypt hashes still verify.
_pwd_ctx = CryptContext(
    schemes=["bcrypt_sha256", "bcrypt"],
    default="bcrypt_sha256",
    deprecated="auto",
)


def hash_password(plain_password: str) -> str:
    """
    Hash a plain-text password for storage in users.password_hash.
    """
    if not isinstance(plain_password, str) or plain_password == "":
        raise ValueError("Password must be a non-empty string")
    return _pwd_ctx.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """
    Check a login attempt against the stored hash. A missing or unreadable
    hash counts as a mismatch.
    """
    if not password_hash or not plain_password:
        return False
    try:
        return _pwd_ctx.verify(plain_password, password_hash)
    except ValueError:
        return False


# =====
# JWTs
# =====

class TokenType(str, Enum):
    ACCESS = "access"


ALGORITHM = "HS256"


class InvalidTokenError(Exception):
    """
    The bearer token cannot identify a user. `reason` is the stable code
    returned to the client.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


def create_access_token(
    *,
    subject: str,                # the user id (UUID as str)
    role: Optional[str] = None,  # "patient" | "doctor" | "admin"
    email: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    now = utcnow()
    lifetime = timedelta(minutes=expires_minutes or settings.ACCESS_EXPIRES_MIN)
    claims: Dict[str, Any] = {
        "sub": subject,
        "type": TokenType.ACCESS.value,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if role:
        claims["role"] = role
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Validate signature, expiry and token type and return the claims.

    Raises InvalidTokenError with reason missing_token, invalid_token,
    invalid_claims or invalid_token_type.
    """
    if not token:
        raise InvalidTokenError("missing_token")
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError("invalid_token") from exc

    if "sub" not in claims or "type" not in claims:
        raise InvalidTokenError("invalid_claims")
    if claims["type"] != TokenType.ACCESS.value:
        raise InvalidTokenError("invalid_token_type")
    return claims
