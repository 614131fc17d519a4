# clinic/core/errors.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ClinicError(Exception):
    """
    Base class for service-level errors.

    Services raise these; the app maps them to HTTP responses in one place
    (see register_exception_handlers). `code` is the stable machine-readable
    reason, `message` is for humans, `extra` is merged into the response body.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    message: str = "Internal error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        self.extra = extra or {}
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        return {"detail": self.code, "message": self.message, **self.extra}


class ValidationError(ClinicError):
    """Malformed id/date/time or missing required field."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    message = "Invalid request"


class AuthorizationError(ClinicError):
    """Wrong role or not the owner of the resource."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "You do not have permission to perform this action"


class NotFoundError(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Resource not found"


class ConflictError(ClinicError):
    """
    The request is well-formed but collides with current state
    (slot outside availability, double booking, illegal transition...).
    """

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    message = "Request conflicts with the current state"


class InternalError(ClinicError):
    pass


async def _clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning(
            "%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.message
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Don't expose internal details
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "internal_error"},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClinicError, _clinic_error_handler)
    app.add_exception_handler(SQLAlchemyError, _database_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)


__all__ = [
    "ClinicError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "InternalError",
    "register_exception_handlers",
]
