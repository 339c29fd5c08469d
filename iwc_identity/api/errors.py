"""Translate domain failures into the API's ``{success, message}`` error bodies."""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..domain import errors

logger = logging.getLogger(__name__)


class RateLimited(errors.IdentityError):
    code = "rate_limited"
    default_message = "rate limited"


class MissingToken(errors.InvalidToken):
    code = "missing_token"
    default_message = "Not authorized, no token"


_STATUS_BY_ERROR: list[tuple[type[errors.IdentityError], int]] = [
    (errors.ValidationError, status.HTTP_400_BAD_REQUEST),
    (errors.DuplicateEmail, status.HTTP_400_BAD_REQUEST),
    (errors.QuotaExceeded, status.HTTP_400_BAD_REQUEST),
    (errors.InvalidCredentials, status.HTTP_401_UNAUTHORIZED),
    (errors.InvalidToken, status.HTTP_401_UNAUTHORIZED),
    (errors.TokenExpired, status.HTTP_401_UNAUTHORIZED),
    (errors.PendingApproval, status.HTTP_403_FORBIDDEN),
    (errors.AccountNotFound, status.HTTP_404_NOT_FOUND),
    (RateLimited, status.HTTP_429_TOO_MANY_REQUESTS),
]


def status_for(exc: errors.IdentityError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def error_response(status_code: int, message: str, **extra: object) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


async def _identity_error_handler(request: Request, exc: errors.IdentityError) -> JSONResponse:
    return error_response(status_for(exc), exc.message)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    extra: dict[str, object] = {}
    if get_settings().is_development:
        extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", **extra)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers mapping identity errors to HTTP responses."""
    app.add_exception_handler(errors.IdentityError, _identity_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
