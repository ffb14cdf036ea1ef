"""
Error handling and sanitization

Sanitize error messages to prevent internal information leakage
- Database errors → generic message
- Stack traces → logged only, not returned to client
- Business messages ("Coupon not found") → kept as-is
"""
import logging
from typing import Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gym_coupons.core.config import settings
from gym_coupons.core.exceptions import GymCouponsError, http_status_for

logger = logging.getLogger(__name__)

# Patterns that indicate internal/sensitive error information
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "sqlalchemy",
    "asyncpg",
    "psycopg",
    "postgresql",
    "sqlite",
    "integrityerror",
    "operationalerror",
    "constraint",
    "traceback",
    "file \"",
    "[sql:",
]

GENERIC_STORE_MESSAGE = "An internal error occurred. Please try again later."


def is_sensitive_error(message: str) -> bool:
    """Check if error message contains sensitive information."""
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """
    Sanitize an error message for safe client exposure.

    Args:
        error: The error string or exception

    Returns:
        Sanitized error message safe for client
    """
    if isinstance(error, GymCouponsError):
        message = error.message
    else:
        message = str(error)

    # In debug mode, return full message
    if settings.DEBUG:
        return message

    if is_sensitive_error(message):
        return GENERIC_STORE_MESSAGE

    # Truncate very long messages
    if len(message) > 200:
        return message[:200] + "..."

    return message


async def gym_coupons_error_handler(request: Request, exc: GymCouponsError) -> JSONResponse:
    """Render a GymCouponsError raised by a route."""
    logger.warning(f"[API] {exc.code} on {request.method} {request.url.path}: {exc.to_dict()}")
    return JSONResponse(
        status_code=http_status_for(exc.code),
        content={
            "error": exc.code,
            "message": sanitize_error_message(exc),
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the full error, return a generic body."""
    error_id = f"{request.client.host if request.client else 'unknown'}-{id(exc)}"
    logger.exception(
        f"Unhandled exception [{error_id}]: {type(exc).__name__}: {exc}\n"
        f"Path: {request.url.path}\n"
        f"Method: {request.method}"
    )
    content = {
        "error": "internal_error",
        "message": "An unexpected error occurred. Please try again later.",
        "error_id": error_id,
    }
    if settings.DEBUG:
        content["message"] = str(exc)
        content["type"] = type(exc).__name__
    return JSONResponse(status_code=500, content=content)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GymCouponsError, gym_coupons_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
