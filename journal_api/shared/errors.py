"""
Standardized errors and error responses for the journaling AI service.

Every failure leaves the service as the same JSON envelope:

    {
        "error": "Subscription required",
        "message": "You have used all 3 free insights this month. ...",
        "code": "FREE_LIMIT_EXCEEDED",
        "debug": {...}          # development only
    }

Components raise the exception classes below; ``register_exception_handlers``
turns them (and FastAPI/Starlette's own errors) into the envelope.

Usage:
    from journal_api.shared.errors import ValidationError

    if not content.strip():
        raise ValidationError("Journal content is required")
"""

import logging
import os
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("JournalAI.Errors")


class ErrorCode(str, Enum):
    """Stable codes the mobile client branches on."""

    # Client errors (4xx)
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INVALID_TOKEN = "INVALID_TOKEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FREE_LIMIT_EXCEEDED = "FREE_LIMIT_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class ErrorEnvelope(BaseModel):
    """Uniform error body."""
    error: str
    message: str
    code: Optional[str] = None
    debug: Optional[Dict[str, Any]] = None


# =============================================================================
# EXCEPTIONS
# =============================================================================

class JournalServiceError(Exception):
    """Base class for failures that map onto a known status and code."""

    status_code = 500
    code = ErrorCode.INTERNAL_ERROR
    error = "Internal server error"
    # Whether ``message`` may be shown to clients outside development
    expose_message = True

    def __init__(self, message: Optional[str] = None, **details: Any) -> None:
        self.message = message or self.error
        self.details = details
        super().__init__(self.message)


class Unauthenticated(JournalServiceError):
    status_code = 401
    code = ErrorCode.UNAUTHENTICATED
    error = "Authentication required"

    def __init__(self, message: str = "Please provide a valid Bearer token", **details: Any) -> None:
        super().__init__(message, **details)


class InvalidToken(JournalServiceError):
    status_code = 401
    code = ErrorCode.INVALID_TOKEN
    error = "Invalid token"

    def __init__(self, message: str = "The provided token is invalid or expired", **details: Any) -> None:
        super().__init__(message, **details)


class ValidationError(JournalServiceError):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR
    error = "Validation error"


class SubscriptionError(JournalServiceError):
    status_code = 403
    code = ErrorCode.FREE_LIMIT_EXCEEDED
    error = "Premium subscription required"


class RateLimitExceeded(JournalServiceError):
    status_code = 429
    code = ErrorCode.RATE_LIMIT_ERROR
    error = "Rate limit exceeded"


class PayloadTooLarge(JournalServiceError):
    status_code = 413
    code = ErrorCode.PAYLOAD_TOO_LARGE
    error = "Payload too large"


class AIServiceError(JournalServiceError):
    status_code = 502
    code = ErrorCode.AI_SERVICE_ERROR
    error = "AI service temporarily unavailable"

    def __init__(self, message: str = "Please try again in a moment", **details: Any) -> None:
        super().__init__(message, **details)


class DatabaseError(JournalServiceError):
    status_code = 500
    code = ErrorCode.DATABASE_ERROR
    error = "Database operation failed"
    expose_message = False


class ServiceUnavailable(JournalServiceError):
    status_code = 503
    code = ErrorCode.SERVICE_UNAVAILABLE
    error = "Service temporarily unavailable"


class ConfigurationError(JournalServiceError):
    status_code = 500
    code = ErrorCode.CONFIGURATION_ERROR
    error = "Service misconfigured"

    def __init__(self, message: str, missing: Optional[List[str]] = None) -> None:
        super().__init__(message, missing=list(missing or []))
        self.missing = list(missing or [])


# =============================================================================
# RESPONSE BUILDERS
# =============================================================================

def _is_development(request: Optional[Request]) -> bool:
    settings = getattr(request.app.state, "settings", None) if request is not None else None
    if settings is not None:
        return settings.is_development
    return os.getenv("ENVIRONMENT", "production").lower() == "development"


def get_correlation_id(request: Optional[Request] = None) -> Optional[str]:
    """Extract correlation ID from request state."""
    if request is None:
        return None
    return getattr(request.state, "correlation_id", None)


def error_response(
    error: str,
    message: str,
    status_code: int,
    code: Optional[ErrorCode] = None,
    debug: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """
    Create a JSON error response in the uniform envelope.

    Args:
        error: Short error title
        message: Human-readable explanation
        status_code: HTTP status code
        code: Stable machine-readable code
        debug: Development-only diagnostics
        headers: Extra response headers (e.g. Retry-After)
    """
    envelope = ErrorEnvelope(
        error=error,
        message=message,
        code=code.value if code is not None else None,
        debug=debug,
    )
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(exclude_none=True),
        headers=headers,
    )


def _debug_block(request: Request, exc: Exception, **extra: Any) -> Optional[Dict[str, Any]]:
    if not _is_development(request):
        return None
    block = {
        "type": type(exc).__name__,
        "path": request.url.path,
        "correlationId": get_correlation_id(request),
    }
    block.update({k: v for k, v in extra.items() if v})
    return block


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def handle_service_error(request: Request, exc: JournalServiceError) -> JSONResponse:
    development = _is_development(request)
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s", exc.code.value, request.method, request.url.path, exc.message,
        )
    else:
        logger.info(
            "%s on %s %s", exc.code.value, request.method, request.url.path,
        )

    message = exc.message if (exc.expose_message or development) else "Something went wrong"
    headers = None
    retry_after = exc.details.get("retry_after")
    if retry_after is not None:
        headers = {"Retry-After": str(retry_after)}

    return error_response(
        error=exc.error,
        message=message,
        status_code=exc.status_code,
        code=exc.code,
        debug=_debug_block(request, exc, details=exc.details),
        headers=headers,
    )


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request data")
    if location:
        message = f"{location}: {message}"
    return error_response(
        error="Invalid request data",
        message=message,
        status_code=400,
        code=ErrorCode.VALIDATION_ERROR,
        debug=_debug_block(request, exc),
    )


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return error_response(
            error="Not found",
            message=f"No route for {request.method} {request.url.path}",
            status_code=404,
            code=ErrorCode.NOT_FOUND,
        )
    if exc.status_code == 405:
        return error_response(
            error="Method not allowed",
            message=f"{request.method} is not supported on {request.url.path}",
            status_code=405,
            code=ErrorCode.METHOD_NOT_ALLOWED,
            headers=dict(exc.headers or {}),
        )
    if exc.status_code == 413:
        # Raised while streaming an oversized body
        return error_response(
            error=PayloadTooLarge.error,
            message=str(exc.detail),
            status_code=413,
            code=ErrorCode.PAYLOAD_TOO_LARGE,
        )
    return error_response(
        error="Request failed",
        message=str(exc.detail),
        status_code=exc.status_code,
        headers=dict(exc.headers or {}) or None,
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    development = _is_development(request)
    return error_response(
        error="Internal server error",
        message=str(exc) if development else "Something went wrong",
        status_code=500,
        code=ErrorCode.INTERNAL_ERROR,
        debug=_debug_block(request, exc),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope handlers on an application."""
    app.add_exception_handler(JournalServiceError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
