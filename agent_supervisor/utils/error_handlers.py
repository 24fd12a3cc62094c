"""Exception handlers that turn supervisor failures into JSON error bodies."""

import traceback
import uuid
from typing import Any, Dict, Union

import structlog
from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from ..models.errors import (
    ErrorDetail,
    ErrorResponse,
    ErrorType,
    ProbeCancelledError,
    ProbeTimeoutError,
    SupervisorException,
    TeardownError,
)

logger = structlog.get_logger(__name__)

# Status codes raised by routing or by route code as plain HTTPException
HTTP_ERROR_TYPES = {
    400: ErrorType.VALIDATION,
    404: ErrorType.RESOURCE_NOT_FOUND,
    405: ErrorType.VALIDATION,
    422: ErrorType.VALIDATION,
    501: ErrorType.NOT_IMPLEMENTED,
    502: ErrorType.CONTAINER_RUNTIME,
    503: ErrorType.SERVICE_UNAVAILABLE,
    504: ErrorType.TIMEOUT,
}

# Attributes the lifecycle and probe errors carry, copied into the log event
_ERROR_FIELDS = (
    "image",
    "container_id",
    "service_port",
    "url",
    "attempts",
    "elapsed",
    "owner",
)


def generate_request_id() -> str:
    """Generate a unique request ID for error tracking."""
    return uuid.uuid4().hex[:16]


def _request_context(request: Request, request_id: str) -> Dict[str, Any]:
    client = request.client
    return {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": client.host if client else "unknown",
    }


def _error_fields(exc: SupervisorException) -> Dict[str, Any]:
    fields = {}
    for name in _ERROR_FIELDS:
        value = getattr(exc, name, None)
        if value is not None:
            fields[name] = value
    return fields


def log_level_for(exc: SupervisorException) -> str:
    """Pick the log level for a supervisor error.

    A teardown failure means a container may still be running, so it is
    always an error. Agent faults are the image's problem and only warn; a
    cancelled probe is routine.
    """
    if isinstance(exc, TeardownError):
        return "error"
    if isinstance(exc, ProbeCancelledError):
        return "info"
    if isinstance(exc, ProbeTimeoutError) or exc.is_agent_fault:
        return "warning"
    if exc.status_code >= 500:
        return "error"
    return "warning"


def _event_for(exc: SupervisorException) -> str:
    if isinstance(exc, TeardownError):
        return "Agent container leaked during request"
    if exc.is_agent_fault:
        return "Agent image failed validation"
    if exc.status_code >= 500:
        return "Supervisor error occurred"
    return "Client error occurred"


def _json_error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def supervisor_exception_handler(
    request: Request, exc: SupervisorException
) -> JSONResponse:
    """Handle SupervisorException instances."""
    if not exc.request_id:
        exc.request_id = generate_request_id()

    log = getattr(logger, log_level_for(exc))
    log(
        _event_for(exc),
        error_type=exc.error_type.value,
        status_code=exc.status_code,
        message=exc.message,
        details=[d.model_dump() for d in exc.details] or None,
        **_error_fields(exc),
        **_request_context(request, exc.request_id),
    )
    return _json_error(exc.status_code, exc.to_response())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException instances."""
    request_id = generate_request_id()
    error_type = HTTP_ERROR_TYPES.get(exc.status_code, ErrorType.INTERNAL_SERVER)

    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        **_request_context(request, request_id),
    )
    return _json_error(
        exc.status_code,
        ErrorResponse(error=str(exc.detail), error_type=error_type, request_id=request_id),
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, PydanticValidationError]
) -> JSONResponse:
    """Handle malformed request parameters and bodies."""
    request_id = generate_request_id()
    details = [
        ErrorDetail(
            field=" -> ".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        validation_errors=[d.model_dump() for d in details],
        **_request_context(request, request_id),
    )
    return _json_error(
        422,
        ErrorResponse(
            error="Request validation failed",
            error_type=ErrorType.VALIDATION,
            details=details,
            request_id=request_id,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without exposing their text."""
    request_id = generate_request_id()

    logger.error(
        "Unexpected exception",
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=traceback.format_exc(),
        **_request_context(request, request_id),
    )
    return _json_error(
        500,
        ErrorResponse(
            error="An unexpected error occurred",
            error_type=ErrorType.INTERNAL_SERVER,
            request_id=request_id,
        ),
    )
