"""Error models and exception classes for the Agent Supervisor."""

import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Error type enumeration."""

    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    AGENT_REJECTED = "agent_rejected"
    PROTOCOL_VIOLATION = "protocol_violation"
    TIMEOUT = "timeout"
    CONTAINER_RUNTIME = "container_runtime"
    TEARDOWN = "teardown"
    CANCELLED = "cancelled"
    NOT_IMPLEMENTED = "not_implemented"
    INTERNAL_SERVER = "internal_server"
    SERVICE_UNAVAILABLE = "service_unavailable"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Field name for validation errors")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    details: Optional[List[ErrorDetail]] = Field(
        None, description="Additional error details"
    )
    request_id: Optional[str] = Field(
        None, description="Request identifier for tracking"
    )
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")

    class Config:
        use_enum_values = True


# Custom Exception Classes


class SupervisorException(Exception):
    """Base exception for the Agent Supervisor."""

    # True when the failure is caused by the agent image rather than the host
    is_agent_fault = False

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL_SERVER,
        status_code: int = 500,
        details: Optional[List[ErrorDetail]] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or []
        self.request_id = request_id
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            details=self.details if self.details else None,
            request_id=self.request_id,
        )


class ValidationError(SupervisorException):
    """Request validation errors."""

    def __init__(self, message: str = "Validation failed", **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.VALIDATION, status_code=400, **kwargs
        )


class ResourceNotFoundError(SupervisorException):
    """Requested image or container does not exist."""

    def __init__(self, resource: str, message: Optional[str] = None, **kwargs):
        super().__init__(
            message=message or f"{resource} not found",
            error_type=ErrorType.RESOURCE_NOT_FOUND,
            status_code=404,
            **kwargs,
        )


class NotImplementedFeatureError(SupervisorException):
    """Feature recognised but not available."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.NOT_IMPLEMENTED,
            status_code=501,
            **kwargs,
        )


class ServiceUnavailableError(SupervisorException):
    """Service unavailable errors."""

    def __init__(self, service: str, message: str = None, **kwargs):
        error_message = message or f"{service} service is currently unavailable"
        super().__init__(
            message=error_message,
            error_type=ErrorType.SERVICE_UNAVAILABLE,
            status_code=503,
            **kwargs,
        )


# Container lifecycle errors


class LifecycleError(SupervisorException):
    """Container runtime failed while managing an agent container."""

    def __init__(self, message: str, status_code: int = 502, **kwargs):
        kwargs.setdefault("error_type", ErrorType.CONTAINER_RUNTIME)
        super().__init__(message=message, status_code=status_code, **kwargs)


class CreationError(LifecycleError):
    """The runtime could not instantiate a container from the image."""

    def __init__(self, image: str, reason: str, **kwargs):
        self.image = image
        super().__init__(f"error creating container for {image}: {reason}", **kwargs)


class StartError(LifecycleError):
    """The created container could not be started.

    ``handle`` keeps the created container so it can still be released.
    """

    def __init__(self, image: str, reason: str, handle=None, **kwargs):
        self.image = image
        self.handle = handle
        super().__init__(f"error starting container for {image}: {reason}", **kwargs)


class InspectionError(LifecycleError):
    """The runtime could not report the container's state."""

    def __init__(self, container_id: str, reason: str, **kwargs):
        self.container_id = container_id
        super().__init__(
            f"error inspecting container {container_id[:12]}: {reason}", **kwargs
        )


class PortNotExposedError(LifecycleError):
    """The container did not publish the agent service port."""

    is_agent_fault = True

    def __init__(self, service_port: str, found: dict, **kwargs):
        self.service_port = service_port
        self.found = found
        super().__init__(
            f"container must expose port {service_port}. Found: {found}",
            status_code=422,
            error_type=ErrorType.AGENT_REJECTED,
            **kwargs,
        )


class AmbiguousMappingError(LifecycleError):
    """The agent service port is published to more than one host port."""

    is_agent_fault = True

    def __init__(self, service_port: str, mappings: dict, **kwargs):
        self.service_port = service_port
        self.mappings = mappings
        super().__init__(
            f"expected one port mapping for {service_port}. Found: {mappings}",
            status_code=422,
            error_type=ErrorType.AGENT_REJECTED,
            **kwargs,
        )


class TeardownError(LifecycleError):
    """The container could not be stopped; it may have leaked."""

    def __init__(self, container_id: str, reason: str, **kwargs):
        self.container_id = container_id
        super().__init__(
            f"error stopping container {container_id[:12]}: {reason}",
            status_code=500,
            error_type=ErrorType.TEARDOWN,
            **kwargs,
        )


# Probe errors


class ProbeError(SupervisorException):
    """The agent did not pass the health/identity handshake."""

    is_agent_fault = True

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.AGENT_REJECTED,
        status_code: int = 422,
        attempts: int = 0,
        **kwargs,
    ):
        self.attempts = attempts
        super().__init__(
            message=message, error_type=error_type, status_code=status_code, **kwargs
        )


class ProbeTimeoutError(ProbeError):
    """No successful response before the elapsed-time budget ran out."""

    def __init__(self, url: str, elapsed: float, attempts: int = 0, last_error=None):
        self.url = url
        self.elapsed = elapsed
        self.last_error = last_error
        message = f"agent at {url} did not respond within {elapsed:.1f}s"
        if last_error is not None:
            message = f"{message} (last error: {last_error})"
        super().__init__(
            message,
            error_type=ErrorType.TIMEOUT,
            status_code=504,
            attempts=attempts,
        )


class ProtocolViolationError(ProbeError):
    """The agent answered with a payload that is not an identity record."""

    def __init__(self, url: str, reason: str, attempts: int = 1):
        self.url = url
        super().__init__(
            f"agent at {url} returned an invalid identity payload: {reason}",
            error_type=ErrorType.PROTOCOL_VIOLATION,
            attempts=attempts,
        )


class AgentRejectedError(ProbeError):
    """The identity decoded but the acceptance policy refused it."""

    def __init__(self, owner: str, reason: str = "identity not accepted", **kwargs):
        self.owner = owner
        super().__init__(f"agent owned by {owner!r} rejected: {reason}", **kwargs)


class ProbeCancelledError(ProbeError):
    """The probe was aborted through its cancellation event."""

    is_agent_fault = False

    def __init__(self, url: str, attempts: int = 0):
        self.url = url
        super().__init__(
            f"probe of {url} was cancelled",
            error_type=ErrorType.CANCELLED,
            status_code=503,
            attempts=attempts,
        )
