"""Data models for the Agent Supervisor."""

from .agent import (
    AgentIdentity,
    ProbeOutcome,
    ProbeReport,
    ValidationResult,
    ValidationVerdict,
)
from .container import ContainerHandle, Endpoint
from .images import (
    ContainerSummary,
    ImageInfo,
    ImageSummary,
    UploadImageRequest,
    ValidationResponse,
)
from .errors import (
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    SupervisorException,
    ValidationError,
    ResourceNotFoundError,
    NotImplementedFeatureError,
    ServiceUnavailableError,
    LifecycleError,
    CreationError,
    StartError,
    InspectionError,
    PortNotExposedError,
    AmbiguousMappingError,
    TeardownError,
    ProbeError,
    ProbeTimeoutError,
    ProtocolViolationError,
    AgentRejectedError,
    ProbeCancelledError,
)

__all__ = [
    # Agent models
    "AgentIdentity",
    "ProbeOutcome",
    "ProbeReport",
    "ValidationResult",
    "ValidationVerdict",
    # Container models
    "ContainerHandle",
    "Endpoint",
    # API models
    "ContainerSummary",
    "ImageInfo",
    "ImageSummary",
    "UploadImageRequest",
    "ValidationResponse",
    # Error models
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "SupervisorException",
    "ValidationError",
    "ResourceNotFoundError",
    "NotImplementedFeatureError",
    "ServiceUnavailableError",
    "LifecycleError",
    "CreationError",
    "StartError",
    "InspectionError",
    "PortNotExposedError",
    "AmbiguousMappingError",
    "TeardownError",
    "ProbeError",
    "ProbeTimeoutError",
    "ProtocolViolationError",
    "AgentRejectedError",
    "ProbeCancelledError",
]
