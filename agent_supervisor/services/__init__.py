"""Services for the Agent Supervisor."""

from .container import ContainerLifecycleManager, DockerClientFactory
from .images import ImageService
from .probe import ExponentialBackoff, HealthProbe
from .validation import ValidationOrchestrator, accept_any

__all__ = [
    "ContainerLifecycleManager",
    "DockerClientFactory",
    "ImageService",
    "ExponentialBackoff",
    "HealthProbe",
    "ValidationOrchestrator",
    "accept_any",
]
