"""Service dependency injection for the Agent Supervisor API."""

from functools import lru_cache
from typing import Annotated

import docker
import structlog
from fastapi import Depends

from ..config import Settings, settings
from ..services.container import DockerClientFactory
from ..services.images import ImageService
from ..services.validation import ValidationOrchestrator

logger = structlog.get_logger(__name__)


def get_settings() -> Settings:
    """Get the application settings."""
    return settings


@lru_cache()
def get_docker_client() -> docker.DockerClient:
    """Get the shared docker client."""
    return DockerClientFactory(settings.docker).create_client()


@lru_cache()
def get_image_service() -> ImageService:
    """Get image catalogue service instance."""
    return ImageService(get_docker_client(), settings.docker)


@lru_cache()
def get_validation_orchestrator() -> ValidationOrchestrator:
    """Get validation orchestrator instance."""
    orchestrator = ValidationOrchestrator.from_settings(get_docker_client(), settings)
    logger.info(
        "Validation orchestrator initialized",
        service_port=settings.agent_service_port,
        identity_path=settings.agent_identity_path,
        max_elapsed_time=settings.probe_max_elapsed_time,
    )
    return orchestrator


def reset_services() -> None:
    """Drop cached service instances, closing the docker client if one was made."""
    if get_docker_client.cache_info().currsize:
        get_docker_client().close()
    get_validation_orchestrator.cache_clear()
    get_image_service.cache_clear()
    get_docker_client.cache_clear()


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_settings)]
ImageServiceDep = Annotated[ImageService, Depends(get_image_service)]
OrchestratorDep = Annotated[
    ValidationOrchestrator, Depends(get_validation_orchestrator)
]
