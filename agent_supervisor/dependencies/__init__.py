"""Dependencies package for the Agent Supervisor API."""

from .services import (
    get_settings,
    get_docker_client,
    get_image_service,
    get_validation_orchestrator,
    reset_services,
    SettingsDep,
    ImageServiceDep,
    OrchestratorDep,
)

__all__ = [
    "get_settings",
    "get_docker_client",
    "get_image_service",
    "get_validation_orchestrator",
    "reset_services",
    "SettingsDep",
    "ImageServiceDep",
    "OrchestratorDep",
]
