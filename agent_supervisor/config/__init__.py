"""Configuration management for the Agent Supervisor.

A single flat Settings class is read from the environment (and an optional
.env file). Components receive either the whole object or one of the grouped
views below through their constructors; the module-level ``settings``
instance is only the default when nothing is passed.

Usage:
    from agent_supervisor.config import settings

    # Grouped access
    settings.docker.docker_host
    settings.probe.probe_max_elapsed_time

    # Flat access
    settings.docker_host
    settings.agent_service_port
"""

from typing import Optional

import structlog
from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .api import APIConfig
from .docker import DockerConfig
from .logging import LoggingConfig
from .probe import ProbeConfig


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080, ge=1, le=65535)
    api_debug: bool = Field(default=False)
    api_reload: bool = Field(default=False)
    static_path: str = Field(
        default="./static",
        description="Directory served for non-API paths (single-page app)",
    )
    enable_docs: bool = Field(default=True)

    # Docker Configuration
    docker_host: str = Field(
        default="unix:///var/run/docker.sock",
        description="Address of the docker daemon",
    )
    docker_tls: bool = Field(default=False, description="Use TLS to reach the daemon")
    docker_cert_path: Optional[str] = Field(
        default=None,
        description="Directory holding cert.pem, key.pem and ca.pem",
    )
    docker_timeout: int = Field(default=60, ge=1, le=600)

    # Container Lifecycle
    container_stop_timeout: int = Field(
        default=5,
        ge=0,
        le=300,
        description="Seconds allowed for graceful shutdown before the container is killed",
    )
    container_remove_on_release: bool = Field(default=True)

    # Registry
    registry_url: str = Field(default="https://index.docker.io")
    default_tag: str = Field(default="latest")

    # Agent Protocol
    agent_service_port: str = Field(
        default="3423/tcp",
        description="Container port the agent must publish",
    )
    agent_identity_path: str = Field(default="/ping")

    # Probe Retry Policy
    probe_initial_interval: float = Field(default=1.0, gt=0)
    probe_max_interval: float = Field(default=10.0, gt=0)
    probe_max_elapsed_time: float = Field(default=10.0, gt=0)
    probe_multiplier: float = Field(default=1.5, ge=1.0)
    probe_randomization_factor: float = Field(default=0.5, ge=0.0, lt=1.0)
    probe_request_timeout: float = Field(default=2.0, gt=0)
    probe_host_fallback: str = Field(
        default="127.0.0.1",
        description="Address probed when docker reports a wildcard host IP",
    )

    # Validation
    validation_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional bound on a whole validation call in seconds",
    )
    max_concurrent_validations: int = Field(default=4, ge=1, le=64)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    enable_access_logs: bool = Field(default=True)

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @validator("agent_service_port")
    def normalize_service_port(cls, v):
        """Accept a bare port number and default the protocol to tcp."""
        v = v.strip()
        if "/" not in v:
            v = f"{v}/tcp"
        number, _, proto = v.partition("/")
        if not number.isdigit() or not 1 <= int(number) <= 65535:
            raise ValueError(f"Invalid agent service port: {v}")
        return f"{number}/{proto.lower()}"

    @validator("agent_identity_path")
    def validate_identity_path(cls, v):
        """Ensure the identity path is absolute."""
        return v if v.startswith("/") else f"/{v}"

    @validator("docker_cert_path")
    def warn_missing_cert_path(cls, v, values):
        """Log a warning if TLS is requested without a certificate directory."""
        if values.get("docker_tls") and not v:
            structlog.get_logger("config").warning(
                "DOCKER_TLS enabled but DOCKER_CERT_PATH is not set; "
                "looking for certificates in the working directory"
            )
        return v

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def api(self) -> APIConfig:
        """Access API configuration group."""
        return APIConfig(
            api_host=self.api_host,
            api_port=self.api_port,
            api_debug=self.api_debug,
            api_reload=self.api_reload,
            static_path=self.static_path,
            enable_docs=self.enable_docs,
        )

    @property
    def docker(self) -> DockerConfig:
        """Access docker configuration group."""
        return DockerConfig(
            docker_host=self.docker_host,
            docker_tls=self.docker_tls,
            docker_cert_path=self.docker_cert_path,
            docker_timeout=self.docker_timeout,
            container_stop_timeout=self.container_stop_timeout,
            container_remove_on_release=self.container_remove_on_release,
            registry_url=self.registry_url,
            default_tag=self.default_tag,
        )

    @property
    def probe(self) -> ProbeConfig:
        """Access probe configuration group."""
        return ProbeConfig(
            agent_service_port=self.agent_service_port,
            agent_identity_path=self.agent_identity_path,
            probe_initial_interval=self.probe_initial_interval,
            probe_max_interval=self.probe_max_interval,
            probe_max_elapsed_time=self.probe_max_elapsed_time,
            probe_multiplier=self.probe_multiplier,
            probe_randomization_factor=self.probe_randomization_factor,
            probe_request_timeout=self.probe_request_timeout,
            probe_host_fallback=self.probe_host_fallback,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            enable_access_logs=self.enable_access_logs,
        )


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "APIConfig",
    "DockerConfig",
    "LoggingConfig",
    "ProbeConfig",
]
