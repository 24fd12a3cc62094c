"""Agent health probe configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings


class ProbeConfig(BaseSettings):
    """Agent protocol constants and probe retry policy."""

    agent_service_port: str = Field(default="3423/tcp")
    agent_identity_path: str = Field(default="/ping")

    probe_initial_interval: float = Field(default=1.0, gt=0)
    probe_max_interval: float = Field(default=10.0, gt=0)
    probe_max_elapsed_time: float = Field(default=10.0, gt=0)
    probe_multiplier: float = Field(default=1.5, ge=1.0)
    probe_randomization_factor: float = Field(default=0.5, ge=0.0, lt=1.0)
    probe_request_timeout: float = Field(default=2.0, gt=0)
    probe_host_fallback: str = Field(default="127.0.0.1")

    class Config:
        env_prefix = ""
        extra = "ignore"
