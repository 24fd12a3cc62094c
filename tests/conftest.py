"""Pytest configuration and shared fixtures."""

import os
from typing import Callable, Dict, List, Optional
from unittest.mock import MagicMock

import httpx
import pytest

# Set test environment before importing config
os.environ.setdefault("STATIC_PATH", "/nonexistent/agent-supervisor-static")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("DOCKER_HOST", "unix:///var/run/docker.sock")

from agent_supervisor.config import DockerConfig, ProbeConfig
from agent_supervisor.models.agent import AgentIdentity, ValidationResult, ValidationVerdict
from agent_supervisor.services.container import ContainerLifecycleManager
from agent_supervisor.services.probe import HealthProbe
from agent_supervisor.services.validation import ValidationOrchestrator

SERVICE_PORT = "3423/tcp"


def port_table(*host_ports: str, host_ip: str = "0.0.0.0") -> Dict[str, List[dict]]:
    """Build a NetworkSettings.Ports table for the agent service port."""
    return {
        SERVICE_PORT: [{"HostIp": host_ip, "HostPort": p} for p in host_ports]
    }


def make_container(
    container_id: str = "c0ffee1234567890abcdef",
    ports: Optional[dict] = None,
    status: str = "running",
) -> MagicMock:
    """Mock docker container with the given published ports."""
    container = MagicMock()
    container.id = container_id
    container.status = status
    container.attrs = {"NetworkSettings": {"Ports": ports if ports is not None else {}}}
    return container


def agent_transport(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
    """Wrap a request handler as an agent endpoint."""
    return httpx.MockTransport(handler)


def ok_agent(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"Owner": "btc", "Taunts": ["gg"]})


def garbage_agent(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>definitely not json</html>")


def refusing_agent(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def slow_agent(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


@pytest.fixture
def docker_config():
    """Docker settings for a local daemon."""
    return DockerConfig(
        docker_host="unix:///var/run/docker.sock",
        container_stop_timeout=5,
        container_remove_on_release=True,
    )


@pytest.fixture
def probe_config():
    """Probe settings with a short, deterministic retry budget."""
    return ProbeConfig(
        agent_service_port=SERVICE_PORT,
        agent_identity_path="/ping",
        probe_initial_interval=0.01,
        probe_max_interval=0.05,
        probe_max_elapsed_time=0.3,
        probe_multiplier=1.5,
        probe_randomization_factor=0.0,
        probe_request_timeout=0.5,
    )


@pytest.fixture
def mock_docker_client():
    """Mock docker client whose create() returns a running container on 49001."""
    client = MagicMock()
    client.containers.create.return_value = make_container(ports=port_table("49001"))
    return client


@pytest.fixture
def lifecycle(mock_docker_client, docker_config):
    """Lifecycle manager over the mock docker client."""
    return ContainerLifecycleManager(
        mock_docker_client,
        config=docker_config,
        service_port=SERVICE_PORT,
        agent_host="127.0.0.1",
    )


@pytest.fixture
def make_orchestrator(mock_docker_client, docker_config, probe_config):
    """Factory building an orchestrator whose agent answers through ``handler``."""

    def _make(handler=ok_agent, **kwargs) -> ValidationOrchestrator:
        lifecycle = ContainerLifecycleManager(
            mock_docker_client,
            config=docker_config,
            service_port=SERVICE_PORT,
            agent_host="127.0.0.1",
        )
        probe = HealthProbe(config=probe_config, transport=agent_transport(handler))
        return ValidationOrchestrator(lifecycle=lifecycle, probe=probe, **kwargs)

    return _make


@pytest.fixture
def validated_result():
    """A successful validation result."""
    return ValidationResult(
        image="ok-agent",
        verdict=ValidationVerdict.VALIDATED,
        identity=AgentIdentity(owner="btc", taunts=["gg"]),
        container_id="c0ffee1234567890abcdef",
        attempts=1,
        duration_ms=42.0,
    )
