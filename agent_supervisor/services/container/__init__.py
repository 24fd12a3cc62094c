"""Container management services.

This package provides docker container management functionality split into:
- client.py: Docker client factory and initialization
- manager.py: Agent container lifecycle (acquire, resolve, release, lease)
- utils.py: Shared utilities for container operations
"""

from .client import DockerClientFactory
from .manager import ContainerLifecycleManager
from .utils import run_in_executor, distinct_host_bindings, default_agent_host

__all__ = [
    "DockerClientFactory",
    "ContainerLifecycleManager",
    "run_in_executor",
    "distinct_host_bindings",
    "default_agent_host",
]
