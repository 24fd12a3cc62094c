"""Docker client factory and initialization."""

from typing import Optional

import docker
import structlog
from docker.tls import TLSConfig

from ...config import DockerConfig, settings

logger = structlog.get_logger(__name__)


class DockerClientFactory:
    """Builds docker clients from the docker configuration group.

    The resulting ``docker.DockerClient`` is shared by all concurrent
    validations; the SDK's connection pool is safe for use from several
    threads.
    """

    def __init__(self, config: Optional[DockerConfig] = None):
        self._config = config or settings.docker

    def _tls_config(self) -> TLSConfig:
        cert, key, ca = self._config.get_tls_files()
        return TLSConfig(client_cert=(cert, key), ca_cert=ca, verify=True)

    def create_client(self) -> docker.DockerClient:
        """Create a client for the configured daemon."""
        tls = self._tls_config() if self._config.docker_tls else False
        client = docker.DockerClient(
            base_url=self._config.docker_host,
            tls=tls,
            timeout=self._config.docker_timeout,
        )
        logger.info(
            "Docker client initialized",
            docker_host=self._config.docker_host,
            tls=bool(self._config.docker_tls),
            timeout=self._config.docker_timeout,
        )
        return client
