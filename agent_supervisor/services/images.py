"""Image catalogue service: local images, registry pulls and running containers."""

from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import urlparse

import docker
import structlog
from docker.errors import ImageNotFound, NotFound

from ..config import DockerConfig, settings
from ..models.errors import (
    ResourceNotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from ..models.images import ContainerSummary, ImageInfo, ImageSummary
from .container.utils import run_in_executor

logger = structlog.get_logger(__name__)

DOCKER_HUB_HOSTS = {"index.docker.io", "registry-1.docker.io", "docker.io"}


class ImageService:
    """Thin async wrapper over the docker image and container APIs."""

    def __init__(self, client: docker.DockerClient, config: Optional[DockerConfig] = None):
        self._client = client
        self._config = config or settings.docker

    async def ping(self) -> bool:
        """Check that the docker daemon answers."""
        try:
            return bool(await run_in_executor(self._client.ping))
        except Exception as e:
            logger.warning("Docker daemon ping failed", error=str(e))
            return False

    async def list_images(self) -> List[ImageSummary]:
        """List local images, most recent first as reported by the daemon."""
        try:
            images = await run_in_executor(self._client.images.list, all=False)
        except Exception as e:
            logger.error("Failed to list images", error=str(e))
            raise ServiceUnavailableError("Docker", f"error listing images: {e}") from e

        return [
            ImageSummary(
                id=img.id,
                tags=list(img.tags or []),
                created=img.attrs.get("Created"),
                size=img.attrs.get("Size"),
            )
            for img in images
        ]

    async def list_running(self) -> List[ContainerSummary]:
        """List containers that are currently running."""
        try:
            containers = await run_in_executor(self._client.containers.list)
        except Exception as e:
            logger.error("Failed to list containers", error=str(e))
            raise ServiceUnavailableError("Docker", f"error listing containers: {e}") from e

        return [
            ContainerSummary(
                id=c.id,
                name=c.name,
                image=(c.attrs.get("Config") or {}).get("Image", ""),
                status=c.status,
                ports=c.ports or {},
            )
            for c in containers
        ]

    async def inspect_image(self, image: str) -> ImageInfo:
        """Return the ports an image declares as exposed."""
        if not image:
            raise ValidationError("`image` parameter is required")
        try:
            img = await run_in_executor(self._client.images.get, image)
        except (ImageNotFound, NotFound) as e:
            raise ResourceNotFoundError("Image", f"image {image} not found") from e
        except Exception as e:
            logger.error("Failed to inspect image", image=image, error=str(e))
            raise ServiceUnavailableError("Docker", f"error inspecting image: {e}") from e

        config = img.attrs.get("Config") or {}
        return ImageInfo(image=image, exposed_ports=config.get("ExposedPorts") or {})

    def qualify_repository(self, repository: str) -> str:
        """Prefix ``repository`` with the configured registry unless it is Docker Hub."""
        registry = urlparse(self._config.registry_url).netloc or self._config.registry_url
        first = repository.split("/", 1)[0]
        has_registry = "/" in repository and ("." in first or ":" in first)
        if not registry or registry in DOCKER_HUB_HOSTS or has_registry:
            return repository
        return f"{registry}/{repository}"

    async def pull_image(
        self, repository: str, tag: Optional[str] = None
    ) -> AsyncIterator[Dict[str, Any]]:
        """Pull an image, yielding the daemon's progress messages.

        Raises:
            ValidationError: no repository was given
            ServiceUnavailableError: the pull could not be started
        """
        if not repository:
            raise ValidationError("`image` parameter is required")

        tag = tag or self._config.default_tag
        qualified = self.qualify_repository(repository)
        logger.info("Pulling image", repository=qualified, tag=tag)
        try:
            stream = await run_in_executor(
                self._client.api.pull, qualified, tag=tag, stream=True, decode=True
            )
        except Exception as e:
            logger.error("Failed to pull image", repository=qualified, error=str(e))
            raise ServiceUnavailableError("Docker", f"error pulling image: {e}") from e

        sentinel = object()
        try:
            while True:
                message = await run_in_executor(next, stream, sentinel)
                if message is sentinel:
                    break
                if "error" in message:
                    logger.warning(
                        "Image pull reported an error",
                        repository=qualified,
                        error=message["error"],
                    )
                yield message
        finally:
            self._close_stream(stream, qualified)

        logger.info("Image pull finished", repository=qualified, tag=tag)

    @staticmethod
    def _close_stream(stream: Any, repository: str) -> None:
        """Close the pull's HTTP response, even when the reader stopped early."""
        close = getattr(stream, "close", None)
        if close is None:
            return
        try:
            close()
        except ValueError as e:
            # A worker thread is still inside next(); it ends with the response.
            logger.debug(
                "Pull stream still busy at close", repository=repository, error=str(e)
            )
