"""Agent container lifecycle management using the docker SDK."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

import docker
import structlog
from docker.errors import ImageNotFound, NotFound

from ...config import DockerConfig, settings
from ...models.container import ContainerHandle, Endpoint
from ...models.errors import (
    AmbiguousMappingError,
    CreationError,
    InspectionError,
    PortNotExposedError,
    StartError,
    TeardownError,
)
from .utils import (
    WILDCARD_HOSTS,
    default_agent_host,
    describe_ports,
    distinct_host_bindings,
    run_in_executor,
)

logger = structlog.get_logger(__name__)


class ContainerLifecycleManager:
    """Creates, inspects and stops agent containers.

    None of the operations are idempotent: every ``acquire`` produces a new
    container. ``lease`` wraps acquire and release so the container is
    stopped on every exit path.
    """

    def __init__(
        self,
        client: docker.DockerClient,
        config: Optional[DockerConfig] = None,
        service_port: Optional[str] = None,
        agent_host: Optional[str] = None,
    ):
        """Initialize the lifecycle manager.

        Args:
            client: Shared docker client
            config: Docker configuration group (stop timeout, removal)
            service_port: Container port the agent must publish, e.g. "3423/tcp"
            agent_host: Address used when docker reports a wildcard host IP
        """
        self._client = client
        self._config = config or settings.docker
        self._service_port = service_port or settings.agent_service_port
        self._agent_host = agent_host or default_agent_host(
            self._config.docker_host, settings.probe_host_fallback
        )

    @property
    def service_port(self) -> str:
        return self._service_port

    def _labels(self, image: str) -> dict:
        return {
            "com.agent-supervisor.managed": "true",
            "com.agent-supervisor.type": "validation",
            "com.agent-supervisor.image": image,
            "com.agent-supervisor.created-at": datetime.utcnow().isoformat(),
        }

    async def acquire(self, image: str) -> ContainerHandle:
        """Create a container for ``image`` and start it.

        All ports the image exposes are published to ephemeral host ports.

        Cancelling a bare ``acquire`` can leave a container behind; callers
        that may be cancelled use ``lease``.

        Raises:
            CreationError: the image could not be instantiated (no handle exists)
            StartError: the container exists but could not be started; the
                error carries the handle so it can still be released
        """
        try:
            container = await run_in_executor(
                self._client.containers.create,
                image,
                labels=self._labels(image),
                publish_all_ports=True,
            )
        except ImageNotFound as e:
            logger.warning("Agent image not found", image=image)
            raise CreationError(image, f"image not found: {e}") from e
        except Exception as e:
            logger.error("Failed to create agent container", image=image, error=str(e))
            raise CreationError(image, str(e)) from e

        handle = ContainerHandle(
            container_id=container.id,
            image=image,
            service_port=self._service_port,
            container=container,
        )
        logger.info("Created agent container", container_id=handle.short_id, image=image)

        try:
            await run_in_executor(container.start)
        except Exception as e:
            logger.error(
                "Failed to start agent container",
                container_id=handle.short_id,
                image=image,
                error=str(e),
            )
            raise StartError(image, str(e), handle=handle) from e

        handle.started = True
        logger.debug("Started agent container", container_id=handle.short_id)
        return handle

    async def resolve_endpoint(self, handle: ContainerHandle) -> Endpoint:
        """Find the single host endpoint the service port was published to.

        Raises:
            InspectionError: the runtime could not report the container state,
                or the container is not running
            PortNotExposedError: the service port has no host mapping
            AmbiguousMappingError: the service port has several host mappings
        """
        container = handle.container
        try:
            await run_in_executor(container.reload)
        except Exception as e:
            raise InspectionError(handle.container_id, str(e)) from e

        status = getattr(container, "status", "")
        if status != "running":
            raise InspectionError(
                handle.container_id, f"container is {status or 'unknown'}, not running"
            )

        ports = (container.attrs.get("NetworkSettings") or {}).get("Ports") or {}
        bindings = distinct_host_bindings(ports.get(self._service_port))
        if not bindings:
            raise PortNotExposedError(self._service_port, describe_ports(ports))
        if len(bindings) > 1:
            raise AmbiguousMappingError(
                self._service_port, describe_ports({self._service_port: bindings})
            )

        binding = bindings[0]
        host_ip = binding.get("HostIp") or ""
        try:
            host_port = int(binding["HostPort"])
        except (KeyError, TypeError, ValueError) as e:
            raise InspectionError(
                handle.container_id, f"invalid host port in {binding}"
            ) from e

        host = self._agent_host if host_ip in WILDCARD_HOSTS else host_ip
        handle.endpoint = Endpoint(host=host, port=host_port)
        logger.info(
            "Resolved agent endpoint",
            container_id=handle.short_id,
            host=host,
            port=host_port,
        )
        return handle.endpoint

    async def release(self, handle: ContainerHandle) -> None:
        """Stop the container, then remove it if configured to.

        A handle is released at most once; later calls do nothing.

        Raises:
            TeardownError: the runtime could not stop or remove the container
        """
        if handle.released:
            logger.warning("Container already released", container_id=handle.short_id)
            return
        handle.released = True

        container = handle.container
        try:
            await run_in_executor(
                container.stop, timeout=self._config.container_stop_timeout
            )
        except NotFound:
            logger.warning("Container vanished before stop", container_id=handle.short_id)
            return
        except Exception as e:
            logger.error(
                "Failed to stop agent container",
                container_id=handle.short_id,
                error=str(e),
            )
            raise TeardownError(handle.container_id, str(e)) from e

        if self._config.container_remove_on_release:
            try:
                await run_in_executor(container.remove, force=True)
            except NotFound:
                pass
            except Exception as e:
                logger.error(
                    "Failed to remove agent container",
                    container_id=handle.short_id,
                    error=str(e),
                )
                raise TeardownError(handle.container_id, f"remove failed: {e}") from e

        logger.info("Released agent container", container_id=handle.short_id)

    async def _release_recorded(self, handle: ContainerHandle) -> None:
        """Release inside a guard, recording teardown failure on the handle.

        Shielded so a cancelled validation still stops its container.
        """
        try:
            await asyncio.shield(self.release(handle))
        except TeardownError as e:
            handle.teardown_error = e
            logger.error(
                "Agent container leaked; manual cleanup required",
                container_id=handle.short_id,
                image=handle.image,
                error=e.message,
            )

    async def _settle_abandoned(self, acquiring: "asyncio.Task[ContainerHandle]") -> None:
        """Wait for an acquire whose caller was cancelled and release its container.

        The docker calls keep running in their worker thread after the caller
        is cancelled, so the container may still appear.
        """
        try:
            handle = await asyncio.shield(acquiring)
        except StartError as e:
            handle = e.handle
        except CreationError:
            return
        if handle is not None:
            logger.info(
                "Releasing container acquired for a cancelled validation",
                container_id=handle.short_id,
                image=handle.image,
            )
            await self._release_recorded(handle)

    @asynccontextmanager
    async def lease(self, image: str) -> AsyncIterator[ContainerHandle]:
        """Acquire a container for the duration of a ``async with`` block.

        The container is released exactly once whether the block returns,
        raises, or is cancelled, including cancellation while the container
        is still being created or started. A container that was created but
        failed to start is released before the ``StartError`` propagates.
        Teardown failures land in ``handle.teardown_error`` and never replace
        the exception leaving the block.
        """
        acquiring = asyncio.ensure_future(self.acquire(image))
        try:
            handle = await asyncio.shield(acquiring)
        except StartError as e:
            if e.handle is not None:
                await self._release_recorded(e.handle)
            raise
        except asyncio.CancelledError:
            await self._settle_abandoned(acquiring)
            raise

        try:
            yield handle
        finally:
            await self._release_recorded(handle)
