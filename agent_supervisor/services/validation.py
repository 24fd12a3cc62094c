"""Validation Orchestrator - decides whether an agent image may play.

One validation runs the phases in strict order and always releases the
container it created:

    Idle -> Acquiring -> EndpointResolving -> Probing
         -> {Validated | Rejected | Failed} -> Released

Usage:
    orchestrator = ValidationOrchestrator.from_settings(docker_client, settings)
    result = await orchestrator.validate_image("ok-agent")
    if not result.ok:
        print(result.error)
"""

import asyncio
import time
from typing import Callable, Optional

import docker
import httpx
import structlog

from ..config import Settings, settings as default_settings
from ..models.agent import (
    AgentIdentity,
    ProbeOutcome,
    ValidationResult,
    ValidationVerdict,
)
from ..models.errors import (
    AgentRejectedError,
    CreationError,
    ProbeTimeoutError,
    ProtocolViolationError,
    StartError,
    SupervisorException,
    ValidationError,
)
from .container import ContainerLifecycleManager
from .probe import HealthProbe

logger = structlog.get_logger(__name__)

AcceptancePolicy = Callable[[AgentIdentity], bool]


def accept_any(identity: AgentIdentity) -> bool:
    """Default policy: any decodable identity is acceptable."""
    return True


def _probe_outcome(error: Exception) -> Optional[ProbeOutcome]:
    if isinstance(error, (ProtocolViolationError, AgentRejectedError)):
        return ProbeOutcome.REACHABLE_INVALID
    if isinstance(error, ProbeTimeoutError):
        if isinstance(error.last_error, httpx.TimeoutException):
            return ProbeOutcome.TIMED_OUT
        return ProbeOutcome.UNREACHABLE
    return None


class ValidationOrchestrator:
    """Sequences acquire, resolve, probe and release for one image.

    Holds no per-call state, so ``validate_image`` may run concurrently for
    different images. Concurrency is capped by ``max_concurrent``.
    """

    def __init__(
        self,
        lifecycle: ContainerLifecycleManager,
        probe: HealthProbe,
        accept: Optional[AcceptancePolicy] = None,
        validation_timeout: Optional[float] = None,
        max_concurrent: int = 4,
    ):
        self.lifecycle = lifecycle
        self.probe = probe
        self.accept = accept or accept_any
        self.validation_timeout = validation_timeout
        self._semaphore = asyncio.Semaphore(max_concurrent)

    @classmethod
    def from_settings(
        cls,
        client: docker.DockerClient,
        config: Optional[Settings] = None,
        accept: Optional[AcceptancePolicy] = None,
    ) -> "ValidationOrchestrator":
        """Build an orchestrator and its collaborators from one settings object."""
        config = config or default_settings
        lifecycle = ContainerLifecycleManager(
            client,
            config=config.docker,
            service_port=config.agent_service_port,
        )
        return cls(
            lifecycle=lifecycle,
            probe=HealthProbe(config=config.probe),
            accept=accept,
            validation_timeout=config.validation_timeout,
            max_concurrent=config.max_concurrent_validations,
        )

    async def validate_image(
        self,
        image: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ValidationResult:
        """Validate ``image`` and return the verdict.

        Agent-caused problems (missing or ambiguous port, protocol violation,
        timeout, refused identity) give a ``rejected`` result. Runtime
        problems (create, start, inspect) give ``failed``. A teardown error
        is attached to the result without changing the verdict.

        Args:
            image: Image reference to validate
            cancel_event: Optional event aborting the probe phase early

        Returns:
            ValidationResult for the image
        """
        if not image or not image.strip():
            raise ValidationError("`image` parameter is required")

        async with self._semaphore:
            if self.validation_timeout is None:
                return await self._run(image, cancel_event)
            try:
                return await asyncio.wait_for(
                    self._run(image, cancel_event), timeout=self.validation_timeout
                )
            except asyncio.TimeoutError:
                logger.error(
                    "Validation exceeded its time bound",
                    image=image,
                    timeout_s=self.validation_timeout,
                )
                return ValidationResult(
                    image=image,
                    verdict=ValidationVerdict.FAILED,
                    error=TimeoutError(
                        f"validation of {image} exceeded {self.validation_timeout}s"
                    ),
                    duration_ms=self.validation_timeout * 1000,
                )

    async def validate_image_or_raise(
        self,
        image: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ValidationResult:
        """Validate ``image`` and raise the primary error unless it validated."""
        result = await self.validate_image(image, cancel_event)
        if not result.ok and result.error is not None:
            raise result.error
        return result

    async def _run(
        self, image: str, cancel_event: Optional[asyncio.Event]
    ) -> ValidationResult:
        start = time.perf_counter()
        result = ValidationResult(image=image, verdict=ValidationVerdict.FAILED)
        log = logger.bind(image=image)
        log.info("Validating agent image", phase="acquiring")

        handle = None
        try:
            async with self.lifecycle.lease(image) as handle:
                result.container_id = handle.container_id

                log.debug("Resolving endpoint", phase="endpoint_resolving")
                endpoint = await self.lifecycle.resolve_endpoint(handle)

                log.debug("Probing agent", phase="probing", url=endpoint.url())
                report = await self.probe.probe(endpoint, cancel_event)
                result.attempts = report.attempts
                result.identity = report.identity

                if not self.accept(report.identity):
                    raise AgentRejectedError(
                        report.identity.owner, attempts=report.attempts
                    )

                result.verdict = ValidationVerdict.VALIDATED
                result.outcome = report.outcome
        except SupervisorException as e:
            result.error = e
            result.verdict = (
                ValidationVerdict.REJECTED if e.is_agent_fault else ValidationVerdict.FAILED
            )
            result.outcome = _probe_outcome(e)
            result.attempts = getattr(e, "attempts", result.attempts)
            if isinstance(e, StartError) and e.handle is not None:
                handle = e.handle
                result.container_id = e.handle.container_id

        if handle is not None:
            result.teardown_error = handle.teardown_error

        result.duration_ms = (time.perf_counter() - start) * 1000
        self._log_result(log, result)
        return result

    def _log_result(self, log, result: ValidationResult) -> None:
        fields = dict(
            phase="released",
            verdict=result.verdict.value,
            container_id=result.container_id[:12] if result.container_id else None,
            attempts=result.attempts,
            duration_ms=round(result.duration_ms, 2),
        )
        if result.teardown_error is not None:
            log.error(
                "Agent container was not released",
                teardown_error=str(result.teardown_error),
                **fields,
            )
        if result.ok:
            log.info("Agent image validated", owner=result.identity.owner, **fields)
        elif isinstance(result.error, CreationError):
            log.warning("Agent image could not be started", error=str(result.error), **fields)
        else:
            log.warning("Agent image not valid", error=str(result.error), **fields)
