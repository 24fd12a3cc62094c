"""Agent health/identity probe with exponential backoff.

A probe repeatedly requests the agent's identity path until it gets a
decodable identity, a response it cannot decode, or runs out of time:

- transport failures (connection refused, timeouts, DNS) are transient and
  retried after a backoff sleep
- any received response that does not decode into an AgentIdentity is a
  protocol violation and is reported at once, without retrying
- once ``max_elapsed_time`` has passed the probe raises ProbeTimeoutError;
  a failing probe never runs longer than that bound plus one attempt
"""

import asyncio
import random
import time
from typing import Callable, Optional

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from ..config import ProbeConfig, settings
from ..models.agent import AgentIdentity, ProbeReport
from ..models.container import Endpoint
from ..models.errors import (
    ProbeCancelledError,
    ProbeTimeoutError,
    ProtocolViolationError,
)

logger = structlog.get_logger(__name__)


class ExponentialBackoff:
    """Exponential backoff bounded by a total elapsed time.

    Each interval is the previous one times ``multiplier``, capped at
    ``max_interval`` and randomized by +/- ``randomization_factor``. The
    returned sleep never extends past ``max_elapsed_time``.
    """

    def __init__(
        self,
        initial_interval: float = 1.0,
        max_interval: float = 10.0,
        max_elapsed_time: float = 10.0,
        multiplier: float = 1.5,
        randomization_factor: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self.initial_interval = initial_interval
        self.max_interval = max_interval
        self.max_elapsed_time = max_elapsed_time
        self.multiplier = multiplier
        self.randomization_factor = randomization_factor
        self._clock = clock
        self._rng = rng or random.Random()
        self.reset()

    @classmethod
    def from_config(cls, config: ProbeConfig) -> "ExponentialBackoff":
        return cls(
            initial_interval=config.probe_initial_interval,
            max_interval=config.probe_max_interval,
            max_elapsed_time=config.probe_max_elapsed_time,
            multiplier=config.probe_multiplier,
            randomization_factor=config.probe_randomization_factor,
        )

    def reset(self) -> None:
        self._current = self.initial_interval
        self._started = self._clock()

    @property
    def elapsed(self) -> float:
        return self._clock() - self._started

    @property
    def remaining(self) -> float:
        return max(0.0, self.max_elapsed_time - self.elapsed)

    def next_interval(self) -> Optional[float]:
        """Return the next sleep in seconds, or None once time is up."""
        remaining = self.remaining
        if remaining <= 0:
            return None

        delta = self.randomization_factor * self._current
        interval = self._rng.uniform(self._current - delta, self._current + delta)
        self._current = min(self._current * self.multiplier, self.max_interval)
        return min(interval, self.max_interval, remaining)


class HealthProbe:
    """Performs the identity handshake against an agent endpoint."""

    def __init__(
        self,
        config: Optional[ProbeConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the probe.

        Args:
            config: Probe configuration group (path, timeouts, retry policy)
            transport: Optional httpx transport, mainly for tests
        """
        self._config = config or settings.probe
        self._transport = transport

    @property
    def identity_path(self) -> str:
        return self._config.agent_identity_path

    def _new_backoff(self) -> ExponentialBackoff:
        return ExponentialBackoff.from_config(self._config)

    async def _wait(self, interval: float, cancel_event: Optional[asyncio.Event]) -> bool:
        """Sleep for ``interval``; return True if cancellation was requested."""
        if cancel_event is None:
            await asyncio.sleep(interval)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            return False
        return True

    def _decode(self, response: httpx.Response, url: str, attempts: int) -> AgentIdentity:
        try:
            payload = response.json()
        except ValueError as e:
            raise ProtocolViolationError(
                url, f"body is not JSON (status {response.status_code}): {e}", attempts
            ) from e
        try:
            return AgentIdentity.model_validate(payload)
        except PydanticValidationError as e:
            fields = ", ".join(
                ".".join(str(loc) for loc in err["loc"]) or "body" for err in e.errors()
            )
            raise ProtocolViolationError(
                url, f"missing or malformed fields: {fields}", attempts
            ) from e

    async def probe(
        self,
        endpoint: Endpoint,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProbeReport:
        """Probe ``endpoint`` until it answers with an identity.

        Args:
            endpoint: Host endpoint of the agent's service port
            cancel_event: Optional event; setting it aborts the probe

        Returns:
            ProbeReport with the decoded identity

        Raises:
            ProtocolViolationError: a response arrived but could not be decoded
            ProbeTimeoutError: no response before the elapsed-time budget ran out
            ProbeCancelledError: ``cancel_event`` was set
        """
        url = endpoint.url(self.identity_path)
        backoff = self._new_backoff()
        attempts = 0
        last_error: Optional[Exception] = None

        async with httpx.AsyncClient(
            timeout=self._config.probe_request_timeout,
            transport=self._transport,
            follow_redirects=False,
        ) as client:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    raise ProbeCancelledError(url, attempts)

                attempts += 1
                try:
                    response = await client.get(url)
                except httpx.TransportError as e:
                    last_error = e
                    logger.debug(
                        "Agent not reachable yet",
                        url=url,
                        attempt=attempts,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                else:
                    identity = self._decode(response, url, attempts)
                    elapsed = backoff.elapsed
                    logger.info(
                        "Agent identity received",
                        url=url,
                        owner=identity.owner,
                        attempts=attempts,
                        elapsed_s=round(elapsed, 3),
                    )
                    return ProbeReport(
                        identity=identity, url=url, attempts=attempts, elapsed=elapsed
                    )

                interval = backoff.next_interval()
                if interval is None:
                    logger.warning(
                        "Agent probe timed out",
                        url=url,
                        attempts=attempts,
                        elapsed_s=round(backoff.elapsed, 3),
                    )
                    raise ProbeTimeoutError(
                        url, backoff.elapsed, attempts=attempts, last_error=last_error
                    )
                if await self._wait(interval, cancel_event):
                    raise ProbeCancelledError(url, attempts)
