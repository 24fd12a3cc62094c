"""Unit tests for ValidationOrchestrator."""

import asyncio
import time

import pytest
from docker.errors import APIError, ImageNotFound

from agent_supervisor.models.agent import ProbeOutcome, ValidationVerdict
from agent_supervisor.models.errors import (
    AgentRejectedError,
    AmbiguousMappingError,
    CreationError,
    InspectionError,
    PortNotExposedError,
    ProbeCancelledError,
    ProbeTimeoutError,
    ProtocolViolationError,
    StartError,
    TeardownError,
    ValidationError,
)

from conftest import (
    garbage_agent,
    make_container,
    port_table,
    refusing_agent,
    slow_agent,
)


class TestValidationScenarios:
    """End-to-end validation against mock agents."""

    @pytest.mark.asyncio
    async def test_ok_agent_is_validated(self, make_orchestrator, mock_docker_client):
        orchestrator = make_orchestrator()

        result = await orchestrator.validate_image("ok-agent")

        assert result.ok
        assert result.verdict == ValidationVerdict.VALIDATED
        assert result.outcome == ProbeOutcome.REACHABLE_VALID
        assert result.identity.owner == "btc"
        assert result.error is None
        assert result.teardown_error is None
        container = mock_docker_client.containers.create.return_value
        container.stop.assert_called_once_with(timeout=5)

    @pytest.mark.asyncio
    async def test_bad_port_agent_is_rejected(self, make_orchestrator, mock_docker_client):
        """An image exposing the wrong port is rejected and still stopped."""
        container = make_container(
            ports={"8080/tcp": [{"HostIp": "0.0.0.0", "HostPort": "49005"}]}
        )
        mock_docker_client.containers.create.return_value = container
        orchestrator = make_orchestrator()

        result = await orchestrator.validate_image("bad-port")

        assert result.verdict == ValidationVerdict.REJECTED
        assert isinstance(result.error, PortNotExposedError)
        assert result.outcome is None
        container.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_slow_agent_times_out(self, make_orchestrator, mock_docker_client):
        orchestrator = make_orchestrator(handler=slow_agent)

        result = await orchestrator.validate_image("slow-agent")

        assert result.verdict == ValidationVerdict.REJECTED
        assert isinstance(result.error, ProbeTimeoutError)
        assert result.outcome == ProbeOutcome.TIMED_OUT
        assert result.attempts > 1
        mock_docker_client.containers.create.return_value.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_unreachable_agent(self, make_orchestrator):
        orchestrator = make_orchestrator(handler=refusing_agent)

        result = await orchestrator.validate_image("silent-agent")

        assert result.verdict == ValidationVerdict.REJECTED
        assert result.outcome == ProbeOutcome.UNREACHABLE

    @pytest.mark.asyncio
    async def test_garbage_agent_is_rejected(self, make_orchestrator, mock_docker_client):
        orchestrator = make_orchestrator(handler=garbage_agent)

        result = await orchestrator.validate_image("garbage-agent")

        assert result.verdict == ValidationVerdict.REJECTED
        assert isinstance(result.error, ProtocolViolationError)
        assert result.outcome == ProbeOutcome.REACHABLE_INVALID
        assert result.attempts == 1
        mock_docker_client.containers.create.return_value.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_ambiguous_mapping_is_rejected(self, make_orchestrator, mock_docker_client):
        mock_docker_client.containers.create.return_value = make_container(
            ports=port_table("49001", "49002")
        )
        orchestrator = make_orchestrator()

        result = await orchestrator.validate_image("two-ports")

        assert result.verdict == ValidationVerdict.REJECTED
        assert isinstance(result.error, AmbiguousMappingError)


class TestRuntimeFailures:
    """Container runtime problems give a failed verdict."""

    @pytest.mark.asyncio
    async def test_missing_image_never_stops(self, make_orchestrator, mock_docker_client):
        """With no container created there is nothing to release."""
        mock_docker_client.containers.create.side_effect = ImageNotFound("missing")
        orchestrator = make_orchestrator()

        result = await orchestrator.validate_image("missing-agent")

        assert result.verdict == ValidationVerdict.FAILED
        assert isinstance(result.error, CreationError)
        assert result.container_id is None
        assert result.teardown_error is None

    @pytest.mark.asyncio
    async def test_start_failure_releases_container(
        self, make_orchestrator, mock_docker_client
    ):
        container = make_container("feedface0000")
        container.start.side_effect = APIError("port already allocated")
        mock_docker_client.containers.create.return_value = container
        orchestrator = make_orchestrator()

        result = await orchestrator.validate_image("ok-agent")

        assert result.verdict == ValidationVerdict.FAILED
        assert isinstance(result.error, StartError)
        assert result.container_id == "feedface0000"
        container.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_inspection_failure_is_failed(self, make_orchestrator, mock_docker_client):
        container = make_container(ports=port_table("49001"))
        container.reload.side_effect = APIError("daemon went away")
        mock_docker_client.containers.create.return_value = container
        orchestrator = make_orchestrator()

        result = await orchestrator.validate_image("ok-agent")

        assert result.verdict == ValidationVerdict.FAILED
        assert isinstance(result.error, InspectionError)
        container.stop.assert_called_once()


class TestTeardown:
    """Teardown errors are reported next to the verdict."""

    @pytest.mark.asyncio
    async def test_teardown_error_does_not_change_verdict(
        self, make_orchestrator, mock_docker_client
    ):
        container = mock_docker_client.containers.create.return_value
        container.stop.side_effect = APIError("container stuck")
        orchestrator = make_orchestrator()

        result = await orchestrator.validate_image("ok-agent")

        assert result.verdict == ValidationVerdict.VALIDATED
        assert isinstance(result.teardown_error, TeardownError)
        assert result.to_dict()["teardown_error"] is not None

    @pytest.mark.asyncio
    async def test_primary_error_wins_over_teardown_error(
        self, make_orchestrator, mock_docker_client
    ):
        container = mock_docker_client.containers.create.return_value
        container.stop.side_effect = APIError("container stuck")
        orchestrator = make_orchestrator(handler=garbage_agent)

        result = await orchestrator.validate_image("garbage-agent")

        assert isinstance(result.error, ProtocolViolationError)
        assert isinstance(result.teardown_error, TeardownError)


class TestOrchestratorOptions:
    """Acceptance policy, cancellation, time bound and concurrency."""

    @pytest.mark.asyncio
    async def test_acceptance_policy_can_refuse(self, make_orchestrator):
        orchestrator = make_orchestrator(accept=lambda identity: identity.owner == "alice")

        result = await orchestrator.validate_image("ok-agent")

        assert result.verdict == ValidationVerdict.REJECTED
        assert isinstance(result.error, AgentRejectedError)
        assert result.identity.owner == "btc"
        assert result.outcome == ProbeOutcome.REACHABLE_INVALID

    @pytest.mark.asyncio
    async def test_cancel_event_gives_failed(self, make_orchestrator, mock_docker_client):
        orchestrator = make_orchestrator(handler=refusing_agent)
        cancel = asyncio.Event()
        cancel.set()

        result = await orchestrator.validate_image("ok-agent", cancel_event=cancel)

        assert result.verdict == ValidationVerdict.FAILED
        assert isinstance(result.error, ProbeCancelledError)
        mock_docker_client.containers.create.return_value.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_validation_timeout_releases_container(
        self, make_orchestrator, mock_docker_client
    ):
        orchestrator = make_orchestrator(handler=refusing_agent, validation_timeout=0.05)

        result = await orchestrator.validate_image("silent-agent")

        assert result.verdict == ValidationVerdict.FAILED
        assert isinstance(result.error, TimeoutError)
        mock_docker_client.containers.create.return_value.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_concurrent_validations_are_capped(
        self, make_orchestrator, mock_docker_client
    ):
        active = {"now": 0, "peak": 0}

        async def fake_probe(endpoint, cancel_event=None):
            active["now"] += 1
            active["peak"] = max(active["peak"], active["now"])
            await asyncio.sleep(0.02)
            active["now"] -= 1
            raise ProtocolViolationError(endpoint.url(), "not json")

        mock_docker_client.containers.create.side_effect = lambda *a, **kw: make_container(
            ports=port_table("49001")
        )
        orchestrator = make_orchestrator(max_concurrent=2)
        orchestrator.probe.probe = fake_probe

        results = await asyncio.gather(
            *(orchestrator.validate_image(f"agent-{i}") for i in range(5))
        )

        assert len(results) == 5
        assert active["peak"] <= 2
        assert all(r.verdict == ValidationVerdict.REJECTED for r in results)

    @pytest.mark.asyncio
    async def test_empty_image_raises(self, make_orchestrator, mock_docker_client):
        orchestrator = make_orchestrator()

        with pytest.raises(ValidationError):
            await orchestrator.validate_image("  ")

        mock_docker_client.containers.create.assert_not_called()


class TestTimeoutDuringAcquire:
    """The time bound can fire while the container is still being created or started."""

    @pytest.mark.asyncio
    async def test_timeout_during_start_stops_container(
        self, make_orchestrator, mock_docker_client
    ):
        container = mock_docker_client.containers.create.return_value
        container.start.side_effect = lambda: time.sleep(0.2)
        orchestrator = make_orchestrator(validation_timeout=0.05)

        result = await orchestrator.validate_image("slow-start")

        assert result.verdict == ValidationVerdict.FAILED
        assert isinstance(result.error, TimeoutError)
        container.stop.assert_called_once_with(timeout=5)
        container.remove.assert_called_once_with(force=True)

    @pytest.mark.asyncio
    async def test_timeout_during_create_stops_container(
        self, make_orchestrator, mock_docker_client
    ):
        container = make_container(ports=port_table("49001"))

        def slow_create(*args, **kwargs):
            time.sleep(0.2)
            return container

        mock_docker_client.containers.create.side_effect = slow_create
        orchestrator = make_orchestrator(validation_timeout=0.05)

        result = await orchestrator.validate_image("slow-create")

        assert result.verdict == ValidationVerdict.FAILED
        assert isinstance(result.error, TimeoutError)
        container.stop.assert_called_once_with(timeout=5)


class TestValidateOrRaise:
    @pytest.mark.asyncio
    async def test_returns_result_when_valid(self, make_orchestrator):
        result = await make_orchestrator().validate_image_or_raise("ok-agent")

        assert result.ok

    @pytest.mark.asyncio
    async def test_raises_primary_error(self, make_orchestrator):
        orchestrator = make_orchestrator(handler=garbage_agent)

        with pytest.raises(ProtocolViolationError):
            await orchestrator.validate_image_or_raise("garbage-agent")


class TestResultSerialization:
    def test_to_dict_shortens_container_id(self, validated_result):
        data = validated_result.to_dict()

        assert data["valid"] is True
        assert data["verdict"] == "validated"
        assert data["container_id"] == "c0ffee123456"
        assert data["identity"] == {"owner": "btc", "taunts": ["gg"]}
        assert data["error"] is None
