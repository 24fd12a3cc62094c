"""Unit tests for container helper functions."""

from unittest.mock import MagicMock, patch

import pytest

from agent_supervisor.config import DockerConfig
from agent_supervisor.services.container.client import DockerClientFactory
from agent_supervisor.services.container.utils import (
    default_agent_host,
    describe_ports,
    distinct_host_bindings,
    run_in_executor,
)


class TestDistinctHostBindings:
    def test_dual_stack_collapses(self):
        bindings = [
            {"HostIp": "0.0.0.0", "HostPort": "49001"},
            {"HostIp": "::", "HostPort": "49001"},
        ]

        assert distinct_host_bindings(bindings) == [bindings[0]]

    def test_distinct_ports_kept(self):
        bindings = [
            {"HostIp": "0.0.0.0", "HostPort": "49001"},
            {"HostIp": "::", "HostPort": "49002"},
        ]

        assert len(distinct_host_bindings(bindings)) == 2

    def test_specific_addresses_kept(self):
        bindings = [
            {"HostIp": "10.0.0.1", "HostPort": "49001"},
            {"HostIp": "10.0.0.2", "HostPort": "49001"},
        ]

        assert len(distinct_host_bindings(bindings)) == 2

    def test_none_is_empty(self):
        assert distinct_host_bindings(None) == []


class TestDescribePorts:
    def test_renders_bindings(self):
        ports = {
            "3423/tcp": [{"HostIp": "0.0.0.0", "HostPort": "49001"}],
            "8080/tcp": None,
        }

        assert describe_ports(ports) == {
            "3423/tcp": ["0.0.0.0:49001"],
            "8080/tcp": [],
        }


class TestDefaultAgentHost:
    @pytest.mark.parametrize(
        "docker_host, expected",
        [
            ("unix:///var/run/docker.sock", "127.0.0.1"),
            ("tcp://10.0.0.5:2376", "10.0.0.5"),
            ("https://docker.internal:2376", "docker.internal"),
            ("tcp://0.0.0.0:2375", "127.0.0.1"),
            ("npipe:////./pipe/docker_engine", "127.0.0.1"),
        ],
    )
    def test_host_selection(self, docker_host, expected):
        assert default_agent_host(docker_host) == expected

    def test_fallback_is_configurable(self):
        assert default_agent_host("unix:///var/run/docker.sock", "host.docker.internal") == (
            "host.docker.internal"
        )


class TestRunInExecutor:
    @pytest.mark.asyncio
    async def test_passes_arguments(self):
        func = MagicMock(return_value="done")

        result = await run_in_executor(func, "a", flag=True)

        assert result == "done"
        func.assert_called_once_with("a", flag=True)


class TestDockerClientFactory:
    def test_plain_client(self):
        config = DockerConfig(docker_host="unix:///var/run/docker.sock", docker_timeout=30)

        with patch("agent_supervisor.services.container.client.docker.DockerClient") as cls:
            DockerClientFactory(config).create_client()

        kwargs = cls.call_args.kwargs
        assert kwargs["base_url"] == "unix:///var/run/docker.sock"
        assert kwargs["timeout"] == 30
        assert not kwargs["tls"]

    def test_tls_client(self):
        config = DockerConfig(
            docker_host="tcp://10.0.0.5:2376", docker_tls=True, docker_cert_path="/certs"
        )

        with patch("agent_supervisor.services.container.client.docker.DockerClient") as cls, patch(
            "agent_supervisor.services.container.client.TLSConfig"
        ) as tls_cls:
            DockerClientFactory(config).create_client()

        tls_kwargs = tls_cls.call_args.kwargs
        assert tls_kwargs["client_cert"] == ("/certs/cert.pem", "/certs/key.pem")
        assert tls_kwargs["ca_cert"] == "/certs/ca.pem"
        assert cls.call_args.kwargs["tls"] is tls_cls.return_value
