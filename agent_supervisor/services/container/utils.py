"""Shared utilities for container operations."""

import asyncio
import functools
from typing import Any, Dict, List, Optional

WILDCARD_HOSTS = {"", "0.0.0.0", "::"}


async def run_in_executor(func, *args, **kwargs):
    """
    Run a blocking function in the default thread pool executor.

    Args:
        func: Blocking function to run
        *args: Positional arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        Result of the function
    """
    loop = asyncio.get_running_loop()
    if kwargs:
        func = functools.partial(func, **kwargs)
    return await loop.run_in_executor(None, func, *args)


def distinct_host_bindings(
    bindings: Optional[List[Dict[str, Any]]],
) -> List[Dict[str, Any]]:
    """
    Collapse bindings that describe the same host port.

    Docker publishes a port once per address family, so a single
    ``-P`` mapping shows up as both ``0.0.0.0:49001`` and ``[::]:49001``.
    Wildcard entries sharing a host port count as one binding; bindings on
    distinct host ports or specific addresses are kept apart.

    Args:
        bindings: Raw ``NetworkSettings.Ports`` entry for one container port

    Returns:
        Bindings with wildcard duplicates removed, in their original order
    """
    distinct: List[Dict[str, Any]] = []
    seen_wildcard_ports = set()
    for binding in bindings or []:
        host_ip = binding.get("HostIp") or ""
        host_port = str(binding.get("HostPort") or "")
        if host_ip in WILDCARD_HOSTS:
            if host_port in seen_wildcard_ports:
                continue
            seen_wildcard_ports.add(host_port)
        distinct.append(binding)
    return distinct


def describe_ports(ports: Optional[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Render a port table as ``{"3423/tcp": ["0.0.0.0:49001"]}`` for messages."""
    described: Dict[str, List[str]] = {}
    for container_port, bindings in (ports or {}).items():
        described[container_port] = [
            f"{b.get('HostIp') or ''}:{b.get('HostPort')}" for b in bindings or []
        ]
    return described


def default_agent_host(docker_host: str, fallback: str = "127.0.0.1") -> str:
    """
    Pick the address used to reach ports published on wildcard addresses.

    A remote daemon (``tcp://10.0.0.5:2376``) publishes ports on its own
    interfaces, so its hostname is used; local sockets use ``fallback``.
    """
    scheme, sep, rest = docker_host.partition("://")
    if sep and scheme in ("tcp", "http", "https"):
        host = rest.split("/", 1)[0].rsplit(":", 1)[0].strip("[]")
        if host and host not in WILDCARD_HOSTS:
            return host
    return fallback
