"""API endpoints for the Agent Supervisor."""

from . import agents, health, validate

__all__ = ["agents", "health", "validate"]
