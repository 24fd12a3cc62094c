"""Utility modules for the Agent Supervisor."""

from .logging import setup_logging, get_logger

__all__ = [
    "setup_logging",
    "get_logger",
]
