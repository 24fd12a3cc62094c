"""Middleware package for the Agent Supervisor API."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
