"""Request logging middleware."""

import time
from typing import Callable

import structlog
from fastapi import Request

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware:
    """ASGI middleware logging method, path, status and duration of each request."""

    def __init__(self, app: Callable):
        self.app = app
        self.health_logged = False

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        start_time = time.time()

        # Skip repeated health check logging
        skip_logging = request.url.path == "/health" and self.health_logged
        if request.url.path == "/health" and not self.health_logged:
            self.health_logged = True

        response_status = None

        async def send_wrapper(message):
            nonlocal response_status
            if message["type"] == "http.response.start":
                response_status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            if not skip_logging:
                logger.error(
                    "Request failed",
                    method=request.method,
                    path=request.url.path,
                    error=str(e),
                )
            raise
        finally:
            if not skip_logging:
                duration = time.time() - start_time
                log_kwargs = dict(
                    method=request.method,
                    path=request.url.path,
                    status=response_status,
                    duration_ms=round(duration * 1000, 2),
                )
                if response_status and response_status >= 500:
                    logger.error("Request failed", **log_kwargs)
                elif response_status and response_status >= 400:
                    logger.warning("Request error", **log_kwargs)
                else:
                    logger.debug("Request processed", **log_kwargs)
