"""Main FastAPI application for the Agent Supervisor."""

import sys
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from pydantic import ValidationError

from .api import agents, health, validate
from .config import settings
from .dependencies.services import get_image_service, reset_services
from .middleware.logging import RequestLoggingMiddleware
from .models.errors import SupervisorException
from .utils.error_handlers import (
    supervisor_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from .utils.logging import setup_logging

API_PREFIX = "/api/v0"

setup_logging()
logger = structlog.get_logger()


async def _check_docker() -> None:
    """Log whether the docker daemon is reachable at startup."""
    try:
        reachable = await get_image_service().ping()
    except Exception as e:
        logger.error("Failed to initialize docker client", error=str(e))
        return
    if reachable:
        logger.info("Docker daemon reachable", docker_host=settings.docker_host)
    else:
        logger.warning("Docker daemon not reachable", docker_host=settings.docker_host)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Agent Supervisor", version="1.0.0")

    if settings.api_debug:
        logger.warning("Debug mode is enabled - disable in production")

    await _check_docker()
    logger.info("Agent Supervisor startup completed")

    yield

    logger.info("Shutting down Agent Supervisor")
    try:
        reset_services()
    except Exception as e:
        logger.error("Error closing docker client", error=str(e))
    logger.info("Agent Supervisor shutdown completed")


def _register_static_fallback(app: FastAPI, static_path: str) -> None:
    """Serve the single-page app for every path no API route matched.

    Existing files are served as-is; anything else gets ``index.html`` so the
    client-side router can handle it.
    """
    root = Path(static_path).resolve()
    if not root.is_dir():
        logger.info("Static directory not found; static serving disabled", path=str(root))
        return

    @app.get("/{rest_of_path:path}", include_in_schema=False)
    async def static_fallback(rest_of_path: str):
        candidate = (root / rest_of_path).resolve()
        if candidate.is_file() and root in candidate.parents:
            return FileResponse(candidate)
        index = root / "index.html"
        if index.is_file():
            return FileResponse(index)
        raise HTTPException(status_code=404, detail="Not found")


app = FastAPI(
    title="Agent Supervisor",
    description="Validates and supervises containerized tournament agents",
    version="1.0.0",
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    debug=settings.api_debug,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

# Register global error handlers
app.add_exception_handler(SupervisorException, supervisor_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(ValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(agents.router, prefix=API_PREFIX, tags=["agents"])
app.include_router(validate.router, prefix=API_PREFIX, tags=["validation"])


@app.api_route(
    API_PREFIX + "/{rest:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def api_not_found(rest: str):
    """API-prefixed paths that matched no route are 404s, never the static app."""
    raise HTTPException(status_code=404, detail=f"Unknown API path: /{rest}")


_register_static_fallback(app, settings.static_path)


def run_server():
    api = settings.api
    logger.info(f"Starting HTTP server on {api.api_host}:{api.api_port}")
    try:
        uvicorn.run(
            "agent_supervisor.main:app",
            host=api.api_host,
            port=api.api_port,
            reload=api.api_reload,
            log_level=settings.log_level.lower(),
            access_log=settings.enable_access_logs,
        )
    except OSError as e:
        logger.error("Failed to start HTTP server", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    run_server()
