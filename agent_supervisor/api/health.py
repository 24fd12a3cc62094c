"""Health check endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..dependencies.services import ImageServiceDep, SettingsDep

router = APIRouter()


@router.get("/health", summary="Basic health check")
async def basic_health_check():
    """Liveness check that does not touch the container runtime."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "agent-supervisor",
    }


@router.get("/health/docker", summary="Container runtime health check")
async def docker_health_check(images: ImageServiceDep, config: SettingsDep):
    """Check that the docker daemon is reachable."""
    reachable = await images.ping()
    content = {
        "service": "docker",
        "status": "healthy" if reachable else "unhealthy",
        "docker_host": config.docker_host,
    }
    return JSONResponse(status_code=200 if reachable else 503, content=content)
