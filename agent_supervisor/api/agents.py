"""Agent image catalogue endpoints."""

import json
from typing import List, Optional

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, StreamingResponse

from ..dependencies.services import ImageServiceDep, OrchestratorDep
from ..models.agent import ValidationVerdict
from ..models.errors import NotImplementedFeatureError, ValidationError
from ..models.images import (
    ContainerSummary,
    ImageInfo,
    ImageSummary,
    UploadImageRequest,
    ValidationResponse,
)
from .validate import build_validation_response

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/agents", response_model=List[ImageSummary], summary="List agent images")
async def list_agents(images: ImageServiceDep):
    """List all locally available images."""
    return await images.list_images()


@router.api_route(
    "/pull/dockerhub",
    methods=["GET", "POST"],
    summary="Pull an agent image from the registry",
)
async def pull_dockerhub_agent(
    images: ImageServiceDep,
    image: Optional[str] = Query(None, description="Repository to pull"),
    tag: Optional[str] = Query(None, description="Tag to pull (default: latest)"),
):
    """Pull ``image`` and stream the daemon's progress as JSON lines."""
    if not image:
        raise ValidationError("`image` parameter is required")

    messages = images.pull_image(image, tag)
    # Pull the first message here so a failed start is answered as an error
    first = await anext(messages, None)

    async def progress():
        if first is not None:
            yield json.dumps(first) + "\n"
        async for message in messages:
            yield json.dumps(message) + "\n"

    return StreamingResponse(progress(), media_type="application/x-ndjson")


@router.get(
    "/running", response_model=List[ContainerSummary], summary="List running agents"
)
async def list_running_agents(images: ImageServiceDep):
    """List containers that are currently running."""
    return await images.list_running()


@router.get("/image", response_model=ImageInfo, summary="Show agent image details")
async def show_agent_info(
    images: ImageServiceDep,
    image: Optional[str] = Query(None, description="Image reference to inspect"),
):
    """Show the ports an agent image exposes."""
    return await images.inspect_image(image)


@router.post(
    "/images", response_model=ValidationResponse, summary="Register an agent image"
)
async def upload_image(request: UploadImageRequest, orchestrator: OrchestratorDep):
    """Register an image from a source after validating it.

    Only ``dockerhub`` images are supported; ``github`` sources answer 501.
    """
    source = request.source.lower()
    if source == "github":
        raise NotImplementedFeatureError(
            "Sorry. GitHub repo support has not been implemented yet."
        )
    if source != "dockerhub":
        raise ValidationError(f"Unrecognized image source: {request.source}")

    result = await orchestrator.validate_image(request.image)
    response = build_validation_response(result)
    if result.ok:
        logger.info("Agent image registered", image=request.image)
        return response

    status_code = 400 if result.verdict == ValidationVerdict.REJECTED else 502
    return JSONResponse(status_code=status_code, content=response.model_dump())
