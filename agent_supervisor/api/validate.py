"""Agent validation endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Query

from ..dependencies.services import OrchestratorDep
from ..models.agent import ValidationResult
from ..models.errors import ValidationError
from ..models.images import ValidationResponse

logger = structlog.get_logger(__name__)
router = APIRouter()


def build_validation_response(result: ValidationResult) -> ValidationResponse:
    """Render a validation result, including the human-readable message."""
    if result.ok:
        message = f"image {result.image} is valid"
    else:
        message = f"image {result.image} is not valid. error: {result.error}"
    return ValidationResponse(message=message, **result.to_dict())


@router.api_route(
    "/validate",
    methods=["GET", "POST"],
    response_model=ValidationResponse,
    summary="Check that an agent image implements the protocol",
)
async def validate_agent(
    orchestrator: OrchestratorDep,
    image: Optional[str] = Query(None, description="Image reference to validate"),
):
    """Run the image, probe its identity endpoint and stop it again.

    Always answers 200 with the verdict in the body; a missing ``image``
    parameter is a 400.
    """
    if not image:
        raise ValidationError("`image` parameter is required")

    result = await orchestrator.validate_image(image)
    return build_validation_response(result)
