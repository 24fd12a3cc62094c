"""Request and response models for the image and container endpoints."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageSummary(BaseModel):
    """A locally available agent image."""

    id: str
    tags: List[str] = Field(default_factory=list)
    created: Optional[str] = None
    size: Optional[int] = None


class ContainerSummary(BaseModel):
    """A container currently running on the daemon."""

    id: str
    name: str
    image: str
    status: str
    ports: Dict[str, Any] = Field(default_factory=dict)


class ImageInfo(BaseModel):
    """Exposed ports declared by an image."""

    image: str
    exposed_ports: Dict[str, Any] = Field(default_factory=dict)


class UploadImageRequest(BaseModel):
    """Register a new agent image from a source."""

    model_config = ConfigDict(populate_by_name=True)

    image: str = Field(..., alias="Image", min_length=1)
    source: str = Field(..., alias="Source")


class ValidationResponse(BaseModel):
    """Body returned by the validate endpoints."""

    image: str
    valid: bool
    verdict: str
    message: str
    outcome: Optional[str] = None
    identity: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    teardown_error: Optional[str] = None
    container_id: Optional[str] = None
    attempts: int = 0
    duration_ms: float = 0.0
