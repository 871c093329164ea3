"""Image generation Pydantic models."""
from typing import Optional, List
from pydantic import BaseModel, Field

from common.models import Artifact, ArchiveRecord, GenerationRequest


class GenerateImageRequest(GenerationRequest):
    save_to_gallery: bool = Field(False, description="Archive every result of a successful call")


class VariationsRequest(BaseModel):
    source: Artifact = Field(..., description="Image artifact with a known seed")
    request: GenerationRequest = Field(default_factory=GenerationRequest, description="Fallback settings")
    save_to_gallery: bool = False


class UpscaleRequest(BaseModel):
    artifact: Artifact
    aspect_ratio: Optional[str] = Field(None, description="Defaults to the artifact's aspect ratio")
    save_to_gallery: bool = False


class GenerateImageResponse(BaseModel):
    artifacts: List[Artifact]
    seed: Optional[int] = Field(None, description="Base seed of the batch")
    gallery: Optional[List[ArchiveRecord]] = None


class UpscaleResponse(BaseModel):
    artifact: Artifact
    gallery: Optional[List[ArchiveRecord]] = None


class PreviewResponse(BaseModel):
    artifact: Optional[Artifact] = Field(None, description="None when skipped, superseded or failed")
