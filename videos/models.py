"""Video generation Pydantic models."""
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field

from common.models import Artifact, ArchiveRecord, GenerationMode, GenerationRequest


class VeoModel(str, Enum):
    """Veo model variants."""
    VEO_FAST = "veo-3.1-fast-generate-preview"
    VEO = "veo-3.1-generate-preview"


class AspectRatio(str, Enum):
    """Video aspect ratios."""
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class GenerateVideoRequest(BaseModel):
    """Request model for video generation."""
    prompt: str = Field("", description="Text prompt; may be empty when input_image is set")
    negative_prompt: str = ""
    model: VeoModel = Field(VeoModel.VEO_FAST, description="Veo model to use")
    aspect_ratio: str = Field(AspectRatio.LANDSCAPE.value, description="16:9 or 9:16, anything else falls back to 16:9")
    style: str = "None"
    input_image: Optional[str] = Field(None, description="Start image as a base64 data URL")
    save_to_gallery: bool = False

    def to_generation_request(self) -> GenerationRequest:
        return GenerationRequest(
            mode=GenerationMode.VIDEO,
            prompt=self.prompt,
            negative_prompt=self.negative_prompt,
            model=self.model.value,
            aspect_ratio=self.aspect_ratio,
            style=self.style,
            input_image=self.input_image,
        )


class GenerateVideoResponse(BaseModel):
    """Response model for video generation."""
    artifact: Artifact
    gallery: Optional[List[ArchiveRecord]] = None
