"""Prompt tool Pydantic models."""
from typing import Optional
from pydantic import BaseModel, Field


class PromptText(BaseModel):
    text: str = Field(..., description="Prompt text")


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)


class EnhanceRequest(BaseModel):
    prompt: str
    style: Optional[str] = Field(None, description="Optional style to lean the rewrite towards")


class ImageAnalysisRequest(BaseModel):
    image: str = Field(..., description="Image as a base64 data URL")
