"""Image generation routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends

from common.dependencies import get_orchestrator
from common.models import Artifact, ArchiveRecord, GenerationRequest
from common.orchestrator import GenerationOrchestrator
from image.models import (
    GenerateImageRequest,
    GenerateImageResponse,
    PreviewResponse,
    UpscaleRequest,
    UpscaleResponse,
    VariationsRequest,
)
from prompts.services import save_prompt
from utils.usage import ensure_within_limit, increment_usage
from utils.logger import get_logger

logger = get_logger("image")
router = APIRouter(tags=["image"])


async def save_all(orchestrator: GenerationOrchestrator, artifacts: List[Artifact]) -> Optional[List[ArchiveRecord]]:
    """Archive artifacts in order; the last listing wins."""
    gallery = None
    for artifact in artifacts:
        gallery = await orchestrator.save(artifact)
    return gallery


@router.post("/api/images/generate", response_model=GenerateImageResponse)
async def generate(req: GenerateImageRequest, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """
    Generate a batch of images.

    Accepts a generation request (prompt, style, seed, batch_size, ...). Seeds are
    base, base+1, ... in result order; seed -1 draws a random base.
    Usage is checked before the backend call and counted only after success.
    """
    ensure_within_limit()
    artifacts = await orchestrator.generate_batch(req)
    increment_usage()
    save_prompt(req.prompt)

    gallery = await save_all(orchestrator, artifacts) if req.save_to_gallery else None
    logger.info(f"Generated {len(artifacts)} artifact(s) for prompt '{req.prompt[:50]}'")
    return GenerateImageResponse(artifacts=artifacts, seed=artifacts[0].seed, gallery=gallery)


@router.post("/api/images/variations", response_model=GenerateImageResponse)
async def variations(req: VariationsRequest, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Four variations of a source image using seeds source+1000 .. source+1003."""
    ensure_within_limit()
    artifacts = await orchestrator.derive_variations(req.source, req.request)
    increment_usage()

    gallery = await save_all(orchestrator, artifacts) if req.save_to_gallery else None
    return GenerateImageResponse(artifacts=artifacts, seed=artifacts[0].seed, gallery=gallery)


@router.post("/api/images/upscale", response_model=UpscaleResponse)
async def upscale(req: UpscaleRequest, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """Return a new 4K artifact; the source artifact is unchanged."""
    ensure_within_limit()
    artifact = await orchestrator.upscale(req.artifact, req.aspect_ratio)
    increment_usage()

    gallery = await orchestrator.save(artifact) if req.save_to_gallery else None
    return UpscaleResponse(artifact=artifact, gallery=gallery)


@router.post("/api/images/preview", response_model=PreviewResponse)
async def preview(req: GenerationRequest, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """
    Debounced low-cost preview. A newer preview request supersedes this one,
    in which case the response carries no artifact. Previews are not counted.
    """
    artifact = await orchestrator.preview(req)
    return PreviewResponse(artifact=artifact)
