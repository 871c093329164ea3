"""Video generation routes."""
from fastapi import APIRouter, Depends

from common.dependencies import get_orchestrator
from common.orchestrator import GenerationOrchestrator
from videos.models import GenerateVideoRequest, GenerateVideoResponse
from prompts.services import save_prompt
from utils.usage import ensure_within_limit, increment_usage
from utils.logger import get_logger

logger = get_logger("videos")
router = APIRouter(tags=["videos"])


@router.post("/api/videos/generate", response_model=GenerateVideoResponse)
async def generate_video_endpoint(
    req: GenerateVideoRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
):
    """
    Generate one video clip with Veo.

    Behavior:
      - check usage limits
      - start the job and poll until done (no client-side timeout)
      - download the clip with the API key, or fall back to the authenticated URL
      - increment usage after successful generation
    """
    logger.info(f"Video generation request - model: {req.model.value}, aspect: {req.aspect_ratio}")
    ensure_within_limit()
    artifact = await orchestrator.generate_video(req.to_generation_request())
    increment_usage()
    save_prompt(req.prompt)

    gallery = await orchestrator.save(artifact) if req.save_to_gallery else None
    logger.info(f"Video generated: {artifact.id}")
    return GenerateVideoResponse(artifact=artifact, gallery=gallery)
