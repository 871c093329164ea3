"""Prompt history, template and prompt tool routes."""
from fastapi import APIRouter, Depends, Path

from common.dependencies import get_client
from common.gemini_client import GeminiClient
from common import text_service
from prompts.models import PromptText, TemplateCreate, EnhanceRequest, ImageAnalysisRequest
from prompts.services import (
    get_history,
    save_prompt,
    clear_history,
    list_templates,
    save_template,
    delete_template,
)
from utils.usage import ensure_within_limit, increment_usage

router = APIRouter(prefix="/api/prompts", tags=["prompts"])


@router.get("/history")
def api_get_history():
    """Recent prompts, most recent first."""
    return {"history": get_history()}


@router.post("/history")
def api_save_prompt(payload: PromptText):
    return {"history": save_prompt(payload.text)}


@router.delete("/history")
def api_clear_history():
    return {"history": clear_history()}


@router.get("/templates")
def api_list_templates():
    return {"templates": list_templates()}


@router.post("/templates")
def api_save_template(payload: TemplateCreate):
    return {"templates": save_template(payload.name, payload.content)}


@router.delete("/templates/{template_id}")
def api_delete_template(template_id: str = Path(...)):
    return {"templates": delete_template(template_id)}


@router.post("/enhance")
async def api_enhance(payload: EnhanceRequest, client: GeminiClient = Depends(get_client)):
    """Rewrite a short prompt into a detailed one."""
    return {"prompt": await text_service.enhance_prompt(client, payload.prompt, payload.style)}


@router.post("/describe")
async def api_describe(payload: ImageAnalysisRequest, client: GeminiClient = Depends(get_client)):
    """Turn an image into a prompt. Counts towards the daily limit."""
    ensure_within_limit()
    description = await text_service.describe_image(client, payload.image)
    increment_usage()
    return {"prompt": description}


@router.post("/extract-style")
async def api_extract_style(payload: ImageAnalysisRequest, client: GeminiClient = Depends(get_client)):
    """Style keywords of an image; empty string when nothing distinctive was found."""
    ensure_within_limit()
    keywords = await text_service.extract_style(client, payload.image)
    if keywords:
        increment_usage()
    return {"keywords": keywords}
