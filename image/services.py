"""Image generation services - Gemini / Imagen calls and response interpretation."""
import re
from enum import Enum
from typing import Optional, Any, Awaitable

from google.genai import types

from config import Config
from common.error_messages import ErrorCode
from common.exceptions import (
    GenerationError,
    PreconditionError,
    ContentBlockedError,
    RefusalError,
    FalseSuccessError,
    BackendError,
)
from common.gemini_client import GeminiClient, image_part, to_data_url
from common.models import GenerationRequest, ModelType
from common.prompting import build_image_prompt, parse_json_prompt
from utils.logger import get_logger

logger = get_logger("image.services")

IMAGE_SYSTEM_INSTRUCTION = (
    "You are an image generation tool. Do not generate conversational text. "
    "Do not say 'Here is an image'. Just generate the image."
)
UPSCALE_SYSTEM_INSTRUCTION = "You are an image upscaler. Output a high resolution image only."
UPSCALE_INSTRUCTION = "High resolution, 4K detailed version of this image. Preserve the original composition."
UPSCALE_SIZE = "4K"

OK_FINISH_REASONS = {"STOP", "FINISH_REASON_UNSPECIFIED"}
SAFETY_FINISH_REASONS = {
    "SAFETY",
    "PROHIBITED_CONTENT",
    "BLOCKLIST",
    "SPII",
    "IMAGE_SAFETY",
    "IMAGE_PROHIBITED_CONTENT",
}

# Ordered: the first match wins. Text matching any of these is a claimed success
# without an image, not a refusal.
SUCCESS_LANGUAGE_PATTERNS = [
    re.compile(r"\bhere\s+(is|are)\b", re.IGNORECASE),
    re.compile(r"\bhere'?s\b", re.IGNORECASE),
    re.compile(r"\b(i'?ve|i\s+have)\s+(created|generated|made)\b", re.IGNORECASE),
    re.compile(r"\bgenerated\s+(the|an|your|this)\s+image\b", re.IGNORECASE),
    re.compile(r"^\s*sure\b", re.IGNORECASE),
    re.compile(r"\babsolutely\b", re.IGNORECASE),
    re.compile(r"^\s*(of course|certainly)\b", re.IGNORECASE),
]


class TextResponseKind(str, Enum):
    SUCCESS_CLAIM = "success_claim"
    REFUSAL = "refusal"


def _reason_name(value: Any) -> Optional[str]:
    """Normalize SDK enums and plain strings to the bare reason name."""
    if value is None:
        return None
    value = getattr(value, "value", value)
    return str(value).split(".")[-1].upper()


def truncate_text(text: str, limit: int = Config.REFUSAL_TEXT_LIMIT) -> str:
    text = text.strip()
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def classify_text_response(text: str) -> TextResponseKind:
    """Decide whether a text-only answer claims success or refuses."""
    for pattern in SUCCESS_LANGUAGE_PATTERNS:
        if pattern.search(text):
            return TextResponseKind.SUCCESS_CLAIM
    return TextResponseKind.REFUSAL


def interpret_image_response(response: Any, action: str = "Generation") -> str:
    """
    Turn a raw generate_content response into an image data URL.

    Checked in order: safety block, inline image data, text-only answer
    (false success vs refusal). Anything else is a malformed response.
    """
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = _reason_name(getattr(feedback, "block_reason", None))
    if block_reason and block_reason != "BLOCKED_REASON_UNSPECIFIED":
        raise ContentBlockedError(
            f"{action} blocked by content filters ({block_reason}). Try adjusting your prompt."
        )

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise BackendError(
            "No candidates returned from model. The prompt might be too vague, or triggered a safety filter.",
            code=ErrorCode.NO_CONTENT_GENERATED,
        )

    candidate = candidates[0]
    finish_reason = _reason_name(getattr(candidate, "finish_reason", None))
    if finish_reason in SAFETY_FINISH_REASONS:
        raise ContentBlockedError(
            f"{action} blocked by content filters ({finish_reason}). Try adjusting your prompt."
        )
    if finish_reason and finish_reason not in OK_FINISH_REASONS:
        raise BackendError(f"{action} stopped. Reason: {finish_reason}")

    content = getattr(candidate, "content", None)
    text_parts = []
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            return to_data_url(inline.mime_type or "image/png", inline.data)
        text = getattr(part, "text", None)
        if text:
            text_parts.append(text)

    response_text = "".join(text_parts).strip()
    if response_text:
        if classify_text_response(response_text) == TextResponseKind.SUCCESS_CLAIM:
            logger.warning(f"Model claimed success without an image: {truncate_text(response_text, 80)}")
            raise FalseSuccessError()
        refusal = truncate_text(response_text)
        logger.warning(f"Model refused with text: {refusal}")
        raise RefusalError(refusal)

    raise BackendError("No image data found in response.", code=ErrorCode.NO_CONTENT_GENERATED)


def interpret_imagen_response(response: Any, model: str) -> str:
    """Imagen responses carry image bytes directly, or a filter reason."""
    generated = getattr(response, "generated_images", None) or []
    for item in generated:
        image = getattr(item, "image", None)
        if image is not None and getattr(image, "image_bytes", None):
            return to_data_url(getattr(image, "mime_type", None) or "image/jpeg", image.image_bytes)
    for item in generated:
        reason = getattr(item, "rai_filtered_reason", None)
        if reason:
            raise ContentBlockedError(f"Generation blocked by content filters ({reason}). Try adjusting your prompt.")
    raise BackendError(f"No image generated from {model}.", code=ErrorCode.NO_CONTENT_GENERATED)


async def call_backend(call: Awaitable[Any], model: str) -> Any:
    """Await a backend call, mapping SDK/transport exceptions onto the error taxonomy."""
    try:
        return await call
    except GenerationError:
        raise
    except Exception as e:
        message = str(e)
        logger.error(f"Gemini API error ({model}): {message}")
        if "403" in message or "permission" in message.lower():
            if model != ModelType.GEMINI_FLASH_IMAGE.value:
                hint = (
                    "This model may require a paid billing account. "
                    f"Try switching to {ModelType.GEMINI_FLASH_IMAGE.value}."
                )
            else:
                hint = "Please check your API key settings."
            raise BackendError(f"Permission denied. {hint}", code=ErrorCode.GEMINI_PERMISSION_DENIED)
        raise BackendError(f"Generation request failed: {message}")


async def generate_image(
    client: GeminiClient,
    request: GenerationRequest,
    prompt: str,
    seed: Optional[int],
    model: Optional[str] = None,
) -> str:
    """
    Generate one image and return it as a data URL.

    Args:
        client: Backend client
        request: Originating request (negative prompt, aspect ratio, input image, size)
        prompt: Prompt to send, already style-decorated
        seed: Seed for this single call
        model: Override for request.model (previews)

    Returns:
        data:<mime>;base64,<payload>
    """
    model = model or request.model

    # The Flash image model reads structured prompts natively
    processed_prompt = prompt if model == ModelType.GEMINI_FLASH_IMAGE.value else parse_json_prompt(prompt)
    final_prompt = build_image_prompt(processed_prompt, request.negative_prompt, bool(request.input_image))

    if model == ModelType.IMAGEN_4.value:
        if request.input_image:
            logger.warning("Input image ignored: Imagen models use text-to-image generation only")
        response = await call_backend(client.generate_images(final_prompt, model, request.aspect_ratio), model)
        return interpret_imagen_response(response, model)

    parts = []
    if request.input_image:
        parts.append(image_part(request.input_image))
    parts.append(types.Part.from_text(text=final_prompt))

    size_hint = request.image_size if model == ModelType.GEMINI_PRO_IMAGE.value else None

    logger.info(f"Generating image with {model} (seed={seed}, aspect={request.aspect_ratio})")
    response = await call_backend(
        client.generate_image(
            parts,
            model,
            request.aspect_ratio,
            size_hint=size_hint,
            seed=seed,
            system_instruction=IMAGE_SYSTEM_INSTRUCTION,
        ),
        model,
    )
    return interpret_image_response(response)


async def upscale_image(client: GeminiClient, image_data_url: str, aspect_ratio: Optional[str]) -> str:
    """Resubmit an image to the highest-fidelity model for a 4K rendition."""
    try:
        source = image_part(image_data_url)
    except PreconditionError:
        raise PreconditionError("Invalid image data provided for upscaling.", code=ErrorCode.INVALID_IMAGE_DATA)

    model = Config.GEMINI_UPSCALE_MODEL
    logger.info(f"Upscaling image with {model}")
    response = await call_backend(
        client.generate_image(
            [source, types.Part.from_text(text=UPSCALE_INSTRUCTION)],
            model,
            aspect_ratio,
            size_hint=UPSCALE_SIZE,
            system_instruction=UPSCALE_SYSTEM_INSTRUCTION,
        ),
        model,
    )
    return interpret_image_response(response, action="Upscaling")
