"""Text generation service - prompt enhancement and image analysis using Gemini."""
import re
from typing import Optional

from google.genai import types

from config import Config
from common.error_messages import ErrorCode
from common.exceptions import PreconditionError, BackendError
from common.gemini_client import GeminiClient, image_part
from common.prompting import NO_STYLE
from image.services import call_backend
from utils.logger import get_logger

logger = get_logger("text_service")

ENHANCE_SYSTEM_INSTRUCTION = (
    "You are an expert AI prompt engineer. Rewrite simple user prompts into detailed, "
    "high-quality image generation prompts. Output only the prompt text."
)
ENHANCE_TEMPLATE = (
    "Rewrite this image generation prompt to be more descriptive, artistic, and detailed. "
    "Include keywords for lighting, style, composition, and texture. "
    "Keep it under 75 words. "
    "Output ONLY the raw prompt text.\n\n"
    'User Prompt: "{prompt}"'
)
ENHANCE_TEMPERATURE = 0.7
ENHANCE_MAX_TOKENS = 200

DESCRIBE_INSTRUCTION = (
    "Describe this image as a single detailed image generation prompt. Cover the subject, "
    "setting, lighting, composition and color palette. Output ONLY the prompt text."
)
EXTRACT_STYLE_INSTRUCTION = (
    "Identify the artistic style of this image. Ignore the subject matter. "
    "Return 5 to 10 comma separated style keywords (medium, technique, lighting, palette, mood). "
    "Output ONLY the keywords."
)

REWRITE_PREFIX_RE = re.compile(r"^Here is (the|a) rewritten prompt:?", re.IGNORECASE)


def clean_prompt_text(text: str) -> str:
    """Strip wrapping quotes and a chatty 'Here is the rewritten prompt:' lead-in."""
    clean = text.strip()
    if len(clean) >= 2 and clean.startswith('"') and clean.endswith('"'):
        clean = clean[1:-1]
    clean = REWRITE_PREFIX_RE.sub("", clean)
    return clean.strip()


async def enhance_prompt(client: GeminiClient, prompt: str, style: Optional[str] = None) -> str:
    """Rewrite a short prompt into a detailed one."""
    if not prompt or not prompt.strip():
        raise PreconditionError("Enter a prompt to enhance.")

    text = ENHANCE_TEMPLATE.format(prompt=prompt.strip())
    if style and style != NO_STYLE:
        text += f"\nTarget style: {style}"

    model = Config.GEMINI_TEXT_MODEL
    logger.info(f"Enhancing prompt with {model} ({len(prompt)} chars)")
    result = await call_backend(
        client.generate_text(
            text,
            model=model,
            system_instruction=ENHANCE_SYSTEM_INSTRUCTION,
            temperature=ENHANCE_TEMPERATURE,
            max_output_tokens=ENHANCE_MAX_TOKENS,
        ),
        model,
    )
    enhanced = clean_prompt_text(result)
    if not enhanced:
        raise BackendError("No text returned from enhancer.", code=ErrorCode.NO_CONTENT_GENERATED)
    return enhanced


async def _analyze_image(client: GeminiClient, image: str, instruction: str) -> str:
    if not image:
        raise PreconditionError("Upload an image to analyze.", code=ErrorCode.INVALID_IMAGE_DATA)
    contents = [image_part(image), types.Part.from_text(text=instruction)]
    model = Config.GEMINI_TEXT_MODEL
    result = await call_backend(client.generate_text(contents, model=model), model)
    return clean_prompt_text(result)


async def describe_image(client: GeminiClient, image: str) -> str:
    """Turn an input image into a prompt that would recreate it."""
    description = await _analyze_image(client, image, DESCRIBE_INSTRUCTION)
    if not description:
        raise BackendError("Failed to analyze image.", code=ErrorCode.NO_CONTENT_GENERATED)
    logger.info(f"Described image into a {len(description)} char prompt")
    return description


async def extract_style(client: GeminiClient, image: str) -> str:
    """Comma separated style keywords; empty when nothing distinctive was found."""
    keywords = await _analyze_image(client, image, EXTRACT_STYLE_INSTRUCTION)
    parts = [k.strip().strip(".") for k in keywords.replace("\n", ",").split(",")]
    result = ", ".join(p for p in parts if p)
    if not result:
        logger.warning("Could not identify specific style traits")
    return result
