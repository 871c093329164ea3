"""Prompt construction shared by image and video generation."""
import json
from typing import Optional

from common.exceptions import PreconditionError

NO_STYLE = "None"
PASSTHROUGH_JSON_KEYS = ("prompt", "text", "description", "image")


def decorate_prompt(prompt: str, style: Optional[str]) -> str:
    """Prefix the style tag: "{style} style: {prompt}". Artifacts keep the undecorated prompt."""
    if style and style != NO_STYLE and prompt.strip():
        return f"{style} style: {prompt}"
    return prompt


def parse_json_prompt(text: str) -> str:
    """Flatten a JSON object prompt into descriptive text; anything else is returned as is."""
    if not text.strip().startswith("{"):
        return text
    try:
        parsed = json.loads(text)
    except ValueError:
        return text
    if not isinstance(parsed, dict):
        return text

    parts = []
    for key, value in parsed.items():
        if not value:
            continue
        if key.lower() in PASSTHROUGH_JSON_KEYS:
            parts.append(f"{value}")
        else:
            parts.append(f"{key}: {value}")
    return ", ".join(parts)


def build_image_prompt(prompt: str, negative_prompt: Optional[str], has_input_image: bool) -> str:
    """Final text instruction sent alongside (optional) reference image parts."""
    if prompt and prompt.strip():
        final_prompt = f"Create an image of {prompt}"
    elif has_input_image:
        final_prompt = "Generate a high quality creative variation of this image."
    else:
        raise PreconditionError("Please describe the image you want to generate.")

    if negative_prompt:
        final_prompt += f"\n\nExclude the following elements: {negative_prompt}"
    return final_prompt
