"""Image generation module."""
from image.services import (
    classify_text_response,
    interpret_image_response,
    generate_image,
    upscale_image
)

__all__ = [
    "classify_text_response",
    "interpret_image_response",
    "generate_image",
    "upscale_image"
]
