"""Video generation services - Gemini Veo integration."""
import asyncio
import os
from typing import Optional, Any, Callable, Awaitable
from uuid import uuid4

from config import Config
from common.error_messages import ErrorCode
from common.exceptions import BackendError
from common.gemini_client import GeminiClient
from image.services import call_backend
from utils.logger import get_logger

logger = get_logger("videos.services")

SUPPORTED_ASPECT_RATIOS = ("16:9", "9:16")
DEFAULT_ASPECT_RATIO = "16:9"

Sleeper = Callable[[float], Awaitable[Any]]


def save_video_file_return_url(file_name: str, data: bytes) -> str:
    """Save video file to videos directory and return its local URL."""
    path = os.path.join(Config.VIDEOS_DIR, file_name)
    try:
        with open(path, "wb") as f:
            f.write(data)
    except (IOError, OSError) as e:
        logger.error(f"Failed to save video {file_name}: {e}")
        raise BackendError(f"Failed to save generated video: {e}", code=ErrorCode.FILE_SAVE_ERROR)
    # Served by the /assets static mount
    return f"{Config.ASSETS_URL_PREFIX}videos/{file_name}"


def normalize_aspect_ratio(aspect_ratio: Optional[str]) -> str:
    """Veo accepts landscape or portrait only."""
    if aspect_ratio in SUPPORTED_ASPECT_RATIOS:
        return aspect_ratio
    logger.warning(f"Invalid aspect ratio '{aspect_ratio}' for video model. Defaulting to '{DEFAULT_ASPECT_RATIO}'.")
    return DEFAULT_ASPECT_RATIO


def _video_uri(operation: Any) -> str:
    result = getattr(operation, "response", None) or getattr(operation, "result", None)
    if not result:
        logger.error("Operation completed but no result found")
        raise BackendError("No result from video generation operation", code=ErrorCode.VIDEO_GENERATION_FAILED)

    generated_videos = getattr(result, "generated_videos", None) or []
    if not generated_videos:
        logger.error("No videos were generated")
        raise BackendError("No video URI returned.", code=ErrorCode.VIDEO_GENERATION_FAILED)

    video = getattr(generated_videos[0], "video", None)
    uri = getattr(video, "uri", None)
    if not uri:
        logger.error("Generated video is missing a URI")
        raise BackendError("No video URI returned.", code=ErrorCode.VIDEO_GENERATION_FAILED)
    return uri


async def wait_for_job(
    client: GeminiClient,
    operation: Any,
    poll_interval: float = Config.VIDEO_POLL_INTERVAL_SECONDS,
    sleep: Sleeper = asyncio.sleep,
) -> Any:
    """Poll until the job reports done. No attempt limit; only the backend can end it early."""
    poll_count = 0
    while not getattr(operation, "done", False):
        await sleep(poll_interval)
        poll_count += 1
        operation = await call_backend(client.poll_job(operation), "video-operations")
        metadata = getattr(operation, "metadata", None)
        state = metadata.get("state") if isinstance(metadata, dict) else None
        logger.info(f"...Generating video... (poll #{poll_count}, state={state or 'processing'})")

    logger.info(f"Video generation completed after {poll_count} polls")

    error = getattr(operation, "error", None)
    if error:
        message = error.get("message") if isinstance(error, dict) else getattr(error, "message", str(error))
        raise BackendError(f"Video generation failed: {message}", code=ErrorCode.VIDEO_GENERATION_FAILED)
    return operation


async def fetch_video(client: GeminiClient, uri: str) -> str:
    """
    Turn a finished job's media URI into something playable.

    First choice: download the bytes with the credential and keep them as a local file.
    If the download or the local save fails, hand back the authenticated URL itself; a direct media
    element can often play what a programmatic fetch cannot.
    """
    fetch_url = client.authenticated_url(uri)
    try:
        video_bytes, mime_type = await client.download(fetch_url)
    except BackendError as e:
        logger.warning(f"Video download failed, returning authenticated URL instead: {e}")
        return fetch_url

    logger.info(f"Fetched video: {len(video_bytes)} bytes ({mime_type})")
    try:
        return await asyncio.to_thread(save_video_file_return_url, f"{uuid4()}.mp4", video_bytes)
    except BackendError as e:
        logger.warning(f"Video save failed, returning authenticated URL instead: {e}")
        return fetch_url


async def generate_video(
    client: GeminiClient,
    prompt: Optional[str],
    aspect_ratio: Optional[str],
    input_image: Optional[str] = None,
    model: str = Config.GEMINI_VIDEO_MODEL,
    poll_interval: float = Config.VIDEO_POLL_INTERVAL_SECONDS,
    sleep: Sleeper = asyncio.sleep,
) -> str:
    """
    Generate one video clip and return its media locator.

    Args:
        client: Backend client
        prompt: Style-decorated prompt (may be empty for image-to-video)
        aspect_ratio: Requested ratio; unsupported values fall back to 16:9
        input_image: Optional start image as a data URL
        model: Veo model id
        poll_interval: Seconds between job polls
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        Local file URL when the download succeeded, otherwise the authenticated remote URL
    """
    aspect_ratio = normalize_aspect_ratio(aspect_ratio)

    logger.info(f"Starting video generation with {model} (aspect={aspect_ratio}, image={'yes' if input_image else 'no'})")
    operation = await call_backend(
        client.generate_video_job(prompt, model, aspect_ratio, input_image=input_image),
        model,
    )
    logger.info(f"Video generation operation started: {getattr(operation, 'name', 'unknown')}")

    operation = await wait_for_job(client, operation, poll_interval=poll_interval, sleep=sleep)
    uri = _video_uri(operation)
    logger.info(f"Video generated successfully with URI: {uri}")
    return await fetch_video(client, uri)
