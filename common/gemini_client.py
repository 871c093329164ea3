"""Gemini client boundary - every call to the remote generation backend goes through here."""
import base64
import re
from typing import Optional, List, Any, Tuple

import httpx
from google import genai
from google.genai import types

from config import Config
from common.exceptions import BackendError, PreconditionError
from common.error_messages import ErrorCode
from utils.logger import get_logger

logger = get_logger("gemini_client")

DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<data>.+)$", re.DOTALL)


def parse_data_url(data_url: str) -> Tuple[str, bytes]:
    """Split a base64 data URL into (mime_type, raw bytes)."""
    match = DATA_URL_RE.match(data_url or "")
    if not match:
        raise PreconditionError("Invalid image data provided.", code=ErrorCode.INVALID_IMAGE_DATA)
    try:
        return match.group("mime"), base64.b64decode(match.group("data"))
    except (ValueError, TypeError) as e:
        raise PreconditionError(f"Invalid image data provided: {e}", code=ErrorCode.INVALID_IMAGE_DATA)


def to_data_url(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def image_part(data_url: str) -> "types.Part":
    """Inline image part built from a data URL."""
    mime_type, raw = parse_data_url(data_url)
    return types.Part(inline_data=types.Blob(mime_type=mime_type, data=raw))


class GeminiClient:
    """
    Thin async wrapper over google-genai.

    The API key is resolved on every call so a missing credential always surfaces as
    MissingCredentialError before any network traffic, distinct from backend failures.
    """

    def __init__(self, api_key: Optional[str] = None, http_transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = api_key
        self._http_transport = http_transport
        self._client = None
        self._client_key = None

    @property
    def api_key(self) -> str:
        return self._api_key or Config.get_gemini_api_key()

    def _aio(self):
        key = self.api_key
        if self._client is None or self._client_key != key:
            self._client = genai.Client(api_key=key)
            self._client_key = key
        return self._client.aio

    async def generate_image(
        self,
        parts: List["types.Part"],
        model: str,
        aspect_ratio: Optional[str],
        size_hint: Optional[str] = None,
        seed: Optional[int] = None,
        system_instruction: Optional[str] = None,
    ) -> Any:
        """Single generate_content call for the Gemini image family. Returns the raw response."""
        image_config = {"aspect_ratio": aspect_ratio} if aspect_ratio else {}
        if size_hint:
            image_config["image_size"] = size_hint
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE", "TEXT"],
            system_instruction=system_instruction,
            image_config=types.ImageConfig(**image_config) if image_config else None,
            seed=seed,
        )
        logger.debug(f"generate_content model={model} aspect={aspect_ratio} size={size_hint} seed={seed}")
        return await self._aio().models.generate_content(
            model=model,
            contents=types.Content(role="user", parts=parts),
            config=config,
        )

    async def generate_images(self, prompt: str, model: str, aspect_ratio: Optional[str]) -> Any:
        """Imagen family: one JPEG per call. Returns the raw response."""
        logger.debug(f"generate_images model={model} aspect={aspect_ratio}")
        return await self._aio().models.generate_images(
            model=model,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/jpeg",
                aspect_ratio=aspect_ratio,
            ),
        )

    async def generate_video_job(
        self,
        prompt: Optional[str],
        model: str,
        aspect_ratio: str,
        input_image: Optional[str] = None,
        resolution: str = Config.VIDEO_RESOLUTION,
    ) -> Any:
        """Start a Veo job and return its operation handle."""
        payload = {
            "model": model,
            "config": types.GenerateVideosConfig(
                number_of_videos=1,
                resolution=resolution,
                aspect_ratio=aspect_ratio,
            ),
        }
        if prompt:
            payload["prompt"] = prompt
        if input_image:
            mime_type, raw = parse_data_url(input_image)
            payload["image"] = types.Image(image_bytes=raw, mime_type=mime_type)
        return await self._aio().models.generate_videos(**payload)

    async def poll_job(self, operation: Any) -> Any:
        """Refresh a job handle; the returned handle carries the updated done state."""
        return await self._aio().operations.get(operation)

    async def generate_text(
        self,
        contents: Any,
        model: str = Config.GEMINI_TEXT_MODEL,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> str:
        """Text-only generate_content call. Returns the response text (may be empty)."""
        response = await self._aio().models.generate_content(
            model=model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                temperature=temperature,
                max_output_tokens=max_output_tokens,
            ),
        )
        text = getattr(response, "text", None)
        if text:
            return text
        candidates = getattr(response, "candidates", None) or []
        for candidate in candidates:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                if getattr(part, "text", None):
                    return part.text
        return ""

    def authenticated_url(self, uri: str) -> str:
        """Media URIs returned by finished jobs need the key appended to be fetchable."""
        separator = "&" if "?" in uri else "?"
        return f"{uri}{separator}key={self.api_key}"

    async def download(self, url: str) -> Tuple[bytes, str]:
        """Fetch bytes from a URL. Raises BackendError on transport failure or non-2xx."""
        try:
            async with httpx.AsyncClient(
                timeout=Config.MEDIA_FETCH_TIMEOUT_SECONDS,
                follow_redirects=True,
                transport=self._http_transport,
            ) as http_client:
                response = await http_client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise BackendError(f"Failed to download generated media: {e}")
        mime_type = response.headers.get("content-type", "application/octet-stream").split(";")[0].strip()
        return response.content, mime_type
