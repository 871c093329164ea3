"""Media normalization - turn ephemeral or remote locators into self-contained data URLs."""
import asyncio
import base64
import mimetypes
import os
from typing import Optional, Tuple

import httpx

from config import Config
from common.models import NormalizedMedia
from utils.logger import get_logger

logger = get_logger("gallery.fetcher")


class MediaFetcher:
    """
    Normalizes a media locator for durable storage.

    - data URLs pass through unchanged
    - local handles (files under the generated assets mount) are read and encoded
    - remote http(s) URLs are fetched and encoded; cross-origin or auth failures are expected
    Nothing here raises: every failure keeps the original locator.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        assets_dir: str = Config.ASSETS_DIR,
        url_prefix: str = Config.ASSETS_URL_PREFIX,
    ):
        self._transport = transport
        self._assets_dir = assets_dir
        self._url_prefix = url_prefix

    @staticmethod
    def is_data_url(url: str) -> bool:
        return url.startswith("data:")

    def is_local_handle(self, url: str) -> bool:
        return url.startswith(self._url_prefix)

    @staticmethod
    def is_remote(url: str) -> bool:
        return url.startswith("http://") or url.startswith("https://")

    async def normalize(self, url: str) -> NormalizedMedia:
        if self.is_data_url(url):
            return NormalizedMedia(url=url, normalized=True)

        try:
            if self.is_local_handle(url):
                data, mime_type = await asyncio.to_thread(self._read_local, url)
            elif self.is_remote(url):
                data, mime_type = await self._fetch_remote(url)
            else:
                logger.warning(f"Unrecognized media locator kept as is: {url[:80]}")
                return NormalizedMedia(url=url, normalized=False, error="unrecognized locator")
        except Exception as e:
            logger.warning(f"Media normalization failed, keeping original locator: {e}")
            return NormalizedMedia(url=url, normalized=False, error=str(e))

        encoded = base64.b64encode(data).decode("ascii")
        logger.info(f"Normalized {len(data)} bytes of {mime_type} into a data URL")
        return NormalizedMedia(url=f"data:{mime_type};base64,{encoded}", normalized=True)

    def _read_local(self, url: str) -> Tuple[bytes, str]:
        relative = url[len(self._url_prefix):].split("?", 1)[0]
        root = os.path.realpath(self._assets_dir)
        path = os.path.realpath(os.path.join(root, relative))
        if os.path.commonpath([root, path]) != root:
            raise ValueError(f"local handle escapes the assets directory: {url}")
        with open(path, "rb") as f:
            data = f.read()
        mime_type, _ = mimetypes.guess_type(path)
        return data, mime_type or "application/octet-stream"

    async def _fetch_remote(self, url: str) -> Tuple[bytes, str]:
        async with httpx.AsyncClient(
            timeout=Config.MEDIA_FETCH_TIMEOUT_SECONDS,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not mime_type:
            mime_type = mimetypes.guess_type(url.split("?", 1)[0])[0] or "application/octet-stream"
        return response.content, mime_type
