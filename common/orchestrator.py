"""Generation orchestration - batches, variations, upscaling, video, preview and save."""
import asyncio
import random
from typing import List, Optional, Any, Awaitable

from config import Config
from common.exceptions import GenerationError, PreconditionError
from common.error_messages import ErrorCode
from common.gemini_client import GeminiClient
from common.models import Artifact, ArchiveRecord, GenerationMode, GenerationRequest
from common.prompting import decorate_prompt
from gallery.services import ArtifactStore
from image import services as image_services
from videos import services as video_services
from videos.services import Sleeper
from utils.logger import get_logger

logger = get_logger("orchestrator")

MAX_RANDOM_SEED = 2_000_000_000
VARIATION_SEED_OFFSET = 1000
VARIATION_COUNT = 4


async def gather_in_order(calls: List[Awaitable[Any]]) -> List[Any]:
    """
    Run calls concurrently and return results by position.

    All-or-nothing: if any call fails the lowest-index failure is raised once every call settled.
    """
    results = await asyncio.gather(*calls, return_exceptions=True)
    for index, result in enumerate(results):
        if isinstance(result, BaseException):
            logger.error(f"Batch item {index} failed: {result}")
            raise result
    return list(results)


class GenerationOrchestrator:
    """
    Turns generation requests into artifacts.

    Owns the single preview slot. Every other operation is stateless and may interleave
    freely with others.
    """

    def __init__(
        self,
        client: Optional[GeminiClient] = None,
        store: Optional[ArtifactStore] = None,
        rng: Optional[random.Random] = None,
        poll_interval: float = Config.VIDEO_POLL_INTERVAL_SECONDS,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.client = client or GeminiClient()
        self.store = store
        self._rng = rng or random.Random()
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._preview_task: Optional[asyncio.Task] = None

    def draw_seed(self, seed: int) -> int:
        if seed == -1:
            return self._rng.randrange(MAX_RANDOM_SEED)
        return seed

    @staticmethod
    def check_preconditions(request: GenerationRequest):
        if not request.prompt.strip() and not request.input_image:
            raise PreconditionError("Please describe the image you want to generate.")

    def _artifact(self, request: GenerationRequest, url: str, seed: Optional[int], mode: str) -> Artifact:
        return Artifact(
            url=url,
            type=mode,
            prompt=request.prompt,
            negative_prompt=request.negative_prompt or None,
            style=request.style,
            aspect_ratio=request.aspect_ratio,
            model=request.model,
            seed=seed,
        )

    async def generate_batch(self, request: GenerationRequest) -> List[Artifact]:
        """Generate request.batch_size images with seeds base, base+1, ... in index order."""
        self.check_preconditions(request)
        if request.mode == GenerationMode.VIDEO.value:
            return [await self.generate_video(request)]

        base_seed = self.draw_seed(request.seed)
        prompt = decorate_prompt(request.prompt, request.style)
        seeds = [base_seed + index for index in range(request.batch_size)]
        logger.info(f"Dispatching batch of {len(seeds)} with {request.model} (base seed {base_seed})")

        urls = await gather_in_order(
            [image_services.generate_image(self.client, request, prompt, seed) for seed in seeds]
        )
        return [
            self._artifact(request, url, seed, GenerationMode.IMAGE.value)
            for url, seed in zip(urls, seeds)
        ]

    async def generate_video(self, request: GenerationRequest) -> Artifact:
        """One video clip; the artifact carries no seed."""
        self.check_preconditions(request)
        model = request.model if request.model.startswith("veo") else Config.GEMINI_VIDEO_MODEL
        request = request.model_copy(
            update={"model": model, "aspect_ratio": video_services.normalize_aspect_ratio(request.aspect_ratio)}
        )
        prompt = decorate_prompt(request.prompt, request.style)
        url = await video_services.generate_video(
            self.client,
            prompt,
            request.aspect_ratio,
            input_image=request.input_image,
            model=request.model,
            poll_interval=self._poll_interval,
            sleep=self._sleep,
        )
        return self._artifact(request, url, None, GenerationMode.VIDEO.value)

    async def derive_variations(self, source: Artifact, request: GenerationRequest) -> List[Artifact]:
        """Four images around a known source seed: source+1000 .. source+1003."""
        if source.type != GenerationMode.IMAGE.value:
            raise PreconditionError("Variations are only available for images.", code=ErrorCode.UNSUPPORTED_OPERATION)
        if source.seed is None:
            raise PreconditionError("Variations need an image with a known seed.", code=ErrorCode.UNSUPPORTED_OPERATION)

        # Source metadata wins over the current request
        overrides = {
            "mode": GenerationMode.IMAGE.value,
            "prompt": source.prompt or request.prompt,
            "negative_prompt": source.negative_prompt if source.negative_prompt is not None else request.negative_prompt,
            "style": source.style or request.style,
            "aspect_ratio": source.aspect_ratio or request.aspect_ratio,
            "model": source.model or request.model,
            "seed": source.seed,
            "batch_size": VARIATION_COUNT,
        }
        variation_request = request.model_copy(update=overrides)
        self.check_preconditions(variation_request)

        prompt = decorate_prompt(variation_request.prompt, variation_request.style)
        seeds = [source.seed + VARIATION_SEED_OFFSET + index for index in range(VARIATION_COUNT)]
        logger.info(f"Deriving {VARIATION_COUNT} variations of {source.id} (seeds {seeds[0]}..{seeds[-1]})")

        urls = await gather_in_order(
            [image_services.generate_image(self.client, variation_request, prompt, seed) for seed in seeds]
        )
        return [
            self._artifact(variation_request, url, seed, GenerationMode.IMAGE.value)
            for url, seed in zip(urls, seeds)
        ]

    async def upscale(self, artifact: Artifact, aspect_ratio: Optional[str] = None) -> Artifact:
        """A new artifact with a 4K rendition; the source is left untouched."""
        if artifact.type != GenerationMode.IMAGE.value:
            raise PreconditionError("Only images can be upscaled.", code=ErrorCode.UNSUPPORTED_OPERATION)
        url = await image_services.upscale_image(self.client, artifact.url, aspect_ratio or artifact.aspect_ratio)
        upscaled = artifact.derive(url)
        logger.info(f"Upscaled {artifact.id} into {upscaled.id}")
        return upscaled

    async def save(self, artifact: Artifact) -> List[ArchiveRecord]:
        """Archive an artifact. Persistence failures are logged and never reach the caller."""
        if self.store is None:
            logger.warning("No artifact store configured; save skipped")
            return []
        try:
            return await self.store.put(artifact)
        except Exception as e:
            logger.warning(f"Failed to save artifact {artifact.id} to gallery: {e}")
        try:
            return await self.store.list()
        except Exception as e:
            logger.warning(f"Failed to list gallery after save failure: {e}")
            return []

    @staticmethod
    def wants_preview(request: GenerationRequest) -> bool:
        if request.mode == GenerationMode.VIDEO.value:
            return False
        return len(request.prompt.strip()) >= Config.PREVIEW_MIN_PROMPT_LENGTH or bool(request.input_image)

    async def _render_preview(self, request: GenerationRequest) -> Optional[Artifact]:
        await self._sleep(Config.PREVIEW_DEBOUNCE_SECONDS)
        seed = self.draw_seed(request.seed)
        model = Config.GEMINI_PREVIEW_MODEL
        prompt = decorate_prompt(request.prompt, request.style)
        url = await image_services.generate_image(self.client, request, prompt, seed, model=model)
        artifact = self._artifact(request, url, seed, GenerationMode.IMAGE.value)
        return artifact.model_copy(update={"model": model})

    async def preview(self, request: GenerationRequest) -> Optional[Artifact]:
        """
        Debounced low-cost render of the current request.

        Starting a preview replaces the one in flight. Returns None when the request does
        not qualify, when superseded, or when rendering failed.
        """
        if not self.wants_preview(request):
            return None

        previous = self._preview_task
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.ensure_future(self._render_preview(request))
        self._preview_task = task

        try:
            return await task
        except asyncio.CancelledError:
            # Only a newer preview taking the slot turns cancellation into None
            if self._preview_task is not task:
                logger.info("Preview superseded by a newer request")
                return None
            raise
        except GenerationError as e:
            logger.warning(f"Preview failed: {e.message}")
            return None
        finally:
            if self._preview_task is task:
                self._preview_task = None
