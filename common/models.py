"""Shared generation models: requests, artifacts and archive records."""
import time
import threading
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from config import Config


RANDOM_SEED = -1
MAX_BATCH_SIZE = 4

_timestamp_lock = threading.Lock()
_last_timestamp = 0


def monotonic_timestamp() -> int:
    """Wall-clock milliseconds, strictly increasing across calls in this process."""
    global _last_timestamp
    with _timestamp_lock:
        now = time.time_ns() // 1_000_000
        _last_timestamp = max(now, _last_timestamp + 1)
        return _last_timestamp


def new_artifact_id() -> str:
    return str(uuid4())


class ModelType(str, Enum):
    """Generation models offered to the user."""
    GEMINI_FLASH_IMAGE = "gemini-2.5-flash-image"
    IMAGEN_4 = "imagen-4.0-generate-001"
    GEMINI_PRO_IMAGE = "gemini-3-pro-image-preview"
    GEMINI_2_0_FLASH_EXP = "gemini-2.0-flash-exp"
    VEO_FAST = "veo-3.1-fast-generate-preview"


class GenerationMode(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


class ImageSize(str, Enum):
    """Output size hint, honoured by the Pro image model only."""
    SIZE_1K = "1K"
    SIZE_2K = "2K"
    SIZE_4K = "4K"


class GenerationRequest(BaseModel):
    """One user generation action. Immutable once dispatched."""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    mode: GenerationMode = Field(GenerationMode.IMAGE, description="image or video")
    prompt: str = Field("", description="What to generate")
    negative_prompt: str = Field("", description="Elements to exclude")
    model: str = Field(Config.GEMINI_IMAGE_MODEL, description="Backend model id")
    aspect_ratio: str = Field("1:1", description="Aspect ratio, e.g. 1:1, 16:9")
    style: str = Field("None", description="Style tag; 'None' disables the style prefix")
    quality: int = Field(90, ge=0, le=100)
    steps: int = Field(50, ge=10, le=150)
    guidance_scale: float = Field(7.5, ge=1, le=20)
    seed: int = Field(RANDOM_SEED, ge=RANDOM_SEED, description="-1 draws a random base seed")
    batch_size: int = Field(1, ge=1, le=MAX_BATCH_SIZE)
    image_size: ImageSize = Field(ImageSize.SIZE_1K, description="Output size hint for the Pro model")
    input_image: Optional[str] = Field(None, description="Reference image as a base64 data URL")

    @property
    def has_random_seed(self) -> bool:
        return self.seed == RANDOM_SEED

    @property
    def item_count(self) -> int:
        """Number of artifacts this request produces."""
        return 1 if self.mode == GenerationMode.VIDEO.value else self.batch_size


class Artifact(BaseModel):
    """The result of one generation call."""
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=new_artifact_id, description="Unique id, never reused")
    url: str = Field(..., description="Data URL, local handle or remote URL")
    type: GenerationMode = Field(..., description="Artifact kind")
    prompt: str = Field("", description="Undecorated originating prompt")
    negative_prompt: Optional[str] = None
    style: Optional[str] = None
    aspect_ratio: Optional[str] = None
    model: Optional[str] = None
    seed: Optional[int] = Field(None, description="Seed actually used")
    timestamp: int = Field(default_factory=monotonic_timestamp, description="Creation time in ms; eviction order key")

    def derive(self, url: str) -> "Artifact":
        """A new artifact (new id and timestamp) carrying this one's metadata."""
        data = self.model_dump(exclude={"id", "timestamp"})
        data["url"] = url
        return Artifact(**data)


class ArchiveRecord(Artifact):
    """Durable form of an Artifact with its media locator normalized."""
    normalized: bool = Field(False, description="True when url holds a self-contained payload")


class NormalizedMedia(BaseModel):
    """Outcome of media normalization; url is always usable."""
    url: str
    normalized: bool = False
    error: Optional[str] = None

    @model_validator(mode="after")
    def _url_present(self):
        if not self.url:
            raise ValueError("normalized media must keep a locator")
        return self
