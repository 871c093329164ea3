"""
Configuration module - loads all settings from environment variables.
"""
import os
from typing import Optional
from dotenv import load_dotenv

from common.exceptions import MissingCredentialError

# Load environment variables from .env file
try:
    load_dotenv()
except Exception as e:
    print(f"Warning: Failed to load .env file: {e}")
    print("Continuing with environment variables or defaults...")


class Config:
    """Application configuration loaded from environment variables."""

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Safely parse integer environment variable."""
        try:
            return int(os.getenv(key, str(default)))
        except (ValueError, TypeError) as e:
            print(f"Warning: Invalid integer for {key}, using default {default}: {e}")
            return default

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        """Safely parse float environment variable."""
        try:
            return float(os.getenv(key, str(default)))
        except (ValueError, TypeError) as e:
            print(f"Warning: Invalid float for {key}, using default {default}: {e}")
            return default

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Safely parse boolean environment variable."""
        try:
            value = os.getenv(key, str(default)).lower()
            return value in ("true", "1", "yes", "on")
        except Exception as e:
            print(f"Warning: Invalid boolean for {key}, using default {default}: {e}")
            return default

    @staticmethod
    def _get_optional_float(key: str) -> Optional[float]:
        """Parse an optional float; unset or blank means None."""
        raw = os.getenv(key, "").strip()
        if not raw:
            return None
        try:
            return float(raw)
        except ValueError as e:
            print(f"Warning: Invalid float for {key}, ignoring: {e}")
            return None

    # Gemini API
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_IMAGE_MODEL: str = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")
    GEMINI_PREVIEW_MODEL: str = os.getenv("GEMINI_PREVIEW_MODEL", "gemini-2.5-flash-image")
    GEMINI_UPSCALE_MODEL: str = os.getenv("GEMINI_UPSCALE_MODEL", "gemini-3-pro-image-preview")
    GEMINI_VIDEO_MODEL: str = os.getenv("GEMINI_VIDEO_MODEL", "veo-3.1-fast-generate-preview")
    GEMINI_TEXT_MODEL: str = os.getenv("GEMINI_TEXT_MODEL", "gemini-2.0-flash-exp")

    # Video jobs
    VIDEO_POLL_INTERVAL_SECONDS: float = _get_float.__func__("VIDEO_POLL_INTERVAL_SECONDS", 5.0)
    VIDEO_RESOLUTION: str = os.getenv("VIDEO_RESOLUTION", "720p")

    # Media downloads (unset = no client-side timeout)
    MEDIA_FETCH_TIMEOUT_SECONDS: Optional[float] = _get_optional_float.__func__("MEDIA_FETCH_TIMEOUT_SECONDS")

    # Response interpretation
    REFUSAL_TEXT_LIMIT: int = _get_int.__func__("REFUSAL_TEXT_LIMIT", 150)

    # Live preview
    PREVIEW_DEBOUNCE_SECONDS: float = _get_float.__func__("PREVIEW_DEBOUNCE_SECONDS", 1.5)
    PREVIEW_MIN_PROMPT_LENGTH: int = _get_int.__func__("PREVIEW_MIN_PROMPT_LENGTH", 3)

    # Gallery & prompt library
    GALLERY_CAPACITY: int = _get_int.__func__("GALLERY_CAPACITY", 50)
    PROMPT_HISTORY_LIMIT: int = _get_int.__func__("PROMPT_HISTORY_LIMIT", 20)

    # File Storage
    ASSETS_DIR: str = os.getenv("ASSETS_DIR", "assets/generated")
    VIDEOS_DIR: str = os.getenv("VIDEOS_DIR", os.path.join(ASSETS_DIR, "videos"))
    ASSETS_URL_PREFIX: str = "/assets/generated/"

    # Database
    PERSIST: bool = _get_bool.__func__("PERSIST", True)
    DB_DIR: str = os.getenv("DB_DIR", os.path.join("assets", "db"))

    # Usage Limits
    DEFAULT_DAILY_LIMIT: int = _get_int.__func__("DEFAULT_DAILY_LIMIT", 50)

    # Logging
    LOGS_DIR: str = os.getenv("LOGS_DIR", "logs")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = _get_int.__func__("PORT", 8000)

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        if not cls.GEMINI_API_KEY:
            raise ValueError("GEMINI_API_KEY environment variable is required")
        if cls.GALLERY_CAPACITY < 1:
            raise ValueError("GALLERY_CAPACITY must be at least 1")

    @classmethod
    def get_gemini_api_key(cls) -> str:
        """Get GEMINI_API_KEY, raise MissingCredentialError if not set."""
        if not cls.GEMINI_API_KEY:
            raise MissingCredentialError("GEMINI_API_KEY must be set in environment variables")
        return cls.GEMINI_API_KEY


# Initialize directories
try:
    os.makedirs(Config.ASSETS_DIR, exist_ok=True)
    os.makedirs(Config.VIDEOS_DIR, exist_ok=True)
except Exception as e:
    print(f"Warning: Failed to create directories: {e}")
    print("Some features may not work correctly without these directories.")
