"""Test environment: no persistence, dummy key, throwaway asset and log dirs."""
import os
import asyncio
import tempfile
from types import SimpleNamespace

_tmp_root = tempfile.mkdtemp(prefix="nebula-test-")

os.environ.setdefault("GEMINI_API_KEY", "test-key")
os.environ["PERSIST"] = "false"
os.environ["ASSETS_DIR"] = os.path.join(_tmp_root, "generated")
os.environ["DB_DIR"] = os.path.join(_tmp_root, "db")
os.environ["LOGS_DIR"] = os.path.join(_tmp_root, "logs")
os.environ["DEFAULT_DAILY_LIMIT"] = "1000"

import pytest  # noqa: E402

from common.gemini_client import GeminiClient  # noqa: E402
from database import InMemoryStore  # noqa: E402


def image_response(data: bytes, mime_type: str = "image/png", finish_reason: str = "STOP"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)
    candidate = SimpleNamespace(finish_reason=finish_reason, content=SimpleNamespace(parts=[part]))
    return SimpleNamespace(prompt_feedback=None, candidates=[candidate])


def text_response(text: str, finish_reason: str = "STOP"):
    part = SimpleNamespace(inline_data=None, text=text)
    candidate = SimpleNamespace(finish_reason=finish_reason, content=SimpleNamespace(parts=[part]))
    return SimpleNamespace(prompt_feedback=None, candidates=[candidate])


class FakeGeminiClient(GeminiClient):
    """
    Backend double for image calls. Each call returns image bytes b"img-<seed>".

    delays: seed -> seconds to wait before answering (simulates completion order)
    failures: seed -> exception raised for that seed
    reply: optional callable(call) -> raw response overriding the default image
    """

    def __init__(self, **kwargs):
        super().__init__(api_key="test-key", **kwargs)
        self.calls = []
        self.delays = {}
        self.failures = {}
        self.reply = None

    async def generate_image(self, parts, model, aspect_ratio, size_hint=None, seed=None, system_instruction=None):
        call = {
            "parts": parts,
            "model": model,
            "aspect_ratio": aspect_ratio,
            "size_hint": size_hint,
            "seed": seed,
            "system_instruction": system_instruction,
        }
        self.calls.append(call)
        await asyncio.sleep(self.delays.get(seed, 0))
        if seed in self.failures:
            raise self.failures[seed]
        if self.reply is not None:
            return self.reply(call)
        return image_response(f"img-{seed}".encode())


@pytest.fixture
def store():
    """Fresh, non-persistent document store."""
    return InMemoryStore(persist=False)


@pytest.fixture
def fake_client():
    return FakeGeminiClient()


@pytest.fixture
def sleeps():
    """Awaitable sleep that records requested durations without waiting."""
    recorded = []

    async def sleep(seconds):
        recorded.append(seconds)
        await asyncio.sleep(0)

    sleep.recorded = recorded
    return sleep
