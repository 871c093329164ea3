"""Tests for batch generation, variations, upscaling, save and preview."""
import asyncio
import random

import pytest

from config import Config
from conftest import FakeGeminiClient, text_response
from common.exceptions import BackendError, MissingCredentialError, PreconditionError, RefusalError
from common.gemini_client import GeminiClient, parse_data_url
from common.models import Artifact, GenerationRequest
from common.orchestrator import GenerationOrchestrator, MAX_RANDOM_SEED, gather_in_order
from image import services as image_services


def payload(artifact):
    return parse_data_url(artifact.url)[1]


def sent_prompt(call):
    return call["parts"][-1].text


@pytest.mark.asyncio
@pytest.mark.parametrize("batch_size", [1, 2, 3, 4])
async def test_batch_seeds_are_consecutive_and_positional(fake_client, batch_size):
    # Later items finish first
    fake_client.delays = {100 + i: 0.01 * (batch_size - i) for i in range(batch_size)}
    orchestrator = GenerationOrchestrator(client=fake_client)

    artifacts = await orchestrator.generate_batch(
        GenerationRequest(prompt="a lighthouse", seed=100, batch_size=batch_size)
    )

    assert [a.seed for a in artifacts] == [100 + i for i in range(batch_size)]
    assert [payload(a) for a in artifacts] == [f"img-{100 + i}".encode() for i in range(batch_size)]
    assert len({a.id for a in artifacts}) == batch_size


@pytest.mark.asyncio
async def test_batch_calls_run_concurrently(fake_client):
    fake_client.delays = {s: 0.2 for s in range(7, 11)}
    orchestrator = GenerationOrchestrator(client=fake_client)

    loop = asyncio.get_running_loop()
    started = loop.time()
    await orchestrator.generate_batch(GenerationRequest(prompt="x y z", seed=7, batch_size=4))

    assert loop.time() - started < 0.6


@pytest.mark.asyncio
async def test_random_seed_end_to_end(fake_client):
    orchestrator = GenerationOrchestrator(client=fake_client, rng=random.Random(1234))
    expected_base = random.Random(1234).randrange(MAX_RANDOM_SEED)

    artifacts = await orchestrator.generate_batch(
        GenerationRequest(prompt="a red fox", style="Anime", seed=-1, batch_size=2)
    )

    assert [c["seed"] for c in fake_client.calls] == [expected_base, expected_base + 1]
    assert [a.seed for a in artifacts] == [expected_base, expected_base + 1]
    for call in fake_client.calls:
        assert sent_prompt(call) == "Create an image of Anime style: a red fox"
    assert all(a.prompt == "a red fox" for a in artifacts)
    assert all(a.style == "Anime" for a in artifacts)


@pytest.mark.asyncio
async def test_batch_is_all_or_nothing(fake_client):
    fake_client.failures = {51: BackendError("boom one"), 53: BackendError("boom three")}
    orchestrator = GenerationOrchestrator(client=fake_client)

    with pytest.raises(BackendError) as exc_info:
        await orchestrator.generate_batch(GenerationRequest(prompt="cats", seed=50, batch_size=4))

    assert exc_info.value.message == "boom one"
    assert len(fake_client.calls) == 4


@pytest.mark.asyncio
async def test_gather_in_order_keeps_positions():
    async def value(v, delay):
        await asyncio.sleep(delay)
        return v

    assert await gather_in_order([value("a", 0.03), value("b", 0.0), value("c", 0.01)]) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_empty_prompt_without_image_is_rejected_before_any_call(fake_client):
    orchestrator = GenerationOrchestrator(client=fake_client)

    with pytest.raises(PreconditionError):
        await orchestrator.generate_batch(GenerationRequest(prompt="   "))
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_input_image_alone_is_enough(fake_client):
    orchestrator = GenerationOrchestrator(client=fake_client)
    request = GenerationRequest(prompt="", input_image="data:image/png;base64,aGVsbG8=", seed=3)

    artifacts = await orchestrator.generate_batch(request)

    assert len(artifacts) == 1
    call = fake_client.calls[0]
    assert call["parts"][0].inline_data.data == b"hello"
    assert sent_prompt(call) == "Generate a high quality creative variation of this image."


@pytest.mark.asyncio
async def test_missing_credential_fails_before_network(monkeypatch):
    monkeypatch.setattr(Config, "GEMINI_API_KEY", "")
    request = GenerationRequest(prompt="a tree")

    with pytest.raises(MissingCredentialError) as exc_info:
        await image_services.generate_image(GeminiClient(), request, "a tree", 1)
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("source_seed", [0, 42, 1999999999])
async def test_variations_use_offset_seeds(fake_client, source_seed):
    orchestrator = GenerationOrchestrator(client=fake_client)
    source = Artifact(url="data:image/png;base64,AA==", type="image", prompt="a castle", style="Watercolor", seed=source_seed)

    variations = await orchestrator.derive_variations(source, GenerationRequest(prompt="ignored"))

    assert [v.seed for v in variations] == [source_seed + 1000 + i for i in range(4)]
    assert all(v.prompt == "a castle" for v in variations)
    assert sent_prompt(fake_client.calls[0]) == "Create an image of Watercolor style: a castle"


@pytest.mark.asyncio
async def test_variations_need_a_known_seed_and_an_image(fake_client):
    orchestrator = GenerationOrchestrator(client=fake_client)

    with pytest.raises(PreconditionError):
        await orchestrator.derive_variations(
            Artifact(url="data:image/png;base64,AA==", type="image", prompt="p", seed=None), GenerationRequest()
        )
    with pytest.raises(PreconditionError):
        await orchestrator.derive_variations(
            Artifact(url="https://x/v.mp4", type="video", prompt="p", seed=5), GenerationRequest()
        )
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_upscale_returns_new_artifact(fake_client):
    orchestrator = GenerationOrchestrator(client=fake_client)
    source = Artifact(url="data:image/png;base64,aGVsbG8=", type="image", prompt="a bridge", aspect_ratio="16:9", seed=9)

    upscaled = await orchestrator.upscale(source)

    assert upscaled.id != source.id
    assert upscaled.timestamp > source.timestamp
    assert upscaled.prompt == "a bridge"
    assert upscaled.seed == 9
    assert upscaled.url != source.url
    assert source.url == "data:image/png;base64,aGVsbG8="

    call = fake_client.calls[0]
    assert call["model"] == Config.GEMINI_UPSCALE_MODEL
    assert call["size_hint"] == "4K"
    assert call["aspect_ratio"] == "16:9"


@pytest.mark.asyncio
async def test_upscale_rejects_video(fake_client):
    orchestrator = GenerationOrchestrator(client=fake_client)

    with pytest.raises(PreconditionError):
        await orchestrator.upscale(Artifact(url="https://x/v.mp4", type="video"))


class BrokenStore:
    async def put(self, artifact):
        raise OSError("disk full")

    async def list(self):
        return ["existing"]


@pytest.mark.asyncio
async def test_save_swallows_persistence_errors(fake_client):
    orchestrator = GenerationOrchestrator(client=fake_client, store=BrokenStore())

    listing = await orchestrator.save(Artifact(url="data:image/png;base64,AA==", type="image"))

    assert listing == ["existing"]


@pytest.mark.asyncio
async def test_preview_uses_preview_model(fake_client, sleeps):
    orchestrator = GenerationOrchestrator(client=fake_client, sleep=sleeps)

    artifact = await orchestrator.preview(GenerationRequest(prompt="a quiet lake", model="imagen-4.0-generate-001", seed=11))

    assert artifact is not None
    assert artifact.model == Config.GEMINI_PREVIEW_MODEL
    assert fake_client.calls[0]["model"] == Config.GEMINI_PREVIEW_MODEL
    assert sleeps.recorded == [Config.PREVIEW_DEBOUNCE_SECONDS]


@pytest.mark.asyncio
async def test_newer_preview_supersedes_older(fake_client, sleeps):
    orchestrator = GenerationOrchestrator(client=fake_client, sleep=sleeps)

    first = asyncio.ensure_future(orchestrator.preview(GenerationRequest(prompt="first idea", seed=1)))
    await asyncio.sleep(0)
    second = await orchestrator.preview(GenerationRequest(prompt="second idea", seed=2))

    assert await first is None
    assert second is not None
    assert second.prompt == "second idea"
    assert [c["seed"] for c in fake_client.calls] == [2]


@pytest.mark.asyncio
async def test_cancelled_preview_caller_is_not_swallowed(fake_client):
    debounce_started = asyncio.Event()

    async def stall(seconds):
        debounce_started.set()
        await asyncio.Event().wait()

    orchestrator = GenerationOrchestrator(client=fake_client, sleep=stall)
    caller = asyncio.ensure_future(orchestrator.preview(GenerationRequest(prompt="a slow harbor", seed=5)))
    await debounce_started.wait()

    caller.cancel()

    with pytest.raises(asyncio.CancelledError):
        await caller
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_preview_skips_short_prompts_and_video(fake_client, sleeps):
    orchestrator = GenerationOrchestrator(client=fake_client, sleep=sleeps)

    assert await orchestrator.preview(GenerationRequest(prompt="ab")) is None
    assert await orchestrator.preview(GenerationRequest(mode="video", prompt="a long prompt")) is None
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_preview_failure_returns_none(fake_client, sleeps):
    fake_client.reply = lambda call: text_response("I can't create that")
    orchestrator = GenerationOrchestrator(client=fake_client, sleep=sleeps)

    assert await orchestrator.preview(GenerationRequest(prompt="something odd", seed=4)) is None


@pytest.mark.asyncio
async def test_refusal_propagates_from_batch(fake_client):
    fake_client.reply = lambda call: text_response("I can't create that")
    orchestrator = GenerationOrchestrator(client=fake_client)

    with pytest.raises(RefusalError) as exc_info:
        await orchestrator.generate_batch(GenerationRequest(prompt="something odd", seed=4))
    assert exc_info.value.refusal_text == "I can't create that"
