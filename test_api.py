"""HTTP surface tests with the backend client and stores swapped for in-process fakes."""
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient

from app import app, mask_sensitive_data
from conftest import FakeGeminiClient, text_response
from common.dependencies import get_client, get_orchestrator
from common.orchestrator import GenerationOrchestrator
from database import db, InMemoryStore
from gallery.fetcher import MediaFetcher
from gallery.services import ArtifactStore, get_artifact_store
from utils.usage import set_daily_limit


async def instant(seconds):
    return None


class ApiClient(FakeGeminiClient):
    """Image fake that also answers text and video calls."""

    async def generate_text(self, contents, model=None, system_instruction=None, temperature=None,
                            max_output_tokens=None):
        return '"A richly detailed prompt"'

    async def generate_video_job(self, prompt, model, aspect_ratio, input_image=None, resolution=None):
        video = SimpleNamespace(video=SimpleNamespace(uri="https://media.example.com/v.mp4?alt=media"))
        return SimpleNamespace(done=True, error=None, response=SimpleNamespace(generated_videos=[video]))


@pytest.fixture
def backend():
    def handler(request):
        return httpx.Response(200, content=b"mp4", headers={"content-type": "video/mp4"})
    return ApiClient(http_transport=httpx.MockTransport(handler))


@pytest.fixture
def client(backend):
    for collection in ("usage", "prompt_history", "prompt_templates", "settings"):
        db.clear(collection)
    set_daily_limit(1000)

    offline = httpx.MockTransport(lambda request: httpx.Response(503))
    gallery = ArtifactStore(store=InMemoryStore(persist=False), fetcher=MediaFetcher(transport=offline))
    orchestrator = GenerationOrchestrator(client=backend, store=gallery, sleep=instant)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_artifact_store] = lambda: gallery
    app.dependency_overrides[get_client] = lambda: backend
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_generate_batch_and_save(client, backend):
    response = client.post("/api/images/generate", json={
        "prompt": "a red fox", "style": "Anime", "seed": 10, "batch_size": 2, "save_to_gallery": True,
    })

    assert response.status_code == 200
    body = response.json()
    assert [a["seed"] for a in body["artifacts"]] == [10, 11]
    assert body["seed"] == 10
    assert all(a["prompt"] == "a red fox" for a in body["artifacts"])
    assert len(body["gallery"]) == 2
    assert [call["seed"] for call in backend.calls] == [10, 11]

    gallery = client.get("/api/gallery").json()["items"]
    assert [item["id"] for item in gallery] == [a["id"] for a in reversed(body["artifacts"])]
    assert client.get("/api/prompts/history").json()["history"] == ["a red fox"]
    assert client.get("/api/usage").json()["generations_today"] == 1


def test_empty_prompt_is_400(client, backend):
    response = client.post("/api/images/generate", json={"prompt": ""})

    assert response.status_code == 400
    assert response.json()["code"] == "MISSING_PROMPT"
    assert backend.calls == []
    assert client.get("/api/usage").json()["generations_today"] == 0


def test_refusal_is_422_with_text(client, backend):
    backend.reply = lambda call: text_response("I can't create that")

    response = client.post("/api/images/generate", json={"prompt": "something"})

    assert response.status_code == 422
    assert response.json()["code"] == "MODEL_REFUSED"
    assert "I can't create that" in response.json()["detail"]


def test_false_success_is_502(client, backend):
    backend.reply = lambda call: text_response("Here is your image!")

    response = client.post("/api/images/generate", json={"prompt": "something"})

    assert response.status_code == 502
    assert response.json()["code"] == "FALSE_SUCCESS"


def test_batch_size_is_validated(client):
    response = client.post("/api/images/generate", json={"prompt": "x", "batch_size": 5})
    assert response.status_code == 422


def test_daily_limit(client, backend):
    set_daily_limit(0)

    response = client.post("/api/images/generate", json={"prompt": "a boat"})

    assert response.status_code == 429
    assert response.json()["code"] == "DAILY_LIMIT_REACHED"
    assert backend.calls == []


def test_variations_and_upscale(client):
    source = client.post("/api/images/generate", json={"prompt": "a tower", "seed": 7}).json()["artifacts"][0]

    variations = client.post("/api/images/variations", json={"source": source})
    assert variations.status_code == 200
    assert [a["seed"] for a in variations.json()["artifacts"]] == [1007, 1008, 1009, 1010]

    upscaled = client.post("/api/images/upscale", json={"artifact": source})
    assert upscaled.status_code == 200
    assert upscaled.json()["artifact"]["id"] != source["id"]
    assert upscaled.json()["artifact"]["prompt"] == "a tower"


def test_variations_without_seed_is_rejected(client):
    source = {"url": "data:image/png;base64,AA==", "type": "image", "prompt": "p", "seed": None}

    response = client.post("/api/images/variations", json={"source": source})

    assert response.status_code == 400
    assert response.json()["code"] == "UNSUPPORTED_OPERATION"


def test_preview(client):
    assert client.post("/api/images/preview", json={"prompt": "ab"}).json() == {"artifact": None}

    response = client.post("/api/images/preview", json={"prompt": "a quiet harbor", "seed": 3})
    assert response.json()["artifact"]["seed"] == 3


def test_video_generation_saves_local_file(client):
    response = client.post("/api/videos/generate", json={"prompt": "ocean waves", "aspect_ratio": "1:1",
                                                         "save_to_gallery": True})

    assert response.status_code == 200
    artifact = response.json()["artifact"]
    assert artifact["type"] == "video"
    assert artifact["seed"] is None
    assert artifact["aspect_ratio"] == "16:9"
    assert artifact["url"].startswith("/assets/generated/videos/")

    # The archived copy is normalized from the local file
    saved = response.json()["gallery"][0]
    assert saved["normalized"] is True
    assert saved["url"].startswith("data:video/mp4;base64,")

    served = client.get(artifact["url"])
    assert served.status_code == 200
    assert served.content == b"mp4"


def test_gallery_save_and_delete(client):
    artifact = {"url": "https://cdn.example.invalid/x.png", "type": "image", "prompt": "p"}

    saved = client.post("/api/gallery", json=artifact).json()["items"]
    assert len(saved) == 1

    assert client.delete("/api/gallery/unknown").json()["items"] == saved
    assert client.delete(f"/api/gallery/{saved[0]['id']}").json()["items"] == []


def test_templates_and_history_routes(client):
    templates = client.get("/api/prompts/templates").json()["templates"]
    assert len(templates) == 4

    created = client.post("/api/prompts/templates", json={"name": "Noir", "content": "noir [subject]"})
    assert created.json()["templates"][0]["name"] == "Noir"

    missing = client.delete("/api/prompts/templates/nope")
    assert missing.status_code == 404

    client.post("/api/prompts/history", json={"text": "one"})
    client.post("/api/prompts/history", json={"text": "two"})
    assert client.get("/api/prompts/history").json()["history"] == ["two", "one"]
    assert client.delete("/api/prompts/history").json()["history"] == []


def test_enhance(client):
    response = client.post("/api/prompts/enhance", json={"prompt": "a fox"})
    assert response.json() == {"prompt": "A richly detailed prompt"}


def test_mask_sensitive_data():
    body = '{"api_key": "secret", "input_image": "data:image/png;base64,QUFBQUFB", "url": "https://x/v?alt=media&key=abc"}'

    masked = mask_sensitive_data(body)

    assert "secret" not in masked
    assert "QUFBQUFB" not in masked
    assert "key=abc" not in masked
    assert "alt=media" in masked


def test_update_daily_limit(client):
    response = client.put("/api/usage/limit", json={"daily_limit": 3})

    assert response.status_code == 200
    assert response.json()["daily_limit"] == 3
    assert client.put("/api/usage/limit", json={"daily_limit": -1}).status_code == 422
