"""Prompt history and template services."""
from typing import List, Dict, Any

from config import Config
from common.exceptions import PreconditionError
from common.error_messages import ErrorCode
from common.models import monotonic_timestamp, new_artifact_id
from database import db, InMemoryStore
from utils.logger import get_logger

logger = get_logger("prompts")

HISTORY_COLLECTION = "prompt_history"
TEMPLATES_COLLECTION = "prompt_templates"
SETTINGS_COLLECTION = "settings"
TEMPLATES_SEEDED_ID = "templates_seeded"

DEFAULT_TEMPLATES = [
    {
        "id": "default-cinematic-portrait",
        "name": "Cinematic Portrait",
        "content": "A cinematic portrait of [character], detailed facial features, dramatic lighting, "
                   "[color] color palette, 8k resolution, photorealistic",
    },
    {
        "id": "default-isometric-3d",
        "name": "Isometric 3D",
        "content": "Low poly isometric view of a [object/location], soft lighting, pastel colors, "
                   "3d render, blender, minimal design",
    },
    {
        "id": "default-cyberpunk-city",
        "name": "Cyberpunk City",
        "content": "Futuristic cyberpunk city street at night, neon lights, rain reflections, "
                   "[activity] in the foreground, towering skyscrapers, dystopian atmosphere",
    },
    {
        "id": "default-fantasy-landscape",
        "name": "Fantasy Landscape",
        "content": "Epic fantasy landscape featuring a [landmark], magical atmosphere, floating islands, "
                   "vibrant [color] sky, intricate details, matte painting",
    },
]


def _ensure_indexes(store: InMemoryStore) -> None:
    store.create_index(HISTORY_COLLECTION, "timestamp")
    store.create_index(TEMPLATES_COLLECTION, "timestamp")


def get_history(store: InMemoryStore = db) -> List[str]:
    """Prompt history, most recent first."""
    _ensure_indexes(store)
    return [d["text"] for d in store.find_sorted(HISTORY_COLLECTION, "timestamp", descending=True)]


def save_prompt(text: str, store: InMemoryStore = db, limit: int = Config.PROMPT_HISTORY_LIMIT) -> List[str]:
    """
    Push a prompt to the front of the history.
    Blank prompts are ignored, an exact duplicate moves to the front, the list is capped at limit.
    """
    if not text or not text.strip():
        return get_history(store)

    _ensure_indexes(store)
    with store.transaction():
        for dup in store.find(HISTORY_COLLECTION, {"text": text}):
            store.delete_one(HISTORY_COLLECTION, dup["id"])
        store.upsert_one(HISTORY_COLLECTION, {"id": new_artifact_id(), "text": text, "timestamp": monotonic_timestamp()})
        while store.count(HISTORY_COLLECTION) > limit:
            oldest = store.oldest(HISTORY_COLLECTION, "timestamp")
            store.delete_one(HISTORY_COLLECTION, oldest["id"])
    store.dump_to_files(HISTORY_COLLECTION)
    return get_history(store)


def clear_history(store: InMemoryStore = db) -> List[str]:
    store.clear(HISTORY_COLLECTION)
    store.dump_to_files(HISTORY_COLLECTION)
    logger.info("Prompt history cleared")
    return []


def _seed_default_templates(store: InMemoryStore) -> None:
    """Built-in templates are written once; deleting them later is permanent."""
    with store.transaction():
        if store.find_one(SETTINGS_COLLECTION, {"id": TEMPLATES_SEEDED_ID}):
            return
        # Oldest-first insert so the first default lists first
        for template in reversed(DEFAULT_TEMPLATES):
            store.upsert_one(TEMPLATES_COLLECTION, {**template, "timestamp": monotonic_timestamp()})
        store.upsert_one(SETTINGS_COLLECTION, {"id": TEMPLATES_SEEDED_ID, "value": True})
    store.dump_to_files(TEMPLATES_COLLECTION)
    store.dump_to_files(SETTINGS_COLLECTION)
    logger.info(f"Seeded {len(DEFAULT_TEMPLATES)} default prompt templates")


def list_templates(store: InMemoryStore = db) -> List[Dict[str, Any]]:
    """Templates, newest first. Defaults are seeded on first read."""
    _ensure_indexes(store)
    _seed_default_templates(store)
    return store.find_sorted(TEMPLATES_COLLECTION, "timestamp", descending=True)


def save_template(name: str, content: str, store: InMemoryStore = db) -> List[Dict[str, Any]]:
    if not name or not name.strip() or not content or not content.strip():
        raise PreconditionError("Template name and content are required.", code=ErrorCode.INVALID_PARAMETER)
    _ensure_indexes(store)
    _seed_default_templates(store)
    template = {
        "id": new_artifact_id(),
        "name": name.strip(),
        "content": content,
        "timestamp": monotonic_timestamp(),
    }
    store.upsert_one(TEMPLATES_COLLECTION, template)
    store.dump_to_files(TEMPLATES_COLLECTION)
    logger.info(f"Saved prompt template {template['id']} ({template['name']})")
    return list_templates(store)


def delete_template(template_id: str, store: InMemoryStore = db) -> List[Dict[str, Any]]:
    _ensure_indexes(store)
    removed = store.delete_one(TEMPLATES_COLLECTION, template_id)
    if removed is None:
        raise PreconditionError("Template not found.", code=ErrorCode.TEMPLATE_NOT_FOUND)
    store.dump_to_files(TEMPLATES_COLLECTION)
    return list_templates(store)
