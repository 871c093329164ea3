"""Tests for the document store's JSON persistence."""
import os
from concurrent.futures import ThreadPoolExecutor

from database import InMemoryStore


def test_concurrent_dumps_leave_one_valid_file(tmp_path):
    store = InMemoryStore(persist=True, db_folder=str(tmp_path))
    for n in range(200):
        store.upsert_one("prompt_history", {"id": str(n), "text": "x" * 100})

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: store.dump_to_files("prompt_history"), range(32)))

    assert os.listdir(tmp_path) == ["prompt_history.json"]
    restored = InMemoryStore(persist=True, db_folder=str(tmp_path))
    restored.load_from_files()
    assert restored.count("prompt_history") == 200
