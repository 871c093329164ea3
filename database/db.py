"""In-memory document store with secondary indexes and JSON persistence."""
import os
import json
import bisect
import tempfile
from contextlib import contextmanager
from threading import RLock
from typing import Dict, Any, Optional, List, Tuple, Iterator

from config import Config
from utils.logger import get_logger

logger = get_logger("database")


class InMemoryStore:
    """A small thread-safe document store with Mongo-like semantics.

    - Collections: arbitrary string keys (e.g. 'gallery', 'prompt_history')
    - Each collection is a dict of id -> document; documents must carry an 'id'
    - Secondary indexes keep (value, id) pairs sorted ascending for one field,
      so oldest-first / newest-first scans never sort the whole collection
    - transaction() holds the store lock across a compound read-then-write
    - Optional JSON persistence: one <collection>.json file per collection
    """

    def __init__(self, persist: bool = Config.PERSIST, db_folder: str = Config.DB_DIR):
        self.persist = persist
        self.db_folder = db_folder
        self._lock = RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._indexes: Dict[str, Dict[str, List[Tuple[Any, str]]]] = {}

    def _ensure_collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            if name not in self._collections:
                self._collections[name] = {}
                self._indexes.setdefault(name, {})
            return self._collections[name]

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        """Serialize a sequence of operations against other writers."""
        with self._lock:
            yield self

    # ---------- indexes ----------
    def create_index(self, collection: str, field: str) -> None:
        """Create (or rebuild) an ascending index on a top-level field."""
        with self._lock:
            docs = self._ensure_collection(collection)
            entries = sorted((doc.get(field), doc_id) for doc_id, doc in docs.items())
            self._indexes[collection][field] = entries

    def _index_remove(self, collection: str, doc: Dict[str, Any]) -> None:
        for field, entries in self._indexes.get(collection, {}).items():
            key = (doc.get(field), doc["id"])
            pos = bisect.bisect_left(entries, key)
            if pos < len(entries) and entries[pos] == key:
                entries.pop(pos)

    def _index_add(self, collection: str, doc: Dict[str, Any]) -> None:
        for field, entries in self._indexes.get(collection, {}).items():
            bisect.insort(entries, (doc.get(field), doc["id"]))

    # ---------- CRUD ----------
    def upsert_one(self, collection: str, document: Dict[str, Any]) -> bool:
        """Insert or replace a document by id. Returns True when an existing document was replaced."""
        if "id" not in document:
            raise ValueError("document must contain an 'id' field")
        with self._lock:
            docs = self._ensure_collection(collection)
            doc = dict(document)
            previous = docs.get(doc["id"])
            if previous is not None:
                self._index_remove(collection, previous)
            docs[doc["id"]] = doc
            self._index_add(collection, doc)
            return previous is not None

    def find(self, collection: str, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Find documents matching a simple top-level equality filter."""
        with self._lock:
            docs = self._ensure_collection(collection)
            results = []
            for doc in docs.values():
                if filter and any(doc.get(k) != v for k, v in filter.items()):
                    continue
                results.append(dict(doc))
            return results

    def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Find a single document matching the filter."""
        if set(filter) == {"id"}:
            with self._lock:
                doc = self._ensure_collection(collection).get(filter["id"])
                return dict(doc) if doc is not None else None
        res = self.find(collection, filter)
        return res[0] if res else None

    def find_sorted(self, collection: str, field: str, descending: bool = False,
                    limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return documents ordered by an indexed field."""
        with self._lock:
            docs = self._ensure_collection(collection)
            if field not in self._indexes[collection]:
                raise KeyError(f"no index on {collection}.{field}")
            entries = self._indexes[collection][field]
            ordered = reversed(entries) if descending else iter(entries)
            results = []
            for _, doc_id in ordered:
                if limit is not None and len(results) >= limit:
                    break
                results.append(dict(docs[doc_id]))
            return results

    def oldest(self, collection: str, field: str) -> Optional[Dict[str, Any]]:
        """Document with the smallest value of an indexed field."""
        found = self.find_sorted(collection, field, limit=1)
        return found[0] if found else None

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._ensure_collection(collection))

    def delete_one(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Delete a document by id. Returns the removed document, or None if it was absent."""
        with self._lock:
            docs = self._ensure_collection(collection)
            removed = docs.pop(doc_id, None)
            if removed is not None:
                self._index_remove(collection, removed)
            return removed

    def clear(self, collection: str) -> None:
        with self._lock:
            self._ensure_collection(collection).clear()
            for field in self._indexes[collection]:
                self._indexes[collection][field] = []

    # ---------- persistence ----------
    def dump_to_files(self, collection: Optional[str] = None) -> None:
        """Write collections to <db_folder>/<collection>.json. Failures are logged, not raised."""
        if not self.persist:
            return

        try:
            os.makedirs(self.db_folder, exist_ok=True)
        except OSError as e:
            logger.warning(f"Failed to create database directory: {e}")
            return

        with self._lock:
            names = [collection] if collection else list(self._collections)
            snapshot = {name: list(self._ensure_collection(name).values()) for name in names}

        for coll_name, docs in snapshot.items():
            path = os.path.join(self.db_folder, f"{coll_name}.json")
            tmp_path = None
            try:
                # One temp file per writer; concurrent dumps of a collection never share it
                with tempfile.NamedTemporaryFile(
                    "w", encoding="utf-8", dir=self.db_folder, prefix=f"{coll_name}.", suffix=".tmp", delete=False
                ) as f:
                    tmp_path = f.name
                    json.dump({coll_name: docs}, f, default=str)
                os.replace(tmp_path, path)
                tmp_path = None
                logger.debug(f"Persisted {len(docs)} documents to {coll_name}.json")
            except (IOError, OSError) as e:
                logger.warning(f"Failed to write collection {coll_name} to {path}: {e}")
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to serialize collection {coll_name}: {e}")
            finally:
                if tmp_path is not None and os.path.exists(tmp_path):
                    os.remove(tmp_path)

    def load_from_files(self) -> None:
        """Load every <collection>.json found in db_folder, skipping ids already in memory."""
        if not self.persist:
            return

        try:
            file_list = os.listdir(self.db_folder)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Failed to list database directory: {e}")
            return

        for fname in file_list:
            if not fname.endswith(".json"):
                continue
            full = os.path.join(self.db_folder, fname)
            try:
                with open(full, "r", encoding="utf-8") as f:
                    payload = json.load(f)
            except (IOError, OSError) as e:
                logger.warning(f"Failed to read file {full}: {e}")
                continue
            except json.JSONDecodeError as e:
                logger.warning(f"Failed to parse JSON from {full}: {e}")
                continue

            if not isinstance(payload, dict):
                logger.warning(f"Invalid JSON structure in {fname}: expected dictionary")
                continue

            for coll_name, docs in payload.items():
                if not isinstance(docs, list):
                    logger.warning(f"Invalid data format in {fname}: expected list of documents")
                    continue
                loaded_count = 0
                for d in docs:
                    if not isinstance(d, dict) or "id" not in d:
                        continue
                    if self.find_one(coll_name, {"id": d["id"]}) is not None:
                        continue
                    self.upsert_one(coll_name, d)
                    loaded_count += 1
                logger.info(f"Loaded {loaded_count} documents from {fname}")


db = InMemoryStore()
if db.persist:
    db.load_from_files()
