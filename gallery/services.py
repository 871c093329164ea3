"""Gallery services - the bounded, time-ordered archive of saved artifacts."""
import asyncio
from typing import List, Optional

from config import Config
from common.models import Artifact, ArchiveRecord
from database import db, InMemoryStore
from gallery.fetcher import MediaFetcher
from utils.logger import get_logger

logger = get_logger("gallery.services")

GALLERY_COLLECTION = "gallery"
ORDER_FIELD = "timestamp"


class ArtifactStore:
    """
    Durable FIFO archive keyed by artifact id.

    Records are ordered by creation timestamp through a secondary index. After every
    insert the oldest records are evicted one at a time until the count is back at
    capacity. Re-saving an existing id replaces it in place and never evicts.
    """

    def __init__(
        self,
        store: InMemoryStore = db,
        fetcher: Optional[MediaFetcher] = None,
        capacity: int = Config.GALLERY_CAPACITY,
        collection: str = GALLERY_COLLECTION,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._db = store
        self._fetcher = fetcher or MediaFetcher()
        self.capacity = capacity
        self.collection = collection
        self._db.create_index(collection, ORDER_FIELD)

    def _listing(self) -> List[ArchiveRecord]:
        docs = self._db.find_sorted(self.collection, ORDER_FIELD, descending=True)
        return [ArchiveRecord(**doc) for doc in docs]

    async def list(self) -> List[ArchiveRecord]:
        """All records, newest first."""
        return self._listing()

    async def get(self, artifact_id: str) -> Optional[ArchiveRecord]:
        doc = self._db.find_one(self.collection, {"id": artifact_id})
        return ArchiveRecord(**doc) if doc else None

    async def to_record(self, artifact: Artifact) -> ArchiveRecord:
        """Normalize the media locator. Always yields a record, falling back to the original URL."""
        media = await self._fetcher.normalize(artifact.url)
        data = artifact.model_dump(exclude={"url", "normalized"})
        return ArchiveRecord(**data, url=media.url, normalized=media.normalized)

    def upsert(self, record: ArchiveRecord) -> int:
        """Write one record and evict overflow. Returns the number of records evicted."""
        with self._db.transaction():
            replaced = self._db.upsert_one(self.collection, record.model_dump())
            return 0 if replaced else self._evict_overflow()

    async def persist(self) -> None:
        """Write the collection to disk on a worker thread."""
        await asyncio.to_thread(self._db.dump_to_files, self.collection)

    def _evict_overflow(self) -> int:
        evicted = 0
        while self._db.count(self.collection) > self.capacity:
            oldest = self._db.oldest(self.collection, ORDER_FIELD)
            self._db.delete_one(self.collection, oldest["id"])
            evicted += 1
            logger.info(f"Evicted gallery record {oldest['id']} (timestamp {oldest[ORDER_FIELD]})")
        return evicted

    async def put(self, artifact: Artifact) -> List[ArchiveRecord]:
        """Normalize, upsert, evict down to capacity; returns the updated newest-first listing."""
        record = await self.to_record(artifact)
        if not record.normalized:
            logger.warning(f"Saving artifact {artifact.id} with its original locator")
        evicted = self.upsert(record)
        await self.persist()
        logger.info(f"Saved artifact {record.id} to gallery ({evicted} evicted)")
        return self._listing()

    async def remove(self, artifact_id: str) -> List[ArchiveRecord]:
        """Delete by id if present. Deleting a missing id is a no-op."""
        with self._db.transaction():
            removed = self._db.delete_one(self.collection, artifact_id)
        if removed is not None:
            await self.persist()
            logger.info(f"Removed artifact {artifact_id} from gallery")
        return self._listing()


_artifact_store: Optional[ArtifactStore] = None


def get_artifact_store() -> ArtifactStore:
    """Process-wide store bound to the shared database."""
    global _artifact_store
    if _artifact_store is None:
        _artifact_store = ArtifactStore()
    return _artifact_store
