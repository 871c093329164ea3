"""Gallery module."""
from gallery.fetcher import MediaFetcher
from gallery.services import ArtifactStore, get_artifact_store

__all__ = [
    "MediaFetcher",
    "ArtifactStore",
    "get_artifact_store"
]
