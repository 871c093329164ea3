"""Gallery routes."""
from fastapi import APIRouter, Depends, Path

from common.dependencies import get_orchestrator
from common.models import Artifact
from common.orchestrator import GenerationOrchestrator
from gallery.services import ArtifactStore, get_artifact_store

router = APIRouter(prefix="/api", tags=["gallery"])


@router.get("/gallery")
async def list_gallery(store: ArtifactStore = Depends(get_artifact_store)):
    """Archived artifacts, newest first."""
    return {"items": await store.list()}


@router.post("/gallery")
async def save_to_gallery(artifact: Artifact, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)):
    """
    Archive an artifact. Media is normalized to a data URL when possible; a failed
    normalization still saves the record with its original URL.
    """
    return {"items": await orchestrator.save(artifact)}


@router.delete("/gallery/{artifact_id}")
async def remove_from_gallery(
    artifact_id: str = Path(...),
    store: ArtifactStore = Depends(get_artifact_store)
):
    """Remove an artifact. Removing an unknown id is not an error."""
    return {"items": await store.remove(artifact_id)}
