"""FastAPI dependencies shared by the feature routers."""
from typing import Optional

from common.gemini_client import GeminiClient
from common.orchestrator import GenerationOrchestrator
from gallery.services import get_artifact_store

_client: Optional[GeminiClient] = None
_orchestrator: Optional[GenerationOrchestrator] = None


def get_client() -> GeminiClient:
    global _client
    if _client is None:
        _client = GeminiClient()
    return _client


def get_orchestrator() -> GenerationOrchestrator:
    """One orchestrator per process so the preview slot is shared by every request."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = GenerationOrchestrator(client=get_client(), store=get_artifact_store())
    return _orchestrator
