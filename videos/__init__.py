"""Video generation module."""
from videos.services import generate_video, wait_for_job, fetch_video

__all__ = [
    "generate_video",
    "wait_for_job",
    "fetch_video"
]
