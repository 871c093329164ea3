"""
Startup checks: the application imports, registers its routes and creates its directories.
"""
import os

from config import Config


def test_app_imports_and_registers_routes():
    from app import app

    paths = {getattr(route, "path", None) for route in app.routes}
    expected = {
        "/healthz",
        "/api/images/generate",
        "/api/images/variations",
        "/api/images/upscale",
        "/api/images/preview",
        "/api/videos/generate",
        "/api/gallery",
        "/api/gallery/{artifact_id}",
        "/api/prompts/history",
        "/api/prompts/templates",
        "/api/prompts/templates/{template_id}",
        "/api/prompts/enhance",
        "/api/prompts/describe",
        "/api/prompts/extract-style",
        "/api/usage",
        "/api/usage/limit",
    }
    assert expected <= paths


def test_directories_exist():
    assert os.path.isdir(Config.ASSETS_DIR)
    assert os.path.isdir(Config.VIDEOS_DIR)


def test_defaults():
    assert Config.GALLERY_CAPACITY == 50
    assert Config.PROMPT_HISTORY_LIMIT == 20
    assert Config.VIDEO_POLL_INTERVAL_SECONDS == 5.0
    assert Config.MEDIA_FETCH_TIMEOUT_SECONDS is None
    assert Config.PERSIST is False


def test_logger_writes_under_nebula():
    from utils.logger import get_logger

    assert get_logger("startup").name == "nebula.startup"


def test_cleanup_old_logs(tmp_path):
    from utils.logger import cleanup_old_logs

    (tmp_path / "nebula.log.2001-01-01").write_text("old")
    (tmp_path / "nebula.log").write_text("current")

    assert cleanup_old_logs(str(tmp_path), retention_days=10) == 1
    assert (tmp_path / "nebula.log").exists()
