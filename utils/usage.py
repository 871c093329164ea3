"""Usage tracking utilities."""
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from config import Config
from common.exceptions import UsageLimitError
from database import db, InMemoryStore
from utils.logger import get_logger

logger = get_logger("usage")

USAGE_COLLECTION = "usage"
USAGE_DOC_ID = "daily"


def _utc_today_iso() -> str:
    """Return today's date in ISO format (UTC)."""
    return datetime.now(timezone.utc).date().isoformat()


def _current(store: InMemoryStore, today: str) -> Dict[str, Any]:
    """
    Usage doc for today. Fields:
      - daily_limit (int)
      - usage_today_date (ISO date str)
      - usage_today_count (int), reset when the date changed
    """
    doc = store.find_one(USAGE_COLLECTION, {"id": USAGE_DOC_ID}) or {"id": USAGE_DOC_ID}
    doc.setdefault("daily_limit", Config.DEFAULT_DAILY_LIMIT)
    if doc.get("usage_today_date") != today:
        doc["usage_today_date"] = today
        doc["usage_today_count"] = 0
    return doc


def get_usage(store: InMemoryStore = db, today: Optional[str] = None) -> Dict[str, int]:
    """
    Returns computed usage, e.g.
    { "generations_today": 3, "daily_limit": 50, "remaining": 47 }
    """
    doc = _current(store, today or _utc_today_iso())
    used = int(doc.get("usage_today_count", 0))
    limit = int(doc.get("daily_limit", Config.DEFAULT_DAILY_LIMIT))
    return {
        "generations_today": used,
        "daily_limit": limit,
        "remaining": max(limit - used, 0),
    }


def ensure_within_limit(delta: int = 1, store: InMemoryStore = db, today: Optional[str] = None) -> None:
    """Raise UsageLimitError if delta more generations would exceed today's limit."""
    usage = get_usage(store, today)
    if usage["generations_today"] + delta > usage["daily_limit"]:
        logger.warning(f"Daily limit reached: {usage['generations_today']}/{usage['daily_limit']}")
        raise UsageLimitError()


def increment_usage(delta: int = 1, store: InMemoryStore = db, today: Optional[str] = None) -> Dict[str, int]:
    """
    Count delta successful generations.

    Never raises: the work already happened, so the count may pass the limit when
    concurrent requests cleared ensure_within_limit together.
    """
    today = today or _utc_today_iso()
    with store.transaction():
        doc = _current(store, today)
        current = int(doc.get("usage_today_count", 0))
        limit = int(doc.get("daily_limit", Config.DEFAULT_DAILY_LIMIT))
        if current + delta > limit:
            logger.warning(f"Daily limit overrun by concurrent requests: {current + delta}/{limit}")
        doc["usage_today_count"] = current + delta
        store.upsert_one(USAGE_COLLECTION, doc)
    store.dump_to_files(USAGE_COLLECTION)
    logger.debug(f"Usage incremented: {doc['usage_today_count']}/{limit}")
    return get_usage(store, today)


def set_daily_limit(limit: int, store: InMemoryStore = db) -> Dict[str, int]:
    if limit < 0:
        raise ValueError("daily limit must not be negative")
    with store.transaction():
        doc = _current(store, _utc_today_iso())
        doc["daily_limit"] = limit
        store.upsert_one(USAGE_COLLECTION, doc)
    store.dump_to_files(USAGE_COLLECTION)
    return get_usage(store)
