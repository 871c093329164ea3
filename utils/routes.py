"""Usage routes."""
from fastapi import APIRouter, Body

from utils.usage import get_usage, set_daily_limit

router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/usage")
def usage():
    """
    Today's generation count and limit.
    Example:
    { "generations_today": 0, "daily_limit": 50, "remaining": 50 }
    """
    return get_usage()


@router.put("/usage/limit")
def update_limit(daily_limit: int = Body(..., embed=True, ge=0)):
    """Raise or lower the daily generation limit."""
    return set_daily_limit(daily_limit)
