"""
Health check endpoint.
"""
from fastapi import APIRouter

from ewrouter.core.config import get_settings
from ewrouter.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Status plus the locations of the pattern cache and session history
    """
    settings = get_settings()
    return {
        "status": "ok",
        "message": "API is running",
        "pattern_cache_path": str(settings.pattern_cache_path),
        "session_history_path": str(settings.session_history_path),
        "progressive_classification": settings.progressive_classification,
    }
