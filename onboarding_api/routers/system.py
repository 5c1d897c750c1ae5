"""
System health router.

Wired to:
- StorageBackend for database reachability and record counts
- Settings for configuration
"""

import time

from fastapi import APIRouter

from onboarding_api import __version__
from onboarding_api.config import get_settings
from onboarding_api.storage import StorageError, get_storage
from onboarding_api.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

# Track startup time for uptime calculation
_startup_time = time.time()


@router.get("/health")
async def system_health():
    """
    Get system health status.
    Checks database connectivity and reports record counts.
    """
    settings = get_settings()
    uptime = time.time() - _startup_time

    database: dict = {"status": "healthy"}
    try:
        database = get_storage().health_check()
    except StorageError as e:
        logger.warning("system_health_storage_unavailable", error=str(e))
        database = {"status": f"unhealthy: {e}"}

    healthy = database.get("status") == "healthy"
    return {
        "success": True,
        "message": "System health retrieved successfully",
        "data": {
            "status": "healthy" if healthy else "degraded",
            "version": __version__,
            "uptime_seconds": round(uptime, 1),
            "database": database,
            "weekly_grid_weeks": settings.weekly_grid_weeks,
            "default_period": settings.default_period,
        },
    }
