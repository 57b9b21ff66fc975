"""Health check endpoints for the Search Rebuilder API."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from search_rebuilder.core.config import RebuildConfig
from search_rebuilder.core.errors import ConfigurationError
from search_rebuilder.search import create_search_service
from search_rebuilder.storage import create_storage

logger = logging.getLogger(__name__)

router = APIRouter()


async def _check_storage(config: RebuildConfig) -> str:
    try:
        storage = create_storage(config)
        return "available" if await storage.ping() else "unavailable"
    except Exception as e:
        logger.warning(f"Storage health check failed: {e}")
        return "unavailable"


async def _check_search(config: RebuildConfig) -> str:
    try:
        service = create_search_service(config)
    except ConfigurationError as e:
        logger.warning(f"Search service not configured: {e}")
        return "not_configured"
    try:
        return "available" if await service.ping() else "unavailable"
    except Exception as e:
        logger.warning(f"Search service health check failed: {e}")
        return "unavailable"


@router.get("/health", response_model=None)
async def detailed_health_check():
    """Readiness check for the storage container and the search service."""
    try:
        config = RebuildConfig.from_settings()
    except ConfigurationError as e:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "components": {"configuration": "invalid"},
                "error": str(e),
            },
        )

    components = {
        "configuration": "valid",
        "storage": await _check_storage(config),
        "search_service": await _check_search(config),
    }

    if all(status in ("available", "valid") for status in components.values()):
        status, status_code = "healthy", 200
    else:
        status, status_code = "unhealthy", 503

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": components,
        },
    )
