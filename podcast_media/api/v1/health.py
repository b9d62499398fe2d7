"""Health and monitoring API endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from podcast_media.api.dependencies import get_orchestrator, get_store
from podcast_media.core.config import settings
from podcast_media.core.errors import MediaError
from podcast_media.core.logging_config import get_logger
from podcast_media.db.metadata_store import SqlMetadataStore
from podcast_media.services.media_orchestrator import MediaOrchestrator


logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("")
async def health_check():
    """Basic liveness check for load balancers."""
    return {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "version": settings.VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/storage")
async def storage_health(
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
    store: SqlMetadataStore = Depends(get_store),
):
    """Which backend new uploads go to right now.

    Resolves the backend the same way an upload would, so a broken active
    configuration shows up here as 503.
    """
    try:
        backend = await orchestrator.resolver.current()
        config = await store.get_active_storage_config()
    except (MediaError, SQLAlchemyError) as e:
        logger.warning(
            "storage_health_check_failed",
            error_type=type(e).__name__,
            error=str(e),
        )
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "error": type(e).__name__,
                "timestamp": datetime.now(timezone.utc).isoformat()
            },
        )

    return {
        "status": "healthy",
        "backend_kind": backend.kind.value,
        "active_config_id": config.id if config else None,
        "refresh_interval_seconds": orchestrator.resolver.refresh_interval,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
