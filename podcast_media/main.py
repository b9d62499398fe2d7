"""Main FastAPI application for the podcast media storage service."""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from podcast_media.core.config import settings
from podcast_media.core.logging_config import setup_logging, get_logger
from podcast_media.db.session import init_schema
from podcast_media.api.v1 import admin_storage, health, media, metrics, uploads
from podcast_media.api.middleware import RequestLoggingMiddleware, PerformanceLoggingMiddleware, PrometheusMiddleware
from podcast_media.api.exception_handlers import (
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)


# Before any module-level logger is used
setup_logging(debug=settings.is_debug_mode, json_logs=settings.use_json_logs)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the metadata schema and the local storage root on startup."""
    logger.info(
        "application_startup",
        service=settings.SERVICE_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        debug_mode=settings.is_debug_mode,
        log_level=settings.LOG_LEVEL,
    )

    await init_schema()
    logger.info("database_initialized", database_url=settings.DATABASE_URL.split("://", 1)[0])

    Path(settings.STORAGE_PATH).mkdir(parents=True, exist_ok=True)
    logger.info(
        "local_storage_ready",
        storage_path=settings.STORAGE_PATH,
        config_refresh_seconds=settings.STORAGE_CONFIG_REFRESH_SECONDS,
    )

    yield

    logger.info("application_shutdown", graceful=True)


app = FastAPI(
    title=settings.SERVICE_NAME,
    description="Podcast media storage: uploads, streaming and storage backend administration",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Last added runs first
app.add_middleware(PrometheusMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PerformanceLoggingMiddleware, slow_request_threshold_ms=1000.0)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for router in (
    uploads.router,
    media.public_router,
    media.router,
    admin_storage.router,
    health.router,
    metrics.router,
):
    app.include_router(router)


@app.get("/")
async def root():
    """Service metadata and useful links."""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.VERSION,
        "documentation": "/docs",
        "health_check": "/api/v1/health",
        "storage_status": "/api/v1/health/storage",
    }
