"""Storage abstraction layer for local and cloud drive storage."""

from typing import Optional

from podcast_media.core.config import settings
from podcast_media.schemas.media import StorageConfig
from .protocol import StorageBackend, MediaStream
from .local import LocalStorageBackend
from .drive import GoogleDriveStorageBackend
from .resolver import BackendResolver


def build_drive_backend(config: StorageConfig) -> GoogleDriveStorageBackend:
    """Factory for the Drive backend using the configured API endpoints."""
    return GoogleDriveStorageBackend(
        config,
        api_base_url=settings.DRIVE_API_BASE_URL,
        upload_base_url=settings.DRIVE_UPLOAD_BASE_URL,
        timeout=settings.DRIVE_REQUEST_TIMEOUT_SECONDS,
    )


_resolver: Optional[BackendResolver] = None


def get_backend_resolver() -> BackendResolver:
    """Get or create the process-wide backend resolver."""
    global _resolver
    if _resolver is None:
        from podcast_media.db.metadata_store import get_metadata_store
        _resolver = BackendResolver(
            metadata_store=get_metadata_store(),
            local_backend=LocalStorageBackend(settings.STORAGE_PATH),
            drive_factory=build_drive_backend,
            refresh_interval=settings.STORAGE_CONFIG_REFRESH_SECONDS,
        )
    return _resolver


__all__ = [
    "BackendResolver",
    "GoogleDriveStorageBackend",
    "LocalStorageBackend",
    "MediaStream",
    "StorageBackend",
    "build_drive_backend",
    "get_backend_resolver",
]
