"""
Admin endpoints for the cloud drive storage configuration.

Only one configuration is active at a time. Any change here clears the
orchestrator's backend cache so the next request sees it immediately.
Service-account keys are never returned; responses carry
``has_service_account_key`` instead.
"""

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Response, status

from podcast_media.api.dependencies import (
    CallerContext,
    get_drive_factory,
    get_orchestrator,
    get_store,
    require_admin,
)
from podcast_media.core.errors import (
    ErrorCode,
    StorageObjectNotFound,
    StorageUnavailable,
    bad_request_error,
    not_found_error,
)
from podcast_media.core.logging_config import get_logger
from podcast_media.db.metadata_store import SqlMetadataStore
from podcast_media.schemas.media import (
    StorageConfig,
    StorageConfigCreate,
    StorageConfigTest,
    StorageConfigUpdate,
)
from podcast_media.services.media_orchestrator import MediaOrchestrator
from podcast_media.storage.resolver import BackendFactory


logger = get_logger(__name__)
router = APIRouter(prefix="/api/admin/storage-config", tags=["admin"])


def masked(config: StorageConfig) -> dict:
    data = config.model_dump(mode="json", exclude={"service_account_key"})
    data["has_service_account_key"] = bool(config.service_account_key)
    return data


def _config_not_found(config_id: str):
    return not_found_error(
        ErrorCode.CONFIG_NOT_FOUND,
        "Storage configuration not found",
        {"config_id": config_id},
    )


async def _verify(config: StorageConfig, drive_factory: BackendFactory) -> dict:
    """Reach both configured folders with the given credentials."""
    try:
        backend = drive_factory(config)
        folders = await backend.verify_folders()
    except StorageObjectNotFound as exc:
        logger.warning("storage_config_test_folder_missing", folder_id=exc.location_key)
        raise bad_request_error(
            ErrorCode.CONFIG_TEST_FAILED,
            "Folder not found. Check the folder IDs.",
            {"folder_id": exc.location_key},
        )
    except StorageUnavailable as exc:
        logger.warning("storage_config_test_failed", error=str(exc))
        raise bad_request_error(
            ErrorCode.CONFIG_TEST_FAILED,
            "Could not connect to Google Drive. Make sure the service account can access both folders.",
            {"reason": str(exc)},
        )

    return {
        "success": True,
        "message": f'Connection OK. Folders found: "{folders["images"]}" and "{folders["audio"]}"',
        "folders": folders,
    }


@router.get("")
async def list_storage_configs(
    admin: CallerContext = Depends(require_admin),
    store: SqlMetadataStore = Depends(get_store),
) -> List[dict]:
    return [masked(config) for config in await store.list_storage_configs()]


@router.get("/active")
async def get_active_storage_config(
    admin: CallerContext = Depends(require_admin),
    store: SqlMetadataStore = Depends(get_store),
) -> dict:
    config = await store.get_active_storage_config()
    if config is None:
        raise not_found_error(ErrorCode.CONFIG_NOT_FOUND, "No active storage configuration found")
    return masked(config)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_storage_config(
    payload: StorageConfigCreate,
    admin: CallerContext = Depends(require_admin),
    store: SqlMetadataStore = Depends(get_store),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
) -> dict:
    config = await store.create_storage_config(**payload.model_dump())
    orchestrator.clear_cache()
    logger.info("admin_storage_config_created", config_id=config.id, user_id=admin.user_id)
    return masked(config)


@router.patch("/{config_id}")
async def update_storage_config(
    config_id: str,
    payload: StorageConfigUpdate,
    admin: CallerContext = Depends(require_admin),
    store: SqlMetadataStore = Depends(get_store),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Partial update; blank strings leave fields untouched."""
    existing = await store.get_storage_config(config_id)
    if existing is None:
        raise _config_not_found(config_id)

    changes = payload.changes()
    if changes.get("is_active") is False and existing.is_active:
        active = [c for c in await store.list_storage_configs() if c.is_active]
        if len(active) == 1:
            raise bad_request_error(
                ErrorCode.CONFIG_SOLE_ACTIVE,
                "Cannot deactivate the only active storage configuration",
            )

    if not changes:
        return masked(existing)

    config = await store.update_storage_config(config_id, **changes)
    if config is None:
        raise _config_not_found(config_id)
    orchestrator.clear_cache()

    logger.info(
        "admin_storage_config_updated",
        config_id=config_id,
        user_id=admin.user_id,
        fields=sorted(changes),
    )
    return masked(config)


@router.patch("/{config_id}/activate")
async def activate_storage_config(
    config_id: str,
    admin: CallerContext = Depends(require_admin),
    store: SqlMetadataStore = Depends(get_store),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
) -> dict:
    config = await store.activate_storage_config(config_id)
    if config is None:
        raise _config_not_found(config_id)
    orchestrator.clear_cache()
    logger.info("admin_storage_config_activated", config_id=config_id, user_id=admin.user_id)
    return masked(config)


@router.delete("/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_storage_config(
    config_id: str,
    admin: CallerContext = Depends(require_admin),
    store: SqlMetadataStore = Depends(get_store),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    if not await store.delete_storage_config(config_id):
        raise _config_not_found(config_id)
    orchestrator.clear_cache()
    logger.info("admin_storage_config_deleted", config_id=config_id, user_id=admin.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/test")
async def test_storage_config(
    payload: StorageConfigTest,
    admin: CallerContext = Depends(require_admin),
    drive_factory: BackendFactory = Depends(get_drive_factory),
) -> dict:
    """Check unsaved credentials against both folders."""
    now = datetime.now(timezone.utc)
    candidate = StorageConfig(
        id="unsaved",
        is_active=False,
        created_at=now,
        updated_at=now,
        **payload.model_dump(),
    )
    return await _verify(candidate, drive_factory)


@router.post("/test-saved")
async def test_saved_storage_config(
    admin: CallerContext = Depends(require_admin),
    store: SqlMetadataStore = Depends(get_store),
    drive_factory: BackendFactory = Depends(get_drive_factory),
) -> dict:
    """Check the active saved configuration against both folders."""
    config = await store.get_active_storage_config()
    if config is None:
        raise not_found_error(ErrorCode.CONFIG_NOT_FOUND, "No active storage configuration found")
    logger.info(
        "admin_storage_config_test_saved",
        config_id=config.id,
        service_account=config.service_account_email,
    )
    return await _verify(config, drive_factory)
