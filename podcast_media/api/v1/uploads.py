"""
Upload API endpoints for podcast media.

- Router handles HTTP concerns (form fields, status codes, error mapping)
- Dependencies resolve the caller and enforce type/size limits per asset kind
- MediaOrchestrator stores bytes and metadata
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, UploadFile, status

from podcast_media.api.dependencies import (
    CallerContext,
    get_caller,
    get_orchestrator,
    validated_upload,
)
from podcast_media.core.errors import (
    ErrorCode,
    MetadataPersistenceError,
    StorageUnavailable,
    auth_error,
    not_found_error,
    processing_error,
    storage_error,
)
from podcast_media.core.logging_config import get_logger
from podcast_media.schemas.media import AssetKind, MediaAsset
from podcast_media.services.media_orchestrator import MediaOrchestrator


logger = get_logger(__name__)
router = APIRouter(prefix="/api/uploads", tags=["uploads"])

STORE_FAILED_MESSAGE = "Could not store file"


async def _save(save, **kwargs) -> MediaAsset:
    """Run an orchestrator save, hiding backend detail from the client."""
    try:
        return await save(**kwargs)
    except StorageUnavailable:
        raise storage_error(ErrorCode.STORAGE_WRITE_FAILED, STORE_FAILED_MESSAGE)
    except MetadataPersistenceError:
        raise processing_error(ErrorCode.STORAGE_WRITE_FAILED, STORE_FAILED_MESSAGE)


@router.post("/cover", status_code=status.HTTP_201_CREATED, response_model=MediaAsset)
async def upload_cover_art(
    caller: CallerContext = Depends(get_caller),
    file: UploadFile = Depends(validated_upload(AssetKind.COVER_ART)),
    podcast_id: Optional[str] = Form(None),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    """Upload podcast cover art (JPEG, PNG, WebP).

    Raises:
        ServiceError: 400/413/415 on intake validation, 503/500 if the file could not be stored
    """
    logger.info(
        "upload_cover_received",
        filename=file.filename,
        content_type=file.content_type,
        user_id=caller.user_id,
        podcast_id=podcast_id,
    )
    return await _save(
        orchestrator.save_cover_art,
        upload=file,
        owner_id=caller.user_id,
        podcast_id=podcast_id,
    )


@router.post("/audio", status_code=status.HTTP_201_CREATED, response_model=MediaAsset)
async def upload_episode_audio(
    caller: CallerContext = Depends(get_caller),
    file: UploadFile = Depends(validated_upload(AssetKind.EPISODE_AUDIO)),
    podcast_id: Optional[str] = Form(None),
    episode_id: Optional[str] = Form(None),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    """Upload an episode audio file."""
    logger.info(
        "upload_audio_received",
        filename=file.filename,
        content_type=file.content_type,
        user_id=caller.user_id,
        podcast_id=podcast_id,
        episode_id=episode_id,
    )
    return await _save(
        orchestrator.save_episode_audio,
        upload=file,
        owner_id=caller.user_id,
        episode_id=episode_id,
        podcast_id=podcast_id,
    )


@router.post("/audio/{asset_id}/replace", status_code=status.HTTP_201_CREATED, response_model=MediaAsset)
async def replace_episode_audio(
    asset_id: str,
    caller: CallerContext = Depends(get_caller),
    file: UploadFile = Depends(validated_upload(AssetKind.EPISODE_AUDIO)),
    episode_id: Optional[str] = Form(None),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    """Replace an audio asset: the new file gets a new asset id, the old asset is deleted."""
    existing = await orchestrator.get_media_asset(asset_id)
    if existing is None or existing.kind is not AssetKind.EPISODE_AUDIO:
        raise not_found_error(ErrorCode.MEDIA_NOT_FOUND, "Media not found", {"asset_id": asset_id})
    if existing.owner_id != caller.user_id and not caller.is_admin:
        raise auth_error(ErrorCode.AUTH_NOT_OWNER, "Only the owner can replace this file")

    logger.info(
        "upload_audio_replace_received",
        asset_id=asset_id,
        filename=file.filename,
        user_id=caller.user_id,
    )
    return await _save(
        orchestrator.replace_episode_audio,
        old_asset_id=asset_id,
        upload=file,
        owner_id=existing.owner_id,
        episode_id=episode_id,
    )
