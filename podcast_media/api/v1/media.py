"""Media retrieval, streaming and deletion endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import StreamingResponse

from podcast_media.api.dependencies import CallerContext, get_caller, get_orchestrator
from podcast_media.core.errors import (
    AssetNotFound,
    ErrorCode,
    InvalidLocation,
    StorageObjectNotFound,
    StorageUnavailable,
    auth_error,
    bad_request_error,
    not_found_error,
    storage_error,
)
from podcast_media.core.logging_config import get_logger
from podcast_media.core.metrics import media_stream_errors_total
from podcast_media.schemas.media import AssetKind, MediaAsset
from podcast_media.services.media_orchestrator import MediaOrchestrator
from podcast_media.storage.protocol import MediaStream


logger = get_logger(__name__)

# Public streaming path: /media/{category}/{filename}
public_router = APIRouter(prefix="/media", tags=["media"])
router = APIRouter(prefix="/api/media", tags=["media"])


def _media_not_found(reference: str):
    return not_found_error(ErrorCode.MEDIA_NOT_FOUND, "Media not found", {"reference": reference})


async def guarded_stream(asset: MediaAsset, stream: MediaStream) -> MediaStream:
    """Pass chunks through; a backend error mid-transfer ends the response.

    Headers are already sent once the first chunk goes out, so the only
    thing left to do is stop, log and count it.
    """
    sent = 0
    try:
        async for chunk in stream:
            sent += len(chunk)
            yield chunk
    except Exception as exc:
        media_stream_errors_total.labels(backend=asset.backend_kind.value).inc()
        logger.error(
            "media_stream_interrupted",
            asset_id=asset.id,
            backend_kind=asset.backend_kind.value,
            bytes_sent=sent,
            error_type=type(exc).__name__,
            error=str(exc),
        )
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()


async def _stream_response(orchestrator: MediaOrchestrator, asset_id: str) -> StreamingResponse:
    try:
        asset, stream = await orchestrator.stream_media(asset_id)
    except (AssetNotFound, StorageObjectNotFound, InvalidLocation) as exc:
        logger.warning("media_stream_not_found", asset_id=asset_id, error_type=type(exc).__name__)
        raise _media_not_found(asset_id)
    except StorageUnavailable as exc:
        logger.error("media_stream_unavailable", asset_id=asset_id, error=str(exc))
        raise storage_error(ErrorCode.STORAGE_READ_FAILED, "Media temporarily unavailable")

    return StreamingResponse(guarded_stream(asset, stream), media_type=asset.mime_type)


@public_router.get("/{category}/{filename}")
async def serve_media(
    category: str,
    filename: str,
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    """Stream a stored file by its public path.

    The path is the asset's location key; the content type comes from the
    stored metadata. Missing metadata and missing bytes both answer 404.
    """
    try:
        AssetKind.from_category(category)
    except ValueError:
        raise bad_request_error(
            ErrorCode.MEDIA_INVALID_CATEGORY,
            "Invalid media type",
            {"category": category},
        )

    location_key = f"{category}/{filename}"
    asset = await orchestrator.get_media_asset_by_location_key(location_key)
    if asset is None:
        logger.warning("media_location_not_found", location_key=location_key)
        raise _media_not_found(location_key)

    return await _stream_response(orchestrator, asset.id)


@router.get("", response_model=List[MediaAsset])
async def list_media(
    podcast_id: Optional[str] = Query(None),
    episode_id: Optional[str] = Query(None),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    """Assets linked to a podcast or an episode (episode wins when both are given)."""
    if not podcast_id and not episode_id:
        raise bad_request_error(
            ErrorCode.MEDIA_MISSING_FILTER,
            "podcast_id or episode_id is required",
        )
    return await orchestrator.list_media_assets(podcast_id=podcast_id, episode_id=episode_id)


@router.get("/{asset_id}", response_model=MediaAsset)
async def get_media(asset_id: str, orchestrator: MediaOrchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.retrieve(asset_id)
    except AssetNotFound:
        raise _media_not_found(asset_id)


@router.get("/{asset_id}/stream")
async def stream_media(asset_id: str, orchestrator: MediaOrchestrator = Depends(get_orchestrator)):
    return await _stream_response(orchestrator, asset_id)


@router.delete("/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_media(
    asset_id: str,
    caller: CallerContext = Depends(get_caller),
    orchestrator: MediaOrchestrator = Depends(get_orchestrator),
):
    """Delete an asset's bytes and metadata. Unknown ids answer 204 as well."""
    asset = await orchestrator.get_media_asset(asset_id)
    if asset is not None and asset.owner_id != caller.user_id and not caller.is_admin:
        raise auth_error(ErrorCode.AUTH_NOT_OWNER, "Only the owner can delete this file")

    await orchestrator.delete_media_asset(asset_id)
    logger.info("media_delete_completed", asset_id=asset_id, user_id=caller.user_id, existed=asset is not None)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
