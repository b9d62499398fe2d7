"""
Media Orchestrator - storage coordination for uploaded media

Coordinates three collaborators:
- BackendResolver: which storage backend is active right now
- StorageBackend: where the bytes go
- MetadataStore: the authoritative MediaAsset rows

A save is a two-step write (bytes, then metadata) with a compensating
delete of the bytes when the metadata write fails. Nothing here performs
authorization or intake validation; callers do that first.
"""
from typing import BinaryIO, List, Optional, Protocol, Tuple

from podcast_media.core.errors import AssetNotFound, StorageUnavailable
from podcast_media.core.logging_config import get_logger
from podcast_media.core.metrics import media_compensations_total, media_saves_total
from podcast_media.db.metadata_store import MetadataStore
from podcast_media.schemas.media import AssetKind, MediaAsset, NewMediaAsset, StoredObject
from podcast_media.storage.protocol import MediaStream, StorageBackend
from podcast_media.storage.resolver import BackendResolver

logger = get_logger(__name__)


class MediaUpload(Protocol):
    """What the orchestrator needs from an upload (FastAPI's UploadFile fits)."""
    file: BinaryIO
    filename: Optional[str]
    content_type: Optional[str]


class MediaOrchestrator:
    """
    Public entry point for saving, reading and deleting media assets.

    Responsibilities:
    - Store bytes on the active backend, then record metadata
    - Undo the byte write when metadata persistence fails
    - Open byte streams for existing assets
    - Delete bytes and metadata, never letting storage failures keep a row alive
    """

    def __init__(self, metadata_store: MetadataStore, resolver: BackendResolver):
        self.metadata_store = metadata_store
        self.resolver = resolver

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save_cover_art(
        self,
        upload: MediaUpload,
        owner_id: str,
        podcast_id: Optional[str] = None,
    ) -> MediaAsset:
        return await self._save(upload, AssetKind.COVER_ART, owner_id, podcast_id=podcast_id)

    async def save_episode_audio(
        self,
        upload: MediaUpload,
        owner_id: str,
        episode_id: Optional[str] = None,
        podcast_id: Optional[str] = None,
    ) -> MediaAsset:
        return await self._save(
            upload, AssetKind.EPISODE_AUDIO, owner_id, podcast_id=podcast_id, episode_id=episode_id
        )

    async def _save(
        self,
        upload: MediaUpload,
        kind: AssetKind,
        owner_id: str,
        podcast_id: Optional[str] = None,
        episode_id: Optional[str] = None,
    ) -> MediaAsset:
        """
        Flow:
        1. Resolve the active backend
        2. Store the bytes (failure aborts; no metadata is written)
        3. Create the metadata row (store assigns id and created_at)
        4. On metadata failure, delete the stored bytes and re-raise

        Raises:
            StorageUnavailable: Backend could not be resolved or write failed
            MetadataPersistenceError: Metadata row could not be created
        """
        mime_type = upload.content_type or "application/octet-stream"
        backend = await self.resolver.current()

        logger.info(
            "media_save_started",
            kind=kind.value,
            owner_id=owner_id,
            backend_kind=backend.kind.value,
            filename=upload.filename,
            mime_type=mime_type,
        )

        try:
            stored = await backend.store(upload.file, kind, upload.filename or "upload", mime_type)
        except StorageUnavailable as exc:
            media_saves_total.labels(kind=kind.value, backend=backend.kind.value, status="storage_failed").inc()
            logger.error(
                "media_store_failed",
                kind=kind.value,
                owner_id=owner_id,
                backend_kind=backend.kind.value,
                error=str(exc),
            )
            raise

        new_asset = NewMediaAsset(
            owner_id=owner_id,
            podcast_id=podcast_id,
            episode_id=episode_id,
            kind=kind,
            backend_kind=stored.backend_kind,
            location_key=stored.location_key,
            public_url=stored.public_url,
            mime_type=mime_type,
            size_bytes=stored.size_bytes,
            checksum=stored.checksum,
        )

        try:
            asset = await self.metadata_store.create_asset(new_asset)
        except Exception as exc:
            media_saves_total.labels(kind=kind.value, backend=backend.kind.value, status="metadata_failed").inc()
            logger.error(
                "media_metadata_write_failed",
                kind=kind.value,
                location_key=stored.location_key,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            await self._compensate(backend, stored)
            raise

        media_saves_total.labels(kind=kind.value, backend=backend.kind.value, status="stored").inc()
        logger.info(
            "media_save_completed",
            asset_id=asset.id,
            kind=kind.value,
            backend_kind=asset.backend_kind.value,
            location_key=asset.location_key,
            size_bytes=asset.size_bytes,
        )
        return asset

    async def _compensate(self, backend: StorageBackend, stored: StoredObject) -> None:
        """Best-effort delete of bytes no metadata row will ever reference."""
        try:
            await backend.delete(stored.location_key)
        except Exception as cleanup_error:
            media_compensations_total.labels(status="failed").inc()
            logger.error(
                "media_compensation_failed",
                backend_kind=backend.kind.value,
                location_key=stored.location_key,
                error_type=type(cleanup_error).__name__,
                error=str(cleanup_error),
            )
            return

        media_compensations_total.labels(status="succeeded").inc()
        logger.info(
            "media_orphan_deleted",
            backend_kind=backend.kind.value,
            location_key=stored.location_key,
        )

    async def replace_episode_audio(
        self,
        old_asset_id: str,
        upload: MediaUpload,
        owner_id: str,
        episode_id: Optional[str] = None,
        podcast_id: Optional[str] = None,
    ) -> MediaAsset:
        """Store a new audio asset, then delete the old one.

        Assets are never mutated; the replacement gets a new id. Links
        default to those of the asset being replaced.
        """
        old_asset = await self.metadata_store.get_asset(old_asset_id)
        if old_asset is not None:
            episode_id = episode_id or old_asset.episode_id
            podcast_id = podcast_id or old_asset.podcast_id

        new_asset = await self.save_episode_audio(upload, owner_id, episode_id=episode_id, podcast_id=podcast_id)

        if old_asset is not None:
            await self.delete_media_asset(old_asset.id)
        logger.info("media_audio_replaced", old_asset_id=old_asset_id, new_asset_id=new_asset.id)
        return new_asset

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_media_asset(self, asset_id: str) -> Optional[MediaAsset]:
        return await self.metadata_store.get_asset(asset_id)

    async def get_media_asset_by_location_key(self, location_key: str) -> Optional[MediaAsset]:
        return await self.metadata_store.get_asset_by_location_key(location_key)

    async def list_media_assets(
        self,
        podcast_id: Optional[str] = None,
        episode_id: Optional[str] = None,
    ) -> List[MediaAsset]:
        if episode_id:
            return await self.metadata_store.list_assets_by_episode(episode_id)
        if podcast_id:
            return await self.metadata_store.list_assets_by_podcast(podcast_id)
        return []

    async def retrieve(self, asset_id: str) -> MediaAsset:
        """Metadata for an asset.

        Raises:
            AssetNotFound: If no row exists
        """
        asset = await self.metadata_store.get_asset(asset_id)
        if asset is None:
            raise AssetNotFound(asset_id)
        return asset

    async def stream_media(self, asset_id: str) -> Tuple[MediaAsset, MediaStream]:
        """Metadata plus an open byte stream for the asset.

        The stream is read with the backend kind recorded on the row, which
        may differ from the currently active one.

        Raises:
            AssetNotFound: If no row exists
            StorageObjectNotFound: If the backend no longer has the bytes
            StorageUnavailable: Backend failure
        """
        asset = await self.retrieve(asset_id)
        backend = await self.resolver.backend_for(asset.backend_kind)
        stream = await backend.open_stream(asset.location_key)
        logger.debug(
            "media_stream_opened",
            asset_id=asset.id,
            backend_kind=asset.backend_kind.value,
        )
        return asset, stream

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_media_asset(self, asset_id: str) -> None:
        """Delete bytes then metadata. Missing assets are a no-op.

        Backend failures are logged; the metadata row is removed regardless.
        """
        asset = await self.metadata_store.get_asset(asset_id)
        if asset is None:
            logger.debug("media_delete_noop", asset_id=asset_id)
            return

        try:
            backend = await self.resolver.backend_for(asset.backend_kind)
            await backend.delete(asset.location_key)
        except Exception as storage_error:
            logger.warning(
                "media_storage_delete_failed",
                asset_id=asset_id,
                backend_kind=asset.backend_kind.value,
                location_key=asset.location_key,
                error_type=type(storage_error).__name__,
                error=str(storage_error),
            )

        await self.metadata_store.delete_asset(asset_id)
        logger.info("media_asset_deleted", asset_id=asset_id, backend_kind=asset.backend_kind.value)

    def clear_cache(self) -> None:
        """Force the next operation to re-read the active storage configuration."""
        self.resolver.invalidate()


_orchestrator: Optional[MediaOrchestrator] = None


def get_media_orchestrator() -> MediaOrchestrator:
    """Get or create the process-wide orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        from podcast_media.db.metadata_store import get_metadata_store
        from podcast_media.storage import get_backend_resolver
        _orchestrator = MediaOrchestrator(get_metadata_store(), get_backend_resolver())
    return _orchestrator
