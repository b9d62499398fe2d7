"""Metadata store: authoritative persistence for media assets and storage configs."""

import time
from typing import List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from podcast_media.core.errors import MetadataPersistenceError
from podcast_media.core.logging_config import get_logger
from podcast_media.repositories.media_asset_repository import MediaAssetRepository
from podcast_media.repositories.storage_config_repository import StorageConfigRepository
from podcast_media.schemas.media import MediaAsset, NewMediaAsset, StorageConfig


logger = get_logger(__name__)


class MetadataStore(Protocol):
    """Operations the media orchestrator and backend resolver rely on."""

    async def create_asset(self, asset: NewMediaAsset) -> MediaAsset:
        """Persist a row; the store generates ``id`` and ``created_at``."""
        ...

    async def get_asset(self, asset_id: str) -> Optional[MediaAsset]:
        ...

    async def get_asset_by_location_key(self, location_key: str) -> Optional[MediaAsset]:
        ...

    async def delete_asset(self, asset_id: str) -> None:
        ...

    async def get_active_storage_config(self) -> Optional[StorageConfig]:
        ...

    async def list_storage_configs(self) -> List[StorageConfig]:
        ...


class SqlMetadataStore:
    """SQLAlchemy implementation of ``MetadataStore``.

    Every call runs in its own session and transaction, so concurrent
    callers never share ORM state.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Media assets
    # ------------------------------------------------------------------

    async def create_asset(self, asset: NewMediaAsset) -> MediaAsset:
        start_time = time.time()
        logger.debug(
            "db_create_asset_started",
            owner_id=asset.owner_id,
            kind=asset.kind.value,
            backend_kind=asset.backend_kind.value,
            location_key=asset.location_key,
        )

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    row = await MediaAssetRepository(session).create(**asset.model_dump())
                    created = MediaAsset.model_validate(row)
        except SQLAlchemyError as exc:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                "db_create_asset_failed",
                location_key=asset.location_key,
                duration_ms=round(duration_ms, 2),
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise MetadataPersistenceError(f"Could not persist media asset: {type(exc).__name__}") from exc

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "db_create_asset_success",
            asset_id=created.id,
            location_key=created.location_key,
            duration_ms=round(duration_ms, 2),
        )
        return created

    async def get_asset(self, asset_id: str) -> Optional[MediaAsset]:
        async with self.session_factory() as session:
            row = await MediaAssetRepository(session).get(asset_id)
            if row is None:
                logger.debug("db_get_asset_not_found", asset_id=asset_id)
                return None
            return MediaAsset.model_validate(row)

    async def get_asset_by_location_key(self, location_key: str) -> Optional[MediaAsset]:
        async with self.session_factory() as session:
            row = await MediaAssetRepository(session).get_by_location_key(location_key)
            if row is None:
                logger.debug("db_get_asset_by_location_not_found", location_key=location_key)
                return None
            return MediaAsset.model_validate(row)

    async def list_assets_by_podcast(self, podcast_id: str) -> List[MediaAsset]:
        async with self.session_factory() as session:
            rows = await MediaAssetRepository(session).list_by_podcast(podcast_id)
            return [MediaAsset.model_validate(row) for row in rows]

    async def list_assets_by_episode(self, episode_id: str) -> List[MediaAsset]:
        async with self.session_factory() as session:
            rows = await MediaAssetRepository(session).list_by_episode(episode_id)
            return [MediaAsset.model_validate(row) for row in rows]

    async def delete_asset(self, asset_id: str) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                deleted = await MediaAssetRepository(session).delete(asset_id)
        logger.info("db_delete_asset", asset_id=asset_id, existed=deleted)

    # ------------------------------------------------------------------
    # Storage configurations
    # ------------------------------------------------------------------

    async def get_active_storage_config(self) -> Optional[StorageConfig]:
        async with self.session_factory() as session:
            row = await StorageConfigRepository(session).get_active()
            return StorageConfig.model_validate(row) if row else None

    async def list_storage_configs(self) -> List[StorageConfig]:
        async with self.session_factory() as session:
            rows = await StorageConfigRepository(session).list_newest_first()
            return [StorageConfig.model_validate(row) for row in rows]

    async def get_storage_config(self, config_id: str) -> Optional[StorageConfig]:
        async with self.session_factory() as session:
            row = await StorageConfigRepository(session).get(config_id)
            return StorageConfig.model_validate(row) if row else None

    async def create_storage_config(
        self,
        service_account_email: str,
        service_account_key: str,
        folder_id_images: str,
        folder_id_audio: str,
        is_active: bool = True,
    ) -> StorageConfig:
        """Insert a configuration; an active one deactivates all others."""
        async with self.session_factory() as session:
            async with session.begin():
                repo = StorageConfigRepository(session)
                if is_active:
                    await repo.deactivate_all()
                row = await repo.create(
                    service_account_email=service_account_email,
                    service_account_key=service_account_key,
                    folder_id_images=folder_id_images,
                    folder_id_audio=folder_id_audio,
                    is_active=is_active,
                )
                config = StorageConfig.model_validate(row)

        logger.info("db_storage_config_created", config_id=config.id, is_active=config.is_active)
        return config

    async def update_storage_config(self, config_id: str, **changes) -> Optional[StorageConfig]:
        async with self.session_factory() as session:
            async with session.begin():
                repo = StorageConfigRepository(session)
                if changes.get("is_active"):
                    await repo.deactivate_all()
                row = await repo.update(config_id, **changes)
                config = StorageConfig.model_validate(row) if row else None

        logger.info(
            "db_storage_config_updated",
            config_id=config_id,
            found=config is not None,
            fields=sorted(k for k in changes if k != "service_account_key"),
        )
        return config

    async def activate_storage_config(self, config_id: str) -> Optional[StorageConfig]:
        """Make one configuration the only active one."""
        async with self.session_factory() as session:
            async with session.begin():
                repo = StorageConfigRepository(session)
                if await repo.get(config_id) is None:
                    return None
                await repo.deactivate_all()
                row = await repo.update(config_id, is_active=True)
                config = StorageConfig.model_validate(row)

        logger.info("db_storage_config_activated", config_id=config_id)
        return config

    async def delete_storage_config(self, config_id: str) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                deleted = await StorageConfigRepository(session).delete(config_id)
        logger.info("db_storage_config_deleted", config_id=config_id, existed=deleted)
        return deleted


# Global store instance
_store: Optional[SqlMetadataStore] = None


def get_metadata_store() -> SqlMetadataStore:
    """Get or create the global metadata store bound to the app engine."""
    global _store
    if _store is None:
        from podcast_media.db.session import AsyncSessionLocal
        _store = SqlMetadataStore(AsyncSessionLocal)
    return _store
