from podcast_media.schemas.media import (
    AssetKind,
    BackendKind,
    MediaAsset,
    NewMediaAsset,
    StorageConfig,
    StorageConfigCreate,
    StorageConfigTest,
    StorageConfigUpdate,
    StoredObject,
)

__all__ = [
    "AssetKind",
    "BackendKind",
    "MediaAsset",
    "NewMediaAsset",
    "StorageConfig",
    "StorageConfigCreate",
    "StorageConfigTest",
    "StorageConfigUpdate",
    "StoredObject",
]
