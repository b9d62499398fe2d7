"""
MediaOrchestrator tests.

Exercises the save / compensate / retrieve / delete flows against a real
SQLite metadata store, a local backend on a temp directory and an in-memory
drive stand-in.
"""

import os
from unittest.mock import AsyncMock, patch

import pytest

from podcast_media.core.errors import (
    AssetNotFound,
    MetadataPersistenceError,
    StorageObjectNotFound,
    StorageUnavailable,
)
from podcast_media.schemas.media import AssetKind, BackendKind
from tests.conftest import Upload, read_stream


# ============================================================================
# Successful saves
# ============================================================================

@pytest.mark.unit
async def test_save_cover_art_creates_one_row_and_retrieves_same_bytes(
    orchestrator, metadata_store, sample_image_bytes
):
    asset = await orchestrator.save_cover_art(
        Upload(sample_image_bytes, "cover.jpg", "image/jpeg"),
        owner_id="creator-1",
        podcast_id="pod-1",
    )

    assert asset.id
    assert asset.created_at is not None
    assert asset.kind is AssetKind.COVER_ART
    assert asset.backend_kind is BackendKind.LOCAL
    assert asset.owner_id == "creator-1"
    assert asset.podcast_id == "pod-1"
    assert asset.episode_id is None
    assert asset.mime_type == "image/jpeg"
    assert asset.location_key.startswith("images/")

    assert await metadata_store.list_assets_by_podcast("pod-1") == [asset]

    fetched, stream = await orchestrator.stream_media(asset.id)
    assert fetched == asset
    assert await read_stream(stream) == sample_image_bytes


@pytest.mark.unit
async def test_save_ten_megabyte_episode_audio_on_local_backend(orchestrator):
    payload = os.urandom(10 * 1024 * 1024)

    asset = await orchestrator.save_episode_audio(
        Upload(payload, "episode-42.mp3", "audio/mpeg"),
        owner_id="creator-1",
        episode_id="ep-42",
    )

    assert asset.backend_kind is BackendKind.LOCAL
    assert asset.size_bytes == 10485760
    assert asset.location_key.startswith("audio/")
    assert asset.episode_id == "ep-42"

    _, stream = await orchestrator.stream_media(asset.id)
    assert await read_stream(stream) == payload


@pytest.mark.unit
async def test_save_uses_drive_when_configuration_active(orchestrator, drive_config, drive_objects, sample_audio_bytes):
    asset = await orchestrator.save_episode_audio(
        Upload(sample_audio_bytes, "ep.mp3", "audio/mpeg"), owner_id="creator-1"
    )

    assert asset.backend_kind is BackendKind.CLOUD_DRIVE
    assert asset.public_url is not None
    assert drive_objects[asset.location_key] == sample_audio_bytes


# ============================================================================
# Failed saves
# ============================================================================

@pytest.mark.unit
async def test_store_failure_creates_no_metadata(orchestrator, metadata_store, local_backend, sample_image_bytes):
    create_asset = AsyncMock(wraps=metadata_store.create_asset)

    with patch.object(local_backend, "store", AsyncMock(side_effect=StorageUnavailable("disk full"))), \
            patch.object(metadata_store, "create_asset", create_asset):
        with pytest.raises(StorageUnavailable):
            await orchestrator.save_cover_art(
                Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1", podcast_id="pod-1"
            )

    create_asset.assert_not_called()
    assert await metadata_store.list_assets_by_podcast("pod-1") == []


@pytest.mark.unit
async def test_metadata_failure_deletes_stored_bytes_and_reraises(
    orchestrator, metadata_store, local_backend, storage_root, sample_image_bytes
):
    delete = AsyncMock(wraps=local_backend.delete)
    error = MetadataPersistenceError("database is locked")

    with patch.object(metadata_store, "create_asset", AsyncMock(side_effect=error)), \
            patch.object(local_backend, "delete", delete):
        with pytest.raises(MetadataPersistenceError) as exc_info:
            await orchestrator.save_cover_art(
                Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1"
            )

    assert exc_info.value is error
    delete.assert_awaited_once_with("images/cover.jpg")
    assert not (storage_root / "images" / "cover.jpg").exists()
    assert await metadata_store.get_asset_by_location_key("images/cover.jpg") is None


@pytest.mark.unit
async def test_compensation_failure_is_swallowed(orchestrator, metadata_store, local_backend, sample_image_bytes):
    error = MetadataPersistenceError("constraint failed")

    with patch.object(metadata_store, "create_asset", AsyncMock(side_effect=error)), \
            patch.object(local_backend, "delete", AsyncMock(side_effect=StorageUnavailable("read-only fs"))):
        with pytest.raises(MetadataPersistenceError) as exc_info:
            await orchestrator.save_cover_art(
                Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1"
            )

    # the caller sees the metadata error, not the cleanup failure
    assert exc_info.value is error


@pytest.mark.unit
async def test_unexpected_metadata_error_also_compensates(orchestrator, metadata_store, drive_config, drive_objects):
    with patch.object(metadata_store, "create_asset", AsyncMock(side_effect=RuntimeError("boom"))):
        with pytest.raises(RuntimeError):
            await orchestrator.save_episode_audio(Upload(b"abc", "a.mp3", "audio/mpeg"), owner_id="creator-1")

    assert drive_objects == {}


# ============================================================================
# Retrieval
# ============================================================================

@pytest.mark.unit
async def test_retrieve_unknown_id_raises_not_found(orchestrator):
    with pytest.raises(AssetNotFound):
        await orchestrator.retrieve("does-not-exist")

    assert await orchestrator.get_media_asset("does-not-exist") is None


@pytest.mark.unit
async def test_stream_missing_bytes_raises_storage_not_found(orchestrator, storage_root, sample_image_bytes):
    asset = await orchestrator.save_cover_art(
        Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1"
    )
    (storage_root / asset.location_key).unlink()

    with pytest.raises(StorageObjectNotFound):
        await orchestrator.stream_media(asset.id)


@pytest.mark.unit
async def test_lookup_by_location_key(orchestrator, sample_image_bytes):
    asset = await orchestrator.save_cover_art(
        Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1"
    )

    assert await orchestrator.get_media_asset_by_location_key(asset.location_key) == asset
    assert await orchestrator.get_media_asset_by_location_key("images/other.jpg") is None


@pytest.mark.unit
async def test_assets_stay_bound_to_their_backend(orchestrator, metadata_store, sample_audio_bytes):
    local_asset = await orchestrator.save_episode_audio(
        Upload(sample_audio_bytes, "local.mp3", "audio/mpeg"), owner_id="creator-1"
    )

    config = await metadata_store.create_storage_config(
        service_account_email="uploader@test-project.iam.gserviceaccount.com",
        service_account_key="{}",
        folder_id_images="folder-images",
        folder_id_audio="folder-audio",
        is_active=True,
    )
    orchestrator.clear_cache()
    drive_asset = await orchestrator.save_episode_audio(
        Upload(b"drive bytes", "drive.mp3", "audio/mpeg"), owner_id="creator-1"
    )
    assert drive_asset.backend_kind is BackendKind.CLOUD_DRIVE

    # local asset still readable while drive is active
    _, stream = await orchestrator.stream_media(local_asset.id)
    assert await read_stream(stream) == sample_audio_bytes

    # switch back to local: the drive asset is still readable
    await metadata_store.update_storage_config(config.id, is_active=False)
    orchestrator.clear_cache()
    _, stream = await orchestrator.stream_media(drive_asset.id)
    assert await read_stream(stream) == b"drive bytes"


@pytest.mark.unit
async def test_local_assets_served_while_active_drive_is_unusable(
    orchestrator, resolver, metadata_store, storage_root, drive_config, sample_image_bytes
):
    await metadata_store.update_storage_config(drive_config.id, is_active=False)
    orchestrator.clear_cache()
    asset = await orchestrator.save_cover_art(
        Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1"
    )
    assert asset.backend_kind is BackendKind.LOCAL

    def rejecting_factory(config):
        raise StorageUnavailable("Drive service account credentials are invalid")

    resolver.drive_factory = rejecting_factory
    await metadata_store.activate_storage_config(drive_config.id)
    orchestrator.clear_cache()

    _, stream = await orchestrator.stream_media(asset.id)
    assert await read_stream(stream) == sample_image_bytes

    await orchestrator.delete_media_asset(asset.id)
    assert not (storage_root / asset.location_key).exists()
    assert await orchestrator.get_media_asset(asset.id) is None


# ============================================================================
# Deletion
# ============================================================================

@pytest.mark.unit
async def test_delete_removes_bytes_and_row(orchestrator, storage_root, sample_image_bytes):
    asset = await orchestrator.save_cover_art(
        Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1"
    )

    await orchestrator.delete_media_asset(asset.id)

    assert await orchestrator.get_media_asset(asset.id) is None
    assert not (storage_root / asset.location_key).exists()


@pytest.mark.unit
async def test_delete_twice_is_idempotent(orchestrator, sample_image_bytes):
    asset = await orchestrator.save_cover_art(
        Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1"
    )

    await orchestrator.delete_media_asset(asset.id)
    await orchestrator.delete_media_asset(asset.id)

    assert await orchestrator.get_media_asset(asset.id) is None


@pytest.mark.unit
async def test_delete_unknown_id_is_noop(orchestrator):
    await orchestrator.delete_media_asset("never-created")


@pytest.mark.unit
async def test_delete_removes_row_even_when_backend_delete_fails(orchestrator, local_backend, sample_image_bytes):
    asset = await orchestrator.save_cover_art(
        Upload(sample_image_bytes, "cover.jpg", "image/jpeg"), owner_id="creator-1"
    )

    with patch.object(local_backend, "delete", AsyncMock(side_effect=StorageUnavailable("io error"))):
        await orchestrator.delete_media_asset(asset.id)

    assert await orchestrator.get_media_asset(asset.id) is None


# ============================================================================
# Replace audio
# ============================================================================

@pytest.mark.unit
async def test_replace_audio_creates_new_asset_and_deletes_old(orchestrator, sample_audio_bytes):
    old = await orchestrator.save_episode_audio(
        Upload(sample_audio_bytes, "v1.mp3", "audio/mpeg"), owner_id="creator-1", episode_id="ep-1", podcast_id="pod-1"
    )

    new = await orchestrator.replace_episode_audio(
        old.id, Upload(b"version two", "v2.mp3", "audio/mpeg"), owner_id="creator-1"
    )

    assert new.id != old.id
    assert new.episode_id == "ep-1"
    assert new.podcast_id == "pod-1"
    assert await orchestrator.get_media_asset(old.id) is None
    assert await orchestrator.list_media_assets(episode_id="ep-1") == [new]


@pytest.mark.unit
async def test_replace_audio_failure_keeps_old_asset(orchestrator, local_backend, sample_audio_bytes):
    old = await orchestrator.save_episode_audio(
        Upload(sample_audio_bytes, "v1.mp3", "audio/mpeg"), owner_id="creator-1"
    )

    with patch.object(local_backend, "store", AsyncMock(side_effect=StorageUnavailable("disk full"))):
        with pytest.raises(StorageUnavailable):
            await orchestrator.replace_episode_audio(
                old.id, Upload(b"v2", "v2.mp3", "audio/mpeg"), owner_id="creator-1"
            )

    assert await orchestrator.get_media_asset(old.id) == old
