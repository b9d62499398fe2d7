"""
Google Drive backend tests.

The Drive API is replaced by ``httpx.MockTransport`` and service-account
credentials are patched, so no network or real key is needed.
"""

import hashlib
import io
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest

from podcast_media.core.errors import StorageObjectNotFound, StorageUnavailable
from podcast_media.schemas.media import AssetKind, BackendKind, StorageConfig
from podcast_media.storage.drive import GoogleDriveStorageBackend, multipart_envelope
from tests.conftest import read_stream, service_account_key_json


API = "https://drive.test/drive/v3"
UPLOAD = "https://drive.test/upload/drive/v3"


def make_config(key: str = None) -> StorageConfig:
    now = datetime.now(timezone.utc)
    return StorageConfig(
        id="cfg-1",
        service_account_email="uploader@test-project.iam.gserviceaccount.com",
        service_account_key=key or service_account_key_json(),
        folder_id_images="folder-images",
        folder_id_audio="folder-audio",
        is_active=True,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def credentials():
    creds = MagicMock()
    creds.valid = True
    creds.token = "test-token"
    with patch(
        "podcast_media.storage.drive.service_account.Credentials.from_service_account_info",
        return_value=creds,
    ) as factory:
        factory.creds = creds
        yield factory


def make_backend(handler) -> GoogleDriveStorageBackend:
    return GoogleDriveStorageBackend(
        make_config(),
        api_base_url=API,
        upload_base_url=UPLOAD,
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


# ============================================================================
# Construction
# ============================================================================

@pytest.mark.unit
def test_credentials_loaded_with_drive_scope(credentials):
    make_backend(lambda request: httpx.Response(200))

    info = credentials.call_args.args[0]
    assert info["client_email"] == "uploader@test-project.iam.gserviceaccount.com"
    assert credentials.call_args.kwargs["scopes"] == ["https://www.googleapis.com/auth/drive"]


@pytest.mark.unit
def test_unparseable_key_is_storage_unavailable():
    with pytest.raises(StorageUnavailable):
        GoogleDriveStorageBackend(make_config(key="{not json"), api_base_url=API, upload_base_url=UPLOAD)


@pytest.mark.unit
def test_key_rejected_by_google_auth_is_storage_unavailable(credentials):
    credentials.side_effect = ValueError("No key could be detected.")

    with pytest.raises(StorageUnavailable):
        make_backend(lambda request: httpx.Response(200))


@pytest.mark.unit
def test_multipart_envelope_layout():
    head, tail = multipart_envelope("BOUNDARY", {"name": "a.mp3"}, "audio/mpeg")
    body = head + b"\x00\x01" + tail

    assert body.startswith(b"--BOUNDARY\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n")
    assert b'{"name": "a.mp3"}' in body
    assert b"\r\n--BOUNDARY\r\nContent-Type: audio/mpeg\r\n\r\n\x00\x01" in body
    assert body.endswith(b"\r\n--BOUNDARY--\r\n")


@pytest.mark.unit
async def test_store_streams_body_with_exact_length(credentials):
    payload = bytes(range(256)) * 1024  # several read chunks
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["length"] = int(request.headers["Content-Length"])
        seen["body"] = request.content
        return httpx.Response(200, json={"id": "file-big"})

    backend = make_backend(handler)
    stored = await backend.store(io.BytesIO(payload), AssetKind.EPISODE_AUDIO, "big.mp3", "audio/mpeg")

    assert seen["length"] == len(seen["body"])
    assert payload in seen["body"]
    assert stored.size_bytes == len(payload)
    assert stored.checksum == hashlib.sha256(payload).hexdigest()


# ============================================================================
# store
# ============================================================================

@pytest.mark.unit
async def test_store_uploads_into_kind_folder(credentials, sample_audio_bytes):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers["Authorization"]
        seen["content_type"] = request.headers["Content-Type"]
        seen["body"] = request.content
        return httpx.Response(200, json={"id": "file-123", "webContentLink": "https://drive.test/dl/file-123"})

    backend = make_backend(handler)
    stored = await backend.store(io.BytesIO(sample_audio_bytes), AssetKind.EPISODE_AUDIO, "Ep 1.mp3", "audio/mpeg")

    assert stored.backend_kind is BackendKind.CLOUD_DRIVE
    assert stored.location_key == "file-123"
    assert stored.public_url == "https://drive.test/dl/file-123"
    assert stored.size_bytes == len(sample_audio_bytes)

    assert seen["url"].startswith(f"{UPLOAD}/files")
    assert seen["params"]["uploadType"] == "multipart"
    assert seen["auth"] == "Bearer test-token"
    assert seen["content_type"].startswith("multipart/related; boundary=")

    metadata_part = seen["body"].split(b"\r\n\r\n", 1)[1].split(b"\r\n--", 1)[0]
    metadata = json.loads(metadata_part)
    assert metadata == {"name": "Ep_1.mp3", "parents": ["folder-audio"], "mimeType": "audio/mpeg"}
    assert sample_audio_bytes in seen["body"]


@pytest.mark.unit
async def test_store_cover_art_uses_images_folder(credentials, sample_image_bytes):
    parents = []

    def handler(request):
        metadata = json.loads(request.content.split(b"\r\n\r\n", 1)[1].split(b"\r\n--", 1)[0])
        parents.extend(metadata["parents"])
        return httpx.Response(200, json={"id": "img-1"})

    stored = await make_backend(handler).store(
        io.BytesIO(sample_image_bytes), AssetKind.COVER_ART, "cover.jpg", "image/jpeg"
    )

    assert parents == ["folder-images"]
    assert stored.public_url is None


@pytest.mark.unit
@pytest.mark.parametrize("status_code", [401, 403, 500, 503])
async def test_store_rejected_is_storage_unavailable(credentials, status_code):
    backend = make_backend(lambda request: httpx.Response(status_code, json={"error": "nope"}))

    with pytest.raises(StorageUnavailable):
        await backend.store(io.BytesIO(b"x"), AssetKind.COVER_ART, "c.png", "image/png")


@pytest.mark.unit
async def test_store_network_error_is_storage_unavailable(credentials):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StorageUnavailable):
        await make_backend(handler).store(io.BytesIO(b"x"), AssetKind.COVER_ART, "c.png", "image/png")


@pytest.mark.unit
async def test_store_without_file_id_is_storage_unavailable(credentials):
    backend = make_backend(lambda request: httpx.Response(200, json={}))

    with pytest.raises(StorageUnavailable):
        await backend.store(io.BytesIO(b"x"), AssetKind.COVER_ART, "c.png", "image/png")


@pytest.mark.unit
async def test_expired_token_is_refreshed_before_request(credentials):
    credentials.creds.valid = False

    def handler(request):
        return httpx.Response(200, json={"id": "f"})

    await make_backend(handler).store(io.BytesIO(b"x"), AssetKind.COVER_ART, "c.png", "image/png")

    credentials.creds.refresh.assert_called_once()


# ============================================================================
# open_stream / delete
# ============================================================================

@pytest.mark.unit
async def test_open_stream_returns_media_bytes(credentials):
    payload = b"\xff\xfb" * 50000

    def handler(request):
        assert request.url.path.endswith("/files/file-123")
        assert request.url.params["alt"] == "media"
        return httpx.Response(200, content=payload)

    stream = await make_backend(handler).open_stream("file-123")

    assert await read_stream(stream) == payload


@pytest.mark.unit
async def test_open_stream_404_is_not_found(credentials):
    backend = make_backend(lambda request: httpx.Response(404, json={"error": "notFound"}))

    with pytest.raises(StorageObjectNotFound):
        await backend.open_stream("gone")


@pytest.mark.unit
async def test_open_stream_403_is_storage_unavailable(credentials):
    backend = make_backend(lambda request: httpx.Response(403))

    with pytest.raises(StorageUnavailable):
        await backend.open_stream("file-123")


@pytest.mark.unit
async def test_delete_sends_delete_request(credentials):
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        return httpx.Response(204)

    await make_backend(handler).delete("file-123")

    assert calls == [("DELETE", "/drive/v3/files/file-123")]


@pytest.mark.unit
async def test_delete_missing_file_is_success(credentials):
    await make_backend(lambda request: httpx.Response(404)).delete("gone")


@pytest.mark.unit
async def test_delete_server_error_is_storage_unavailable(credentials):
    with pytest.raises(StorageUnavailable):
        await make_backend(lambda request: httpx.Response(500)).delete("file-123")


# ============================================================================
# verify_folders
# ============================================================================

@pytest.mark.unit
async def test_verify_folders_returns_names(credentials):
    names = {"folder-images": "Covers", "folder-audio": "Episodes"}

    def handler(request):
        folder_id = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={"id": folder_id, "name": names[folder_id]})

    assert await make_backend(handler).verify_folders() == {"images": "Covers", "audio": "Episodes"}


@pytest.mark.unit
async def test_verify_folders_missing_folder(credentials):
    def handler(request):
        if request.url.path.endswith("folder-audio"):
            return httpx.Response(404)
        return httpx.Response(200, json={"name": "Covers"})

    with pytest.raises(StorageObjectNotFound) as exc_info:
        await make_backend(handler).verify_folders()

    assert exc_info.value.location_key == "folder-audio"
