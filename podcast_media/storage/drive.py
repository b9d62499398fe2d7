"""Google Drive storage backend (Drive v3 REST API over httpx)."""

import asyncio
import hashlib
import json
import os
import secrets
from typing import AsyncIterator, BinaryIO, Dict, Optional, Tuple
from urllib.parse import quote

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from podcast_media.core.errors import StorageObjectNotFound, StorageUnavailable
from podcast_media.core.logging_config import get_logger
from podcast_media.schemas.media import AssetKind, BackendKind, StorageConfig, StoredObject
from podcast_media.storage.local import sanitize_filename
from podcast_media.storage.protocol import CHUNK_SIZE, MediaStream


logger = get_logger(__name__)

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive"]


def multipart_envelope(boundary: str, metadata: dict, mime_type: str) -> Tuple[bytes, bytes]:
    """Head and tail of a Drive ``uploadType=multipart`` body.

    The media bytes go between them, so the body can be streamed without
    holding the whole file in memory.
    """
    head = b"".join([
        f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode("utf-8"),
        json.dumps(metadata).encode("utf-8"),
        f"\r\n--{boundary}\r\nContent-Type: {mime_type}\r\n\r\n".encode("utf-8"),
    ])
    tail = f"\r\n--{boundary}--\r\n".encode("utf-8")
    return head, tail


def _file_size(file: BinaryIO) -> int:
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)
    return size


class GoogleDriveStorageBackend:
    """Drive storage using a service account and two pre-provisioned folders.

    The backend is rebuilt by the resolver on every configuration refresh, so
    credentials are parsed once per refresh cycle and the access token is
    cached on the instance until it expires. The location key is the Drive
    file id. Request timeouts come from the httpx client.
    """

    kind = BackendKind.CLOUD_DRIVE

    def __init__(
        self,
        config: StorageConfig,
        api_base_url: str,
        upload_base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Drive backend from a storage configuration.

        Args:
            config: Active storage configuration (credentials and folder ids)
            api_base_url: Drive v3 API root
            upload_base_url: Drive v3 upload root
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a mock)

        Raises:
            StorageUnavailable: If the service account key cannot be parsed
        """
        self.config_id = config.id
        self.folders: Dict[AssetKind, str] = {
            AssetKind.COVER_ART: config.folder_id_images,
            AssetKind.EPISODE_AUDIO: config.folder_id_audio,
        }
        self.api_base_url = api_base_url.rstrip("/")
        self.upload_base_url = upload_base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

        try:
            info = json.loads(config.service_account_key)
            self._credentials = service_account.Credentials.from_service_account_info(
                info, scopes=DRIVE_SCOPES
            )
        except (ValueError, KeyError, TypeError) as exc:
            logger.error(
                "drive_credentials_invalid",
                config_id=config.id,
                error_type=type(exc).__name__,
            )
            raise StorageUnavailable("Drive service account credentials are invalid") from exc

        logger.info(
            "drive_storage_backend_initialized",
            config_id=config.id,
            service_account=config.service_account_email,
            folder_id_images=config.folder_id_images,
            folder_id_audio=config.folder_id_audio,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _file_url(self, file_id: str) -> str:
        return f"{self.api_base_url}/files/{quote(file_id, safe='')}"

    async def _auth_headers(self) -> Dict[str, str]:
        """Bearer header, refreshing the service-account token when needed."""
        if not self._credentials.valid:
            try:
                await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())
            except GoogleAuthError as exc:
                logger.error(
                    "drive_token_refresh_failed",
                    config_id=self.config_id,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise StorageUnavailable("Drive authentication failed") from exc
        return {"Authorization": f"Bearer {self._credentials.token}"}

    async def store(self, file: BinaryIO, kind: AssetKind, suggested_name: str, mime_type: str) -> StoredObject:
        """Upload in a single multipart request into the kind's folder.

        The body is streamed from ``file`` in chunks with an explicit
        Content-Length, so memory use stays at one chunk per upload.
        """
        size = await asyncio.to_thread(_file_size, file)
        metadata = {
            "name": sanitize_filename(suggested_name),
            "parents": [self.folders[kind]],
            "mimeType": mime_type,
        }
        boundary = f"podcast-media-{secrets.token_hex(12)}"
        head, tail = multipart_envelope(boundary, metadata, mime_type)

        headers = await self._auth_headers()
        headers["Content-Type"] = f"multipart/related; boundary={boundary}"
        headers["Content-Length"] = str(len(head) + size + len(tail))

        digest = hashlib.sha256()

        async def body() -> AsyncIterator[bytes]:
            yield head
            while chunk := await asyncio.to_thread(file.read, CHUNK_SIZE):
                digest.update(chunk)
                yield chunk
            yield tail

        logger.debug(
            "drive_storage_save_started",
            folder_id=self.folders[kind],
            name=metadata["name"],
            size_bytes=size,
        )

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.upload_base_url}/files",
                    params={
                        "uploadType": "multipart",
                        "fields": "id,webContentLink",
                        "supportsAllDrives": "true",
                    },
                    content=body(),
                    headers=headers,
                )
        except (httpx.HTTPError, OSError) as exc:
            logger.error(
                "drive_storage_save_failed",
                folder_id=self.folders[kind],
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StorageUnavailable("Drive upload failed") from exc

        if response.status_code >= 400:
            logger.error(
                "drive_storage_save_rejected",
                folder_id=self.folders[kind],
                http_status=response.status_code,
                body=response.text[:500],
            )
            raise StorageUnavailable(f"Drive upload rejected with HTTP {response.status_code}")

        data = response.json()
        file_id = data.get("id")
        if not file_id:
            raise StorageUnavailable("Drive upload response did not include a file id")

        logger.info(
            "drive_storage_save_success",
            file_id=file_id,
            folder_id=self.folders[kind],
            size_bytes=size,
        )

        return StoredObject(
            backend_kind=self.kind,
            location_key=file_id,
            public_url=data.get("webContentLink"),
            size_bytes=size,
            checksum=digest.hexdigest(),
        )

    async def open_stream(self, location_key: str) -> MediaStream:
        """Start an authorized media download; the body is streamed lazily."""
        headers = await self._auth_headers()
        client = self._client()
        try:
            request = client.build_request(
                "GET",
                self._file_url(location_key),
                params={"alt": "media", "supportsAllDrives": "true"},
                headers=headers,
            )
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            await client.aclose()
            logger.error(
                "drive_storage_load_failed",
                file_id=location_key,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StorageUnavailable("Drive download failed") from exc

        if response.status_code >= 400:
            await response.aclose()
            await client.aclose()
            if response.status_code == 404:
                logger.warning("drive_storage_load_not_found", file_id=location_key)
                raise StorageObjectNotFound(location_key)
            logger.error(
                "drive_storage_load_rejected",
                file_id=location_key,
                http_status=response.status_code,
            )
            raise StorageUnavailable(f"Drive download rejected with HTTP {response.status_code}")

        logger.debug("drive_storage_stream_opened", file_id=location_key)
        return self._iter_response(client, response)

    @staticmethod
    async def _iter_response(client: httpx.AsyncClient, response: httpx.Response) -> MediaStream:
        try:
            async for chunk in response.aiter_bytes(CHUNK_SIZE):
                yield chunk
        except httpx.HTTPError as exc:
            raise StorageUnavailable("Drive stream interrupted") from exc
        finally:
            await response.aclose()
            await client.aclose()

    async def delete(self, location_key: str) -> None:
        """Delete the Drive file; a missing file counts as deleted."""
        headers = await self._auth_headers()
        try:
            async with self._client() as client:
                response = await client.delete(
                    self._file_url(location_key),
                    params={"supportsAllDrives": "true"},
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            logger.error(
                "drive_storage_delete_failed",
                file_id=location_key,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StorageUnavailable("Drive delete failed") from exc

        if response.status_code == 404:
            logger.info("drive_storage_delete_not_found", file_id=location_key)
            return
        if response.status_code >= 400:
            logger.error(
                "drive_storage_delete_rejected",
                file_id=location_key,
                http_status=response.status_code,
            )
            raise StorageUnavailable(f"Drive delete rejected with HTTP {response.status_code}")

        logger.info("drive_storage_delete_success", file_id=location_key)

    async def verify_folders(self) -> Dict[str, str]:
        """Check both configured folders are reachable.

        Returns:
            Mapping of category ("images", "audio") to folder name

        Raises:
            StorageObjectNotFound: A folder id does not exist or is not shared
            StorageUnavailable: Authentication, permission or network failure
        """
        headers = await self._auth_headers()
        names: Dict[str, str] = {}
        try:
            async with self._client() as client:
                for kind, folder_id in self.folders.items():
                    response = await client.get(
                        self._file_url(folder_id),
                        params={"fields": "id,name", "supportsAllDrives": "true"},
                        headers=headers,
                    )
                    if response.status_code == 404:
                        raise StorageObjectNotFound(folder_id, f"Drive folder not found: {folder_id}")
                    if response.status_code >= 400:
                        raise StorageUnavailable(
                            f"Drive folder check failed with HTTP {response.status_code}"
                        )
                    names[kind.category] = response.json().get("name", folder_id)
        except httpx.HTTPError as exc:
            raise StorageUnavailable("Drive folder check failed") from exc

        logger.info("drive_folders_verified", config_id=self.config_id, folders=names)
        return names
