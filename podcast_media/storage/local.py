"""Local filesystem storage backend."""

import asyncio
import hashlib
import os
import re
import secrets
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Tuple

import aiofiles
import aiofiles.os

from podcast_media.core.errors import InvalidLocation, StorageObjectNotFound, StorageUnavailable
from podcast_media.core.logging_config import get_logger
from podcast_media.schemas.media import AssetKind, BackendKind, StoredObject
from podcast_media.storage.protocol import CHUNK_SIZE, MediaStream


logger = get_logger(__name__)

MAX_FILENAME_LENGTH = 120
MAX_NAME_ATTEMPTS = 8

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(name: str) -> str:
    """Reduce a client-supplied file name to a safe single path segment.

    Directory components are dropped, unsafe characters collapse to ``_``,
    leading dots are stripped, and the stem is shortened so the whole name
    fits ``MAX_FILENAME_LENGTH`` while keeping the extension.
    """
    base = PurePosixPath((name or "").replace("\\", "/")).name
    base = _UNSAFE_CHARS.sub("_", base).strip("._")
    if not base:
        base = "file"

    stem, dot, ext = base.rpartition(".")
    if not dot:
        stem, ext = base, ""
    ext = ext[:16]
    room = MAX_FILENAME_LENGTH - (len(ext) + 1 if ext else 0)
    stem = (stem or "file")[:room]
    return f"{stem}.{ext}" if ext else stem


def _with_random_suffix(name: str) -> str:
    stem, dot, ext = name.rpartition(".")
    suffix = secrets.token_hex(4)
    if not dot:
        return f"{name}-{suffix}"
    return f"{stem}-{suffix}.{ext}"


class LocalStorageBackend:
    """Local filesystem storage implementation.

    Objects live under ``<base_path>/<category>/<file name>`` and the location
    key is the path relative to ``base_path`` (e.g. ``audio/episode-1.mp3``),
    so keys stay valid when the root moves between deployments.
    """

    kind = BackendKind.LOCAL

    def __init__(self, base_path: str):
        """Initialize local storage backend.

        Args:
            base_path: Root directory for file storage
        """
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, location_key: str) -> Path:
        """Map a location key to an absolute path inside the root."""
        if not location_key or os.path.isabs(location_key):
            raise InvalidLocation(f"Invalid local location key: '{location_key}'")
        full_path = (self.base_path / location_key).resolve()
        if full_path == self.base_path or self.base_path not in full_path.parents:
            raise InvalidLocation(f"Location key escapes storage root: '{location_key}'")
        return full_path

    def location_key_for(self, path: Path) -> str:
        return path.relative_to(self.base_path).as_posix()

    async def _reserve(self, directory: Path, name: str) -> Tuple[object, Path]:
        """Exclusively create the target file, adding a random suffix on collision."""
        candidate = name
        for _ in range(MAX_NAME_ATTEMPTS):
            target = directory / candidate
            try:
                handle = await aiofiles.open(target, "xb")
                return handle, target
            except FileExistsError:
                candidate = _with_random_suffix(name)
            except OSError as exc:
                raise StorageUnavailable(f"Cannot create file in {directory.name}: {exc.strerror}") from exc
        raise StorageUnavailable(f"Could not allocate a unique name for '{name}'")

    async def store(self, file: BinaryIO, kind: AssetKind, suggested_name: str, mime_type: str) -> StoredObject:
        """Write the upload to ``<category>/<sanitized name>``.

        The file is fsynced before success is reported; on any failure the
        partially written file is removed.
        """
        directory = self.base_path / kind.category
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot create category directory '{kind.category}'") from exc

        handle, target = await self._reserve(directory, sanitize_filename(suggested_name))
        location_key = self.location_key_for(target)

        logger.debug(
            "local_storage_save_started",
            location_key=location_key,
            mime_type=mime_type,
        )

        digest = hashlib.sha256()
        bytes_written = 0
        completed = False
        try:
            try:
                if hasattr(file, "seek"):
                    file.seek(0)
                # spooled uploads may read from disk
                while chunk := await asyncio.to_thread(file.read, CHUNK_SIZE):
                    await handle.write(chunk)
                    digest.update(chunk)
                    bytes_written += len(chunk)
                await handle.flush()
                await asyncio.to_thread(os.fsync, handle.fileno())
            finally:
                await handle.close()
            completed = True
        except OSError as exc:
            logger.error(
                "local_storage_save_failed",
                location_key=location_key,
                bytes_written=bytes_written,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise StorageUnavailable(f"Local write failed for '{location_key}'") from exc
        finally:
            if not completed:
                await self._discard(target)

        logger.info(
            "local_storage_save_success",
            location_key=location_key,
            bytes_written=bytes_written,
        )

        return StoredObject(
            backend_kind=self.kind,
            location_key=location_key,
            public_url=None,  # served through the streaming endpoint
            size_bytes=bytes_written,
            checksum=digest.hexdigest(),
        )

    async def _discard(self, path: Path) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("local_storage_discard_failed", path=str(path), error=str(exc))

    async def open_stream(self, location_key: str) -> MediaStream:
        """Open the file for chunked reading."""
        full_path = self._resolve(location_key)

        try:
            handle = await aiofiles.open(full_path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            logger.warning("local_storage_load_not_found", location_key=location_key)
            raise StorageObjectNotFound(location_key) from exc
        except OSError as exc:
            logger.error(
                "local_storage_load_failed",
                location_key=location_key,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StorageUnavailable(f"Cannot open '{location_key}'") from exc

        logger.debug("local_storage_stream_opened", location_key=location_key)
        return self._iter_file(handle)

    @staticmethod
    async def _iter_file(handle) -> MediaStream:
        try:
            while chunk := await handle.read(CHUNK_SIZE):
                yield chunk
        finally:
            await handle.close()

    async def delete(self, location_key: str) -> None:
        """Delete file from local filesystem; a missing file is not an error."""
        full_path = self._resolve(location_key)

        try:
            await aiofiles.os.remove(full_path)
        except FileNotFoundError:
            logger.info("local_storage_delete_not_found", location_key=location_key)
            return
        except OSError as exc:
            logger.error(
                "local_storage_delete_failed",
                location_key=location_key,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            raise StorageUnavailable(f"Cannot delete '{location_key}'") from exc

        logger.info("local_storage_delete_success", location_key=location_key)
