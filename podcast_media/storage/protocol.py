"""Storage backend protocol definition."""

from typing import AsyncIterator, BinaryIO, Protocol

from podcast_media.schemas.media import AssetKind, BackendKind, StoredObject


# Async iterator of byte chunks; always an async generator so callers can aclose() it
MediaStream = AsyncIterator[bytes]

CHUNK_SIZE = 64 * 1024


class StorageBackend(Protocol):
    """Protocol defining the interface for storage backends.

    Allows switching between local filesystem and cloud drive storage
    without changing the orchestrator. Location keys are opaque to everything
    except the backend that produced them.
    """

    kind: BackendKind

    async def store(self, file: BinaryIO, kind: AssetKind, suggested_name: str, mime_type: str) -> StoredObject:
        """Write the full payload.

        Either the object is fully durable at the returned location or the
        call raises (``StorageUnavailable``) and nothing references it.

        Args:
            file: Binary file object positioned anywhere; read from the start
            kind: Asset kind, routes the object to its category/folder
            suggested_name: Client file name, sanitized by the backend
            mime_type: Content type recorded with the object

        Returns:
            StoredObject: location key, optional public URL, size and checksum
        """
        ...

    async def open_stream(self, location_key: str) -> MediaStream:
        """Open a readable stream positioned at the start of the object.

        Raises:
            StorageObjectNotFound: If nothing is stored at the location
            StorageUnavailable: On I/O, auth or network failure
        """
        ...

    async def delete(self, location_key: str) -> None:
        """Delete the object. Deleting a missing object succeeds."""
        ...
