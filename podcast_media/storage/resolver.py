"""Resolution of the active storage backend from the persisted configuration."""

import time
from typing import Callable, NamedTuple, Optional

from podcast_media.core.errors import StorageUnavailable
from podcast_media.core.logging_config import get_logger
from podcast_media.core.metrics import storage_backend_rebuilds_total
from podcast_media.db.metadata_store import MetadataStore
from podcast_media.schemas.media import BackendKind, StorageConfig
from podcast_media.storage.local import LocalStorageBackend
from podcast_media.storage.protocol import StorageBackend


logger = get_logger(__name__)

BackendFactory = Callable[[StorageConfig], StorageBackend]


class _Resolved(NamedTuple):
    backend: StorageBackend
    resolved_at: float


class BackendResolver:
    """Holds the active backend and re-derives it on a time-based cadence.

    ``current()`` returns the cached backend while it is younger than
    ``refresh_interval`` seconds; otherwise it reads the active storage
    configuration and builds a fresh backend. ``invalidate()`` forces the
    next call to rebuild regardless of age.

    There is no lock: concurrent callers that find the cache stale may each
    rebuild an equivalent backend. The cache is replaced by a single
    attribute assignment of a fully constructed value, so readers never see
    a half-built backend.
    """

    def __init__(
        self,
        metadata_store: MetadataStore,
        local_backend: LocalStorageBackend,
        drive_factory: BackendFactory,
        refresh_interval: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.metadata_store = metadata_store
        self.local_backend = local_backend
        self.drive_factory = drive_factory
        self.refresh_interval = refresh_interval
        self.clock = clock
        self._cached: Optional[_Resolved] = None

    def invalidate(self) -> None:
        """Drop the cached backend so the next resolution re-reads configuration."""
        self._cached = None
        logger.info("storage_backend_cache_invalidated")

    async def current(self) -> StorageBackend:
        """Return the active backend, rebuilding it when the cache is stale."""
        cached = self._cached
        now = self.clock()
        if cached is not None and (now - cached.resolved_at) < self.refresh_interval:
            return cached.backend

        config = await self.metadata_store.get_active_storage_config()
        backend = self._build(config)
        self._cached = _Resolved(backend, now)

        storage_backend_rebuilds_total.labels(backend=backend.kind.value).inc()

        logger.debug(
            "storage_backend_resolved",
            backend_kind=backend.kind.value,
            config_id=config.id if config else None,
            stale_after_seconds=self.refresh_interval,
        )
        return backend

    def _build(self, config: Optional[StorageConfig]) -> StorageBackend:
        if config is None:
            return self.local_backend
        return self.drive_factory(config)

    async def backend_for(self, kind: BackendKind) -> StorageBackend:
        """Backend able to interpret location keys recorded with ``kind``.

        Existing assets stay bound to the backend that stored them, so this
        can instantiate either kind regardless of which one is active. LOCAL
        never depends on the active configuration being usable.

        Raises:
            StorageUnavailable: For CLOUD_DRIVE when no configuration exists
                or the drive backend cannot be built
        """
        if kind is BackendKind.LOCAL:
            return self.local_backend

        active = await self.current()
        if active.kind is kind:
            return active

        configs = await self.metadata_store.list_storage_configs()
        if not configs:
            raise StorageUnavailable("No cloud drive configuration is available")
        logger.info(
            "storage_backend_instantiated_for_existing_asset",
            backend_kind=kind.value,
            config_id=configs[0].id,
        )
        return self.drive_factory(configs[0])
