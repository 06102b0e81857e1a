"""
A TTL-bound cache of the downloads catalog, persisted as a single JSON document
in the backing store.
"""

import logging
import time
from collections.abc import Callable
from contextlib import suppress

from pydantic import ValidationError

from release_proxy.core.module_loader import ADMIN_VIEW, ModuleRegistry
from release_proxy.exceptions import DirectoryExistsError, ReleaseProxyError
from release_proxy.models.catalog import AppEntry, DownloadsCatalog, default_entries
from release_proxy.models.config import DEFAULT_CACHE_TTL
from release_proxy.storage.backing_store import BackingStore

log = logging.getLogger(__name__)

CATALOG_DIR = "downloads"
CATALOG_PATH = f"{CATALOG_DIR}/available_downloads.json"


class DownloadsCatalogCache:
    """
    Owns catalog freshness. Reads never fail: any storage problem falls back to
    the in-memory default catalog and leaves the persisted document untouched.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        default_catalog: Callable[[], list[AppEntry]] = default_entries,
        ttl: int = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            registry: Registry providing the admin view of the backing store.
            default_catalog: Returns the seed entries used on every refresh.
            ttl: Seconds a persisted catalog stays fresh.
            clock: Returns the current epoch time in seconds.
        """
        self._registry = registry
        self._default_catalog = default_catalog
        self.ttl = ttl
        self._clock = clock

    async def _store(self) -> BackingStore:
        return await self._registry.acquire(ADMIN_VIEW)

    def _now(self) -> int:
        return int(self._clock())

    def _default_document(self) -> DownloadsCatalog:
        return DownloadsCatalog(generated_at=self._now(), entries=self._default_catalog())

    async def load(self) -> DownloadsCatalog:
        """Returns the persisted catalog while fresh, refreshing it otherwise."""
        try:
            store = await self._store()
            if await store.exists(CATALOG_PATH):
                catalog = self._parse(await store.read_file(CATALOG_PATH))
                if catalog is not None and catalog.is_fresh(self._clock(), self.ttl):
                    return catalog
                log.debug("Downloads catalog is stale or malformed, refreshing.")
            else:
                log.debug("No downloads catalog persisted yet, refreshing.")
            return await self._refresh(store, self._default_document())
        except (ReleaseProxyError, OSError) as e:
            log.error(f"Error loading downloads catalog, serving defaults: {e}")
            return self._default_document()

    async def force_refresh(self) -> DownloadsCatalog:
        """
        Rewrites the catalog regardless of freshness.

        Raises:
            StorageError: If the backing store cannot be written.
            InitializationError: If the backing store cannot be opened.
        """
        store = await self._store()
        return await self._refresh(store, self._default_document())

    async def read_document(self) -> DownloadsCatalog | None:
        """Returns the persisted catalog regardless of age, or None if absent or malformed."""
        store = await self._store()
        if not await store.exists(CATALOG_PATH):
            return None
        return self._parse(await store.read_file(CATALOG_PATH))

    async def replace(self, entries: list[AppEntry]) -> DownloadsCatalog:
        """Persists a custom catalog stamped with the current time."""
        store = await self._store()
        catalog = DownloadsCatalog(generated_at=self._now(), entries=entries)
        return await self._refresh(store, catalog)

    async def _refresh(
        self, store: BackingStore, catalog: DownloadsCatalog
    ) -> DownloadsCatalog:
        await self._ensure_directory(store)
        await store.write_file(
            CATALOG_PATH, catalog.model_dump_json(by_alias=True, indent=2)
        )
        log.info(
            f"Downloads catalog written with {len(catalog.entries)} entries "
            f"(timestamp {catalog.generated_at})."
        )
        return catalog

    @staticmethod
    async def _ensure_directory(store: BackingStore) -> None:
        if await store.exists(CATALOG_DIR):
            return
        # Another task may have created it first.
        with suppress(DirectoryExistsError):
            await store.create_directory(CATALOG_DIR)

    @staticmethod
    def _parse(raw: str) -> DownloadsCatalog | None:
        try:
            return DownloadsCatalog.model_validate_json(raw)
        except ValidationError as e:
            log.warning(f"Persisted downloads catalog is malformed: {e.error_count()} errors")
            return None
