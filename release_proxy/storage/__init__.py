"""
Storage Layer.

This package handles all data persistence: the backing stores, the
downloads catalog cache and the configuration file.

`DownloadsCatalogCache` lives in `release_proxy.storage.catalog_cache`.
"""

from .backing_store import BackingStore, LocalFileStore, MemoryStore
from .config_manager import ConfigManager

__all__ = ["BackingStore", "ConfigManager", "LocalFileStore", "MemoryStore"]
