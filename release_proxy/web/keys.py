"""Typed application keys shared by the app factory and the handlers."""

from aiohttp import web

from release_proxy.api.http import SessionPool
from release_proxy.core.download_proxy import DownloadProxy
from release_proxy.core.module_loader import ModuleRegistry
from release_proxy.models.config import ServiceConfig
from release_proxy.storage.catalog_cache import DownloadsCatalogCache
from release_proxy.utils.structured_logger import DownloadEventLogger

CONFIG = web.AppKey("config", ServiceConfig)
REGISTRY = web.AppKey("registry", ModuleRegistry)
SESSION_POOL = web.AppKey("session_pool", SessionPool)
CATALOG_CACHE = web.AppKey("catalog_cache", DownloadsCatalogCache)
DOWNLOAD_PROXY = web.AppKey("download_proxy", DownloadProxy)
EVENT_LOGGER = web.AppKey("event_logger", DownloadEventLogger)
