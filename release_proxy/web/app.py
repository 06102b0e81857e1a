"""
Builds the aiohttp application serving the downloads API.
"""

import logging
from collections.abc import AsyncIterator
from pathlib import Path

from aiohttp import web

from release_proxy.api.http import SessionPool
from release_proxy.api.release_resolver import ReleaseResolver
from release_proxy.core.download_proxy import DownloadProxy
from release_proxy.core.module_loader import ModuleRegistry, create_module_factory
from release_proxy.models.config import ServiceConfig
from release_proxy.storage.catalog_cache import DownloadsCatalogCache
from release_proxy.utils.structured_logger import create_event_logger

from .keys import (
    CATALOG_CACHE,
    CONFIG,
    DOWNLOAD_PROXY,
    EVENT_LOGGER,
    REGISTRY,
    SESSION_POOL,
)
from .routes import error_middleware, routes

log = logging.getLogger(__name__)


async def _outbound_session(app: web.Application) -> AsyncIterator[None]:
    """Closes the shared outbound session and event log on shutdown."""
    yield
    await app[SESSION_POOL].close()
    app[EVENT_LOGGER].logger.close()


def create_app(
    config: ServiceConfig, registry: ModuleRegistry | None = None
) -> web.Application:
    """
    Wires the service components into an aiohttp application.

    Args:
        config: Validated service configuration.
        registry: Backing module registry; built from `config` when omitted.
    """
    registry = registry or ModuleRegistry(create_module_factory(config))
    pool = SessionPool(user_agent=config.user_agent)
    catalog_cache = DownloadsCatalogCache(registry, ttl=config.cache_ttl)
    resolver = ReleaseResolver(
        pool,
        api_url=config.release_api_url,
        timeout=config.resolve_timeout,
        token=config.github_token,
    )

    app = web.Application(middlewares=[error_middleware])
    app[CONFIG] = config
    app[REGISTRY] = registry
    app[SESSION_POOL] = pool
    app[CATALOG_CACHE] = catalog_cache
    app[DOWNLOAD_PROXY] = DownloadProxy(
        catalog_cache,
        resolver,
        pool,
        connect_timeout=config.download_connect_timeout,
        read_timeout=config.download_read_timeout,
        total_timeout=config.download_timeout,
    )
    app[EVENT_LOGGER] = create_event_logger(
        Path(config.log_dir).expanduser() if config.log_dir else None
    )
    app.cleanup_ctx.append(_outbound_session)

    for route in routes:
        add = getattr(app.router, f"add_{route.method.lower()}")
        add(config.api_prefix + route.path, route.handler, **route.kwargs)
    log.debug(f"Registered {len(routes)} routes under prefix '{config.api_prefix}'")
    return app


def run(config: ServiceConfig) -> None:
    """Runs the service until interrupted."""
    web.run_app(
        create_app(config),
        host=config.host,
        port=config.port,
        print=None,
        access_log=logging.getLogger("release_proxy.access"),
    )
