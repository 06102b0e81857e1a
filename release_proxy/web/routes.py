"""
aiohttp request handlers for the downloads HTTP surface.
"""

import logging
import time
from datetime import datetime, timezone
from urllib.parse import quote

from aiohttp import hdrs, web
from pydantic import ValidationError

from release_proxy.exceptions import BadRequestError, NotFoundError, ReleaseProxyError
from release_proxy.models.catalog import DownloadsCatalog

from .keys import CATALOG_CACHE, CONFIG, DOWNLOAD_PROXY, EVENT_LOGGER

log = logging.getLogger(__name__)

routes = web.RouteTableDef()

STREAM_STARTED = "release_proxy.stream_started"


def _listing(catalog: DownloadsCatalog, prefix: str) -> list[dict]:
    """Flattens the catalog into one client-friendly entry per (app, platform)."""
    today = datetime.now(timezone.utc).date().isoformat()
    return [
        {
            "name": entry.name,
            # Placeholders: neither value is looked up upstream.
            "version": "latest",
            "platform": platform,
            "size": 0,
            "download_url": (
                f"{prefix}/downloads/{quote(entry.name, safe='')}/{quote(platform, safe='')}"
            ),
            "release_date": today,
            "description": entry.description,
        }
        for entry in catalog.entries
        for platform in entry.platforms
    ]


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Renders service errors as JSON `{error}` payloads with a matching status."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except ReleaseProxyError as e:
        if request.get(STREAM_STARTED):
            raise
        log.warning(f"{request.method} {request.path} failed: {e}")
        return web.json_response({"error": str(e)}, status=e.http_status)
    except Exception:
        if request.get(STREAM_STARTED):
            raise
        log.exception(f"Unhandled error processing {request.method} {request.path}")
        return web.json_response(
            {"error": "Failed to process request"}, status=500
        )


@routes.get("/downloads")
async def list_downloads(request: web.Request) -> web.Response:
    config = request.app[CONFIG]
    catalog = await request.app[CATALOG_CACHE].load()
    return web.json_response(_listing(catalog, config.api_prefix))


@routes.post("/downloads")
async def refresh_downloads(request: web.Request) -> web.Response:
    await request.app[CATALOG_CACHE].force_refresh()
    return web.json_response(
        {"success": True, "message": "Downloads cache updated successfully"}
    )


@routes.get("/downloads/{app_id}/{platform}")
async def proxy_download(request: web.Request) -> web.StreamResponse:
    """Streams the resolved binary with a friendly filename."""
    app_id = request.match_info["app_id"]
    platform = request.match_info["platform"]
    events = request.app[EVENT_LOGGER]
    config = request.app[CONFIG]
    events.download_requested(app_id, platform)

    try:
        streamed = await request.app[DOWNLOAD_PROXY].fetch_download(app_id, platform)
    except ReleaseProxyError as e:
        if not isinstance(e, (BadRequestError, NotFoundError)):
            events.download_failed(app_id, platform, str(e), e.http_status)
        raise

    events.download_resolved(app_id, platform, streamed.source_url, streamed.fallback)
    start_time = time.monotonic()
    bytes_sent = 0
    async with streamed:
        response = web.StreamResponse(status=200, headers=streamed.headers)
        request[STREAM_STARTED] = True
        await response.prepare(request)
        if request.method == hdrs.METH_HEAD:
            await response.write_eof()
            return response
        try:
            async for chunk in streamed.iter_chunks(config.chunk_size):
                await response.write(chunk)
                bytes_sent += len(chunk)
        except Exception as e:
            # Headers are already sent; the connection is aborted instead.
            events.download_failed(app_id, platform, repr(e), 502)
            raise
        await response.write_eof()

    events.download_completed(
        app_id, platform, bytes_sent, time.monotonic() - start_time
    )
    return response


@routes.get("/admin/downloads")
async def get_catalog_document(request: web.Request) -> web.Response:
    catalog = await request.app[CATALOG_CACHE].read_document()
    if catalog is None:
        raise NotFoundError("Downloads cache not found")
    return web.json_response(catalog.to_document())


@routes.post("/admin/downloads")
@routes.put("/admin/downloads")
async def replace_catalog(request: web.Request) -> web.Response:
    """Persists a custom catalog sent as `{"downloads": [...]}`."""
    try:
        body = await request.json()
    except ValueError as e:
        raise BadRequestError("Request body must be JSON.") from e

    downloads = body.get("downloads") if isinstance(body, dict) else None
    if not isinstance(downloads, list):
        raise BadRequestError("Invalid request body. Expected an array of downloads.")
    try:
        catalog = DownloadsCatalog.model_validate({"timestamp": 0, "downloads": downloads})
    except ValidationError as e:
        raise BadRequestError(f"Invalid downloads: {e.error_count()} validation errors") from e

    await request.app[CATALOG_CACHE].replace(catalog.entries)
    return web.json_response(
        {"success": True, "message": "Downloads cache updated successfully"}
    )
