"""
Resolves an application/platform pair to a concrete URL and opens the upstream
body for streaming back to the caller.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

import aiohttp

from release_proxy.api.http import SessionPool
from release_proxy.api.release_resolver import ReleaseResolver
from release_proxy.exceptions import BadRequestError, NotFoundError, UpstreamError
from release_proxy.models.catalog import PlatformSource
from release_proxy.storage.catalog_cache import DownloadsCatalogCache
from release_proxy.utils.path import build_download_filename, content_disposition

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
PASSTHROUGH_HEADERS = ("ETag", "Last-Modified", "Cache-Control")


@dataclass
class StreamedFile:
    """
    An open upstream download. Use as an async context manager so the upstream
    connection is always released.
    """

    filename: str
    source_url: str
    headers: dict[str, str]
    fallback: bool
    _response: aiohttp.ClientResponse = field(repr=False)

    async def iter_chunks(self, chunk_size: int = 262144) -> AsyncIterator[bytes]:
        async for chunk in self._response.content.iter_chunked(chunk_size):
            yield chunk

    def close(self) -> None:
        self._response.release()

    async def __aenter__(self) -> "StreamedFile":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class DownloadProxy:
    """Turns an application id and platform into a `StreamedFile`."""

    def __init__(
        self,
        catalog_cache: DownloadsCatalogCache,
        resolver: ReleaseResolver,
        pool: SessionPool,
        connect_timeout: float = 15.0,
        read_timeout: float = 90.0,
        total_timeout: float | None = 600.0,
    ):
        self.catalog_cache = catalog_cache
        self.resolver = resolver
        self._pool = pool
        self._timeout = aiohttp.ClientTimeout(
            total=total_timeout, sock_connect=connect_timeout, sock_read=read_timeout
        )

    async def find_source(self, app_id: str, platform: str) -> PlatformSource:
        """
        Raises:
            BadRequestError: If either parameter is empty.
            NotFoundError: If the app or platform is not in the catalog.
        """
        if not app_id or not platform:
            raise BadRequestError("App ID and platform are required")

        catalog = await self.catalog_cache.load()
        source = catalog.find_source(app_id, platform)
        if source is None:
            log.warning(f"Download info not found for {app_id} on {platform}")
            raise NotFoundError("Download not found for the specified app and platform")
        return source

    async def resolve_url(self, source: PlatformSource) -> tuple[str, bool]:
        """Returns the effective URL and whether it is the source's fallback."""
        url = await self.resolver.resolve_latest_asset(source)
        if url is None:
            return source.fallback_url, True
        return url, False

    async def fetch_download(self, app_id: str, platform: str) -> StreamedFile:
        """
        Resolves and opens the download for `app_id` on `platform`.

        Raises:
            BadRequestError, NotFoundError: On invalid or unknown input.
            UpstreamError: If the asset host fails, carrying its status.
        """
        source = await self.find_source(app_id, platform)
        url, fallback = await self.resolve_url(source)
        log.debug(f"Proxying {app_id}/{platform} from {url} (fallback={fallback})")

        response = await self._open(url)
        filename = build_download_filename(app_id, platform, url)
        return StreamedFile(
            filename=filename,
            source_url=url,
            headers=self._build_headers(response, filename),
            fallback=fallback,
            _response=response,
        )

    async def _open(self, url: str) -> aiohttp.ClientResponse:
        session = await self._pool.get()
        try:
            response = await session.get(
                url,
                allow_redirects=True,
                timeout=self._timeout,
                headers={"Accept-Encoding": "identity"},
            )
        except asyncio.TimeoutError as e:
            raise UpstreamError(f"Timed out downloading file from {url}", status=504) from e
        except aiohttp.ClientError as e:
            raise UpstreamError(f"Failed to download file: {e}") from e

        if not response.ok:
            response.release()
            raise UpstreamError(
                f"Failed to download file: {response.reason}", status=response.status
            )
        return response

    @staticmethod
    def _build_headers(response: aiohttp.ClientResponse, filename: str) -> dict[str, str]:
        upstream = response.headers
        headers = {
            "Content-Type": upstream.get("Content-Type", DEFAULT_CONTENT_TYPE),
            "Content-Disposition": content_disposition(filename),
        }

        # aiohttp decodes compressed bodies, so the upstream length only holds for
        # identity responses.
        encoding = upstream.get("Content-Encoding", "identity")
        if encoding.lower() == "identity" and "Content-Length" in upstream:
            headers["Content-Length"] = upstream["Content-Length"]

        for name in PASSTHROUGH_HEADERS:
            if value := upstream.get(name):
                headers[name] = value
        return headers
