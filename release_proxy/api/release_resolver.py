"""
Resolves the newest downloadable asset of a repository through the GitHub
releases API.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from release_proxy.exceptions import UpstreamError
from release_proxy.models.catalog import PlatformSource
from release_proxy.utils.circuit_breaker import CircuitBreaker, CircuitBreakerError

from .http import SessionPool

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ReleaseAsset:
    """A published release asset."""

    name: str
    browser_download_url: str

    @classmethod
    def from_api_response(cls, asset_data: Any) -> "ReleaseAsset | None":
        """Returns None for entries missing a name or download URL."""
        if not isinstance(asset_data, dict):
            return None
        name = asset_data.get("name")
        url = asset_data.get("browser_download_url")
        if not isinstance(name, str) or not isinstance(url, str) or not name or not url:
            return None
        return cls(name=name, browser_download_url=url)


class ReleaseResolver:
    """
    Finds the download URL of the first asset of a repository's latest release
    whose name matches a source's asset pattern.
    """

    ACCEPT = "application/vnd.github.v3+json"

    def __init__(
        self,
        pool: SessionPool,
        api_url: str = "https://api.github.com",
        timeout: float = 15.0,
        token: str = "",
        circuit_breaker: CircuitBreaker | None = None,
    ):
        """
        Args:
            pool: Shared outbound session pool (sets the User-Agent).
            api_url: Base URL of the releases API.
            timeout: Total seconds allowed per API query.
            token: Optional API token sent as a bearer credential.
            circuit_breaker: Guards the API; a fresh one is created when omitted.
        """
        self._pool = pool
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            "release-api", failure_threshold=5, recovery_timeout=60
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": self.ACCEPT}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def fetch_latest_assets(self, repo: str) -> list[ReleaseAsset]:
        """
        Returns the assets of the latest published release, in upstream order.

        Raises:
            UpstreamError: On a non-2xx status or a malformed response.
            CircuitBreakerError: If the API is currently considered down.
            aiohttp.ClientError, asyncio.TimeoutError: On network failures.
        """
        url = f"{self.api_url}/repos/{repo}/releases/latest"
        session = await self._pool.get()
        async with self._circuit_breaker:
            async with session.get(
                url,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as r:
                if r.status == 404:
                    # Repository without releases; not an API outage.
                    log.debug(f"No published release for '{repo}'")
                    return []
                if not 200 <= r.status < 300:
                    raise UpstreamError(
                        f"Release API error for '{repo}': {r.status} {r.reason}",
                        status=r.status,
                    )
                release = await r.json(content_type=None)

        assets = release.get("assets") if isinstance(release, dict) else None
        if not isinstance(assets, list):
            raise UpstreamError(f"Release API returned no asset list for '{repo}'")
        return [a for a in map(ReleaseAsset.from_api_response, assets) if a]

    async def resolve_latest_asset(self, source: PlatformSource) -> str | None:
        """
        Returns the download URL of the first matching asset, or None when
        nothing matches or the query fails for any reason. Never raises.
        """
        try:
            pattern = source.compiled_pattern()
            assets = await self.fetch_latest_assets(source.repo)
        except CircuitBreakerError as e:
            log.debug(f"Skipping release lookup for '{source.repo}': {e}")
            return None
        except (aiohttp.ClientError, asyncio.TimeoutError, UpstreamError, ValueError) as e:
            log.warning(f"Error fetching latest release of '{source.repo}': {e!r}")
            return None
        except Exception as e:
            log.error(f"Unexpected error resolving '{source.repo}': {e!r}")
            return None

        asset = next((a for a in assets if pattern.search(a.name)), None)
        if asset is None:
            log.debug(
                f"No asset of '{source.repo}' matches '{source.asset_pattern}'"
            )
            return None
        return asset.browser_download_url
