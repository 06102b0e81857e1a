"""
Shared aiohttp session for outbound requests to the release API and asset hosts.
"""

import asyncio
import logging

import aiohttp

log = logging.getLogger(__name__)


class SessionPool:
    """
    Lazily creates one aiohttp ClientSession and hands it to every caller.

    Request timeouts are set per call; the session itself has none.
    """

    def __init__(self, user_agent: str, limit: int = 100, limit_per_host: int = 16):
        self.user_agent = user_agent
        self.limit = limit
        self.limit_per_host = limit_per_host
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    async def get(self) -> aiohttp.ClientSession:
        """Gets or creates the shared session."""
        async with self._lock:
            if self._session and not self._session.closed:
                return self._session

            connector = aiohttp.TCPConnector(
                limit=self.limit,
                limit_per_host=self.limit_per_host,
                ttl_dns_cache=600,  # 10 minutes
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=None),
                headers={"User-Agent": self.user_agent},
            )
            log.debug(f"Created outbound session with limit_per_host={self.limit_per_host}")
            return self._session

    async def close(self) -> None:
        """Closes the shared session."""
        async with self._lock:
            if self._session and not self._session.closed:
                await self._session.close()
                log.debug("Outbound session closed.")
            self._session = None
