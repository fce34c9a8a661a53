"""One pooled httpx client for every outgoing request.

Hey future me - an export fires hundreds of small requests at the same Plex
server (up to 3 searches per track) and pages through Spotify. A fresh
AsyncClient per call would redo the TLS handshake every time, so PlexClient and
SpotifyClient both borrow THE client from here. lifecycle.py closes it on
shutdown; the next get_client() after that simply builds a new one.

    client = await HttpClientPool.get_client(timeout=settings.timeout)
    response = await client.get(url, params=params)
"""

import asyncio
import logging
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Lazily created, process-wide httpx.AsyncClient."""

    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None

    DEFAULT_TIMEOUT: ClassVar[float] = 30.0
    # One Plex server and one Spotify host; a handful of warm connections each
    KEEPALIVE: ClassVar[int] = 10
    MAX_CONNECTIONS: ClassVar[int] = 20

    @classmethod
    def _guard(cls) -> asyncio.Lock:
        # Not created at import time: the lock must belong to the running loop
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(cls, timeout: float | None = None) -> httpx.AsyncClient:
        """Return the shared client, building it on first use.

        Args:
            timeout: Seconds per request; only the first caller's value counts
        """
        async with cls._guard():
            if cls._client is None:
                seconds = timeout or cls.DEFAULT_TIMEOUT
                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(seconds),
                    limits=httpx.Limits(
                        max_keepalive_connections=cls.KEEPALIVE,
                        max_connections=cls.MAX_CONNECTIONS,
                    ),
                    # plex.direct endpoints and Spotify both speak HTTP/2
                    http2=True,
                    follow_redirects=True,
                )
                logger.info("Opened shared HTTP client (timeout %.0fs)", seconds)
            return cls._client

    @classmethod
    async def close(cls) -> None:
        """Release all pooled connections."""
        async with cls._guard():
            client, cls._client = cls._client, None
        if client is not None:
            await client.aclose()
            logger.info("Shared HTTP client closed")
