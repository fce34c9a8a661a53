"""Request throttle for the Spotify Web API.

Hey future me - Spotify allows roughly 180 requests per rolling minute per app
and answers 429 beyond that. An "export all" pages through every playlist of
the user, which easily means hundreds of GETs back to back, so every Spotify
call takes a token from this bucket first:

- the bucket starts full (burst) and refills continuously (refill_rate/s)
- no token -> sleep exactly until the next one is due
- 429 -> sleep Retry-After when Spotify sends it, else the current backoff,
  which doubles per consecutive 429 and drops back after any other response

Plex is our own server on the LAN; it doesn't get a limiter.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    max_tokens: int = 10
    refill_rate: float = 2.0  # tokens per second
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    # Retry-After can be minutes long; a lower cap just triggers the next 429
    max_backoff_seconds: float = 600.0


# 2 req/s sustained stays well below Spotify's rolling window
SPOTIFY_LIMITS = RateLimiterConfig(max_tokens=10, refill_rate=2.0)


@dataclass
class RateLimiter:
    """Token bucket plus 429 backoff, shared by all callers of one API."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _stamp: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    def _top_up(self) -> None:
        now = time.monotonic()
        gained = (now - self._stamp) * self.config.refill_rate
        self._tokens = min(float(self.config.max_tokens), self._tokens + gained)
        self._stamp = now

    async def acquire(self) -> None:
        """Wait for and consume one request token."""
        async with self._lock:
            self._top_up()
            if self._tokens < 1.0:
                delay = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug("%s throttle: sleeping %.2fs for a token", self.name, delay)
                await asyncio.sleep(delay)
                self._top_up()
            self._tokens = max(self._tokens - 1.0, 0.0)

    async def handle_rate_limit_response(self, retry_after: int | None = None) -> float:
        """Back off after a 429.

        The bucket is emptied so queued callers wait too, and the backoff for
        the next 429 in a row is doubled.

        Args:
            retry_after: Seconds from the Retry-After header, None if absent

        Returns:
            Seconds slept
        """
        async with self._lock:
            delay = self._current_backoff if retry_after is None else float(retry_after)
            delay = min(delay, self.config.max_backoff_seconds)
            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            self._tokens = 0.0
        logger.warning("%s answered 429, pausing %.1fs", self.name, delay)
        await asyncio.sleep(delay)
        return delay

    def reset_backoff(self) -> None:
        """Forget earlier 429s (call after any non-429 response)."""
        self._current_backoff = self.config.initial_backoff_seconds

    @property
    def current_backoff(self) -> float:
        return self._current_backoff


_spotify_limiter: RateLimiter | None = None


def get_spotify_limiter() -> RateLimiter:
    """Process-wide limiter for Spotify; every SpotifyClient shares it."""
    global _spotify_limiter
    if _spotify_limiter is None:
        _spotify_limiter = RateLimiter(config=SPOTIFY_LIMITS, name="spotify")
    return _spotify_limiter


__all__ = ["SPOTIFY_LIMITS", "RateLimiter", "RateLimiterConfig", "get_spotify_limiter"]
