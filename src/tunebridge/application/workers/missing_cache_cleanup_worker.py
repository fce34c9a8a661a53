"""Missing cache cleanup worker - sweeps stale missing-track entries.

Hey future me - lookups already ignore entries older than max_age (lazy
expiry), so nothing breaks without this worker. It exists to keep the cache
files from growing forever: every cleanup_interval it drops stale entries on
every server directory we know about, and it folds "Name (2023)" style
duplicates into their base name.

The first sweep runs right at startup, then once per interval.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from tunebridge.domain.ports import IMissingCache

logger = logging.getLogger(__name__)


class MissingCacheCleanupWorker:
    """Periodic age sweep over all persisted missing caches.

    Lifecycle:
    - Created in lifecycle.py during app startup
    - Runs as asyncio task via start()
    - Stopped via stop() during shutdown
    """

    def __init__(
        self,
        cache: IMissingCache,
        max_age: timedelta = timedelta(hours=24),
        check_interval: float = 6 * 3600,
    ) -> None:
        """Initialize the cleanup worker.

        Args:
            cache: Missing cache store to sweep
            max_age: Entries created longer ago than this are dropped
            check_interval: Seconds between sweeps
        """
        self._cache = cache
        self._max_age = max_age
        self._check_interval = check_interval
        self._running = False
        self._stats: dict = {
            "total_removed": 0,
            "removed_last_cycle": 0,
            "last_check_at": None,
        }

    async def start(self) -> None:
        """Run sweeps until stop() is called."""
        self._running = True
        logger.info(
            "MissingCacheCleanupWorker started (interval=%ss, max_age=%s)",
            self._check_interval,
            self._max_age,
        )

        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                # Log but don't crash - next cycle tries again
                logger.exception("MissingCacheCleanupWorker error: %s", e)

            await asyncio.sleep(self._check_interval)

    def stop(self) -> None:
        """Signal the worker to stop."""
        self._running = False
        logger.info("MissingCacheCleanupWorker stopping...")

    async def run_once(self) -> int:
        """Sweep every known server once. Returns number of removed entries."""
        removed = 0
        for server_id in self._cache.known_servers():
            # File IO under a threading lock - keep it off the event loop
            count = await asyncio.to_thread(self._cache.cleanup_older_than, server_id, self._max_age)
            if count:
                logger.info("Removed %d stale missing-cache entries for server %s", count, server_id)
            removed += count

        self._stats["total_removed"] += removed
        self._stats["removed_last_cycle"] = removed
        self._stats["last_check_at"] = datetime.now(UTC)
        return removed

    def get_stats(self) -> dict:
        return {
            **self._stats,
            "running": self._running,
            "check_interval": self._check_interval,
            "max_age_hours": self._max_age.total_seconds() / 3600,
        }


def create_missing_cache_cleanup_worker(
    cache: IMissingCache,
    max_age_hours: float = 24,
    interval_hours: float = 6,
) -> MissingCacheCleanupWorker:
    """Create a cleanup worker from hour-based settings."""
    return MissingCacheCleanupWorker(
        cache=cache,
        max_age=timedelta(hours=max_age_hours),
        check_interval=interval_hours * 3600,
    )
