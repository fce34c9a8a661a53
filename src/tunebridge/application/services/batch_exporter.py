"""Batch exporter - uploads matched ratingKeys into a Plex playlist.

Keys go up in fixed-size batches, one PUT per batch, strictly in the given
order. A failed batch (Plex said no, didn't confirm, or the request blew up)
is counted and we keep going: a partially filled playlist is better than none.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from tunebridge.domain.entities import PlexConnection
from tunebridge.domain.exceptions import ValidationError
from tunebridge.domain.ports import ITargetLibraryClient

logger = logging.getLogger(__name__)

# on_batch(added_so_far, failed_so_far)
BatchCallback = Callable[[int, int], Awaitable[None]]


@dataclass(frozen=True)
class BatchExportResult:
    success: bool
    added: int
    failed: int
    batches: int


def chunked(keys: list[str], size: int) -> list[list[str]]:
    """Split keys into consecutive batches of at most size items."""
    return [keys[i : i + size] for i in range(0, len(keys), size)]


def unique_keys(keys: list[str]) -> list[str]:
    """Drop empty and repeated keys, keeping first-seen order."""
    return list(dict.fromkeys(k for k in keys if k))


class BatchExporter:
    """Upload playlist items to Plex in rate-friendly batches."""

    def __init__(
        self,
        plex_client: ITargetLibraryClient,
        batch_size: int = 50,
        batch_delay: float = 0.2,
    ) -> None:
        """Initialize exporter.

        Args:
            plex_client: Target library client
            batch_size: Keys per PUT request
            batch_delay: Pause in seconds between two batches
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._plex = plex_client
        self._batch_size = batch_size
        self._batch_delay = batch_delay

    async def add_tracks_to_playlist(
        self,
        connection: PlexConnection,
        playlist_id: str,
        keys: list[str],
        server_id: str,
        on_batch: BatchCallback | None = None,
    ) -> BatchExportResult:
        """Add keys to a playlist batch by batch.

        Args:
            connection: Plex endpoint and token
            playlist_id: Target playlist ratingKey
            keys: Plex ratingKeys, in playlist order
            server_id: Machine identifier the keys belong to
            on_batch: Awaited after every batch with cumulative counts

        Returns:
            BatchExportResult; success is False if any batch failed

        Raises:
            ValidationError: If server_id is empty
        """
        if not server_id:
            raise ValidationError("Cannot export to Plex without a server identity")

        batches = chunked(unique_keys(keys), self._batch_size)
        if not batches:
            logger.info("Nothing to add to playlist %s", playlist_id)
            return BatchExportResult(success=True, added=0, failed=0, batches=0)

        added = 0
        failed = 0
        for index, batch in enumerate(batches, start=1):
            try:
                ok = await self._plex.add_items(
                    connection.base_url, playlist_id, batch, server_id, connection.token
                )
            except httpx.HTTPError as e:
                logger.warning(
                    "Batch %d/%d for playlist %s failed: %s", index, len(batches), playlist_id, e
                )
                ok = False

            if ok:
                added += len(batch)
            else:
                failed += len(batch)
                logger.warning(
                    "Batch %d/%d (%d items) was not added to playlist %s",
                    index,
                    len(batches),
                    len(batch),
                    playlist_id,
                )

            if on_batch is not None:
                await on_batch(added, failed)

            if index < len(batches) and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

        logger.info(
            "Exported %d items to playlist %s in %d batches (%d failed)",
            added,
            playlist_id,
            len(batches),
            failed,
        )
        return BatchExportResult(
            success=failed == 0, added=added, failed=failed, batches=len(batches)
        )
