"""Application lifecycle management for startup and shutdown tasks.

Everything long-lived is built here ONCE and parked on app.state:

- missing_cache: MissingCacheStore (JSON files under data_dir)
- progress_channel: ProgressChannel (job id -> SSE sink)
- plex_client / spotify_client: httpx clients borrowing the shared pool
- export_service / liked_songs_service: the use cases
- export_runner: ExportJobRunner (one asyncio task per export)
- cleanup_worker: MissingCacheCleanupWorker (periodic age sweep)
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress
from datetime import timedelta

from fastapi import FastAPI

from tunebridge.application.services.batch_exporter import BatchExporter
from tunebridge.application.services.liked_songs_service import LikedSongsCloneService
from tunebridge.application.services.playlist_export_service import PlaylistExportService
from tunebridge.application.services.progress_channel import ProgressChannel
from tunebridge.application.services.track_matcher import TrackMatcher
from tunebridge.application.workers.export_job_runner import ExportJobRunner
from tunebridge.application.workers.missing_cache_cleanup_worker import (
    create_missing_cache_cleanup_worker,
)
from tunebridge.config import Settings, get_settings
from tunebridge.infrastructure.integrations.http_pool import HttpClientPool
from tunebridge.infrastructure.integrations.plex_client import PlexClient
from tunebridge.infrastructure.integrations.spotify_client import SpotifyClient
from tunebridge.infrastructure.observability import configure_logging
from tunebridge.infrastructure.persistence import MissingCacheStore

logger = logging.getLogger(__name__)


def build_services(app: FastAPI, settings: Settings) -> None:
    """Wire clients, cache and services onto app.state (no background tasks)."""
    missing_cache = MissingCacheStore(settings.missing_cache_dir)
    channel = ProgressChannel()
    plex_client = PlexClient(settings.plex)
    spotify_client = SpotifyClient(settings.spotify)

    export_service = PlaylistExportService(
        spotify_client=spotify_client,
        plex_client=plex_client,
        matcher=TrackMatcher(plex_client, fuzzy_max_score=settings.plex.fuzzy_max_score),
        exporter=BatchExporter(
            plex_client,
            batch_size=settings.plex.batch_size,
            batch_delay=settings.plex.batch_delay,
        ),
        missing_cache=missing_cache,
        missing_max_age=timedelta(hours=settings.missing_cache.max_age_hours),
        api_delay=settings.spotify.api_delay,
    )

    app.state.settings = settings
    app.state.missing_cache = missing_cache
    app.state.progress_channel = channel
    app.state.plex_client = plex_client
    app.state.spotify_client = spotify_client
    app.state.export_service = export_service
    app.state.liked_songs_service = LikedSongsCloneService(spotify_client)
    app.state.export_runner = ExportJobRunner(export_service, channel)
    app.state.cleanup_worker = create_missing_cache_cleanup_worker(
        missing_cache,
        max_age_hours=settings.missing_cache.max_age_hours,
        interval_hours=settings.missing_cache.cleanup_interval_hours,
    )


# Listen future me, everything before `yield` runs at STARTUP, everything after
# runs at SHUTDOWN. The try/finally makes sure running exports get cancelled
# (each sends its "error:cancelled" frame) and the HTTP pool gets closed even
# if startup blew up halfway.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    cleanup_task: asyncio.Task | None = None
    try:
        settings.ensure_directories()
        logger.info("Storage directories initialized at %s", settings.data_dir)

        build_services(app, settings)

        cleanup_task = asyncio.create_task(
            app.state.cleanup_worker.start(), name="missing-cache-cleanup"
        )
        logger.info("Missing cache cleanup worker started")

        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        # 1. Stop the sweep worker (it sleeps for hours, so cancel it)
        worker = getattr(app.state, "cleanup_worker", None)
        if worker is not None:
            worker.stop()
        if cleanup_task is not None:
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task

        # 2. Cancel running exports
        runner = getattr(app.state, "export_runner", None)
        if runner is not None:
            try:
                await runner.shutdown()
            except Exception as e:
                logger.exception("Error cancelling export jobs: %s", e)

        # 3. Close HTTP client pool (release all TCP connections)
        try:
            await HttpClientPool.close()
            logger.info("HTTP client pool closed")
        except Exception as e:
            logger.exception("Error closing HTTP client pool: %s", e)
