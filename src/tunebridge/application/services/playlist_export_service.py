"""Playlist export service - the Spotify → Plex sync orchestrator.

Hey future me - this is THE top-level flow of an export:

1. resolve export name (explicit override or "Spotify - {source name}")
2. skip tracks the missing cache already knows are not on this Plex server
   (entries older than the cache max age are ignored, so they get re-tried)
3. match the rest (TrackMatcher: exact → fuzzy → global)
4. reuse the Plex playlist with the same title (case-insensitive) or create one
5. upload found keys per server identity (BatchExporter)
6. merge new misses into the cache, or drop the entry if nothing is missing
7. return an ExportSummary

Every step narrates itself as a ProgressEvent through `report`. export_one()
NEVER emits the terminal Done/Error event - run_export_job() does, exactly
once, so a subscriber always sees one definitive end of stream.

Credentials are explicit parameters (SyncCredentials), no session lookup here.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import timedelta
from uuid import uuid4

import httpx

from tunebridge.application.services.batch_exporter import BatchCallback, BatchExporter
from tunebridge.application.services.progress_channel import ProgressChannel
from tunebridge.application.services.track_matcher import TrackMatcher
from tunebridge.domain.entities import (
    LIKED_SONGS_ID,
    ExportJob,
    ExportJobState,
    ExportSummary,
    PlexConnection,
    TrackRef,
    dedupe_missing,
)
from tunebridge.domain.exceptions import DomainException
from tunebridge.domain.ports import IMissingCache, ISourceMusicClient, ITargetLibraryClient
from tunebridge.domain.value_objects.naming import (
    LIKED_SONGS_NAME,
    export_playlist_title,
    resolve_export_name,
)
from tunebridge.domain.value_objects.progress_events import (
    BatchProgress,
    Done,
    Error,
    ProgressEvent,
    Started,
    Status,
)

logger = logging.getLogger(__name__)

ProgressReporter = Callable[[ProgressEvent], Awaitable[None]]

# Status line every N searched tracks
SEARCH_STATUS_EVERY = 10


async def _ignore_progress(event: ProgressEvent) -> None:
    return None


@dataclass(frozen=True)
class SyncCredentials:
    """Tokens for both services, supplied by the caller per request."""

    spotify_token: str = field(repr=False)
    plex_token: str = field(repr=False)


def user_message(exc: BaseException) -> str:
    """Short human-readable text for a terminal error frame."""
    if isinstance(exc, DomainException):
        return exc.message
    # httpx puts the full URL (Plex token included) into its messages
    if isinstance(exc, httpx.HTTPStatusError):
        return f"{exc.request.url.host} returned HTTP {exc.response.status_code}"
    if isinstance(exc, httpx.HTTPError):
        try:
            host = exc.request.url.host
        except RuntimeError:
            host = "upstream service"
        return f"Request to {host} failed ({exc.__class__.__name__})"
    return str(exc) or exc.__class__.__name__


class PlaylistExportService:
    """Orchestrates Spotify → Plex playlist exports."""

    def __init__(
        self,
        spotify_client: ISourceMusicClient,
        plex_client: ITargetLibraryClient,
        matcher: TrackMatcher,
        exporter: BatchExporter,
        missing_cache: IMissingCache,
        missing_max_age: timedelta = timedelta(days=1),
        api_delay: float = 0.5,
    ) -> None:
        self._spotify = spotify_client
        self._plex = plex_client
        self._matcher = matcher
        self._exporter = exporter
        self._cache = missing_cache
        self._missing_max_age = missing_max_age
        self._api_delay = api_delay

    # =========================================================================
    # Building blocks
    # =========================================================================

    async def connect(self, plex_token: str) -> PlexConnection:
        """Discover the Plex server and its music section.

        Raises:
            PlexDiscoveryError: No server/connection/music section
        """
        base_url, server_id = await self._plex.discover_server(plex_token)
        section_key = await self._plex.find_music_section(base_url, plex_token)
        return PlexConnection(
            base_url=base_url, token=plex_token, server_id=server_id, section_key=section_key
        )

    async def load_source(
        self, source_playlist_id: str, explicit_name: str | None, spotify_token: str
    ) -> tuple[str, list[TrackRef]]:
        """Fetch (export name, tracks) of a Spotify playlist or the liked songs."""
        if source_playlist_id == LIKED_SONGS_ID:
            tracks = await self._spotify.get_saved_tracks(spotify_token)
            return resolve_export_name(explicit_name, LIKED_SONGS_NAME), tracks

        if explicit_name and explicit_name.strip():
            name = explicit_name.strip()
        else:
            playlist = await self._spotify.get_playlist(source_playlist_id, spotify_token)
            name = resolve_export_name(None, playlist.name or source_playlist_id)
        tracks = await self._spotify.get_playlist_tracks(source_playlist_id, spotify_token)
        return name, tracks

    async def resolve_target_playlist(self, connection: PlexConnection, name: str) -> str:
        """Reuse an existing playlist with the same title, else create one.

        A playlist we created earlier today carries the date suffix, so that
        title counts as "the same" too.
        """
        wanted = {name.casefold(), export_playlist_title(name).casefold()}
        for playlist in await self._plex.list_playlists(connection.base_url, connection.token):
            if playlist.title.casefold() in wanted:
                logger.info("Reusing Plex playlist '%s' (%s)", playlist.title, playlist.id)
                return playlist.id
        return await self._plex.create_playlist(
            connection.base_url, connection.section_key, name, connection.token
        )

    # =========================================================================
    # Export operations
    # =========================================================================

    async def export_one(
        self,
        source_playlist_id: str,
        explicit_name: str | None,
        credentials: SyncCredentials,
        report: ProgressReporter | None = None,
        connection: PlexConnection | None = None,
        job: ExportJob | None = None,
    ) -> ExportSummary:
        """Export one Spotify playlist into Plex.

        Args:
            source_playlist_id: Spotify playlist id or LIKED_SONGS_ID
            explicit_name: Export name override (None = derive from source)
            credentials: Spotify and Plex tokens
            report: Awaited with every progress event (never a terminal one)
            connection: Already discovered Plex connection (export_all reuses one)
            job: Job record to keep counters/state on

        Returns:
            ExportSummary with added/missing/failed/total
        """
        report = report or _ignore_progress
        job = job or ExportJob(job_id=uuid4().hex, source_playlist_id=source_playlist_id)

        if connection is None:
            connection = await self.connect(credentials.plex_token)

        name, tracks = await self.load_source(
            source_playlist_id, explicit_name, credentials.spotify_token
        )
        total = len(tracks)
        job.target_playlist_name = name
        job.total = total
        await report(Started(name))
        await report(Status(f"Loaded {total} tracks from Spotify"))

        # --- skip known misses ------------------------------------------------
        entry = self._cache.get_entry(connection.server_id, name, max_age=self._missing_max_age)
        known_missing = entry.keys() if entry is not None else set()
        skipped = [t for t in tracks if t.missing_entry().key in known_missing]
        candidates = [t for t in tracks if t.missing_entry().key not in known_missing]
        if skipped:
            await report(
                Status(f"Skipping {len(skipped)} tracks already known to be missing on Plex")
            )

        # --- search -----------------------------------------------------------
        job.advance(ExportJobState.SEARCHING)

        async def on_search_progress(done: int, count: int) -> None:
            if done % SEARCH_STATUS_EVERY == 0 or done == count:
                await report(Status(f"Searching on Plex: {done}/{count}"))

        results = await self._matcher.match(candidates, connection, on_progress=on_search_progress)
        found = [r for r in results if r.found]
        new_missing = [r.track.missing_entry().format() for r in results if not r.found]
        missing = dedupe_missing([*(t.missing_entry().format() for t in skipped), *new_missing])
        missing_count = len(missing)
        job.missing = missing_count
        await report(BatchProgress(added=0, missing=missing_count, total=total))

        # --- upload -----------------------------------------------------------
        added = 0
        failed = 0
        if found:
            job.advance(ExportJobState.EXPORTING)
            playlist_id = await self.resolve_target_playlist(connection, name)

            # Multi-server accounts: one exporter run per server identity, in
            # first-seen order so batches keep the match order
            keys_by_server: dict[str, list[str]] = {}
            for result in found:
                keys_by_server.setdefault(result.server_id, []).append(result.target_key or "")

            for server_id, keys in keys_by_server.items():
                batch_result = await self._exporter.add_tracks_to_playlist(
                    connection,
                    playlist_id,
                    keys,
                    server_id,
                    on_batch=self._batch_reporter(report, added, missing_count, total),
                )
                added += batch_result.added
                failed += batch_result.failed
                job.added, job.failed = added, failed
        else:
            await report(Status("No tracks found on Plex, nothing to add"))

        # --- cache ------------------------------------------------------------
        job.advance(ExportJobState.FINALIZING)
        if new_missing:
            self._cache.update(
                connection.server_id, name, new_missing, max_age=self._missing_max_age
            )
        elif not skipped:
            self._cache.remove_entry(connection.server_id, name)

        job.added, job.failed, job.missing = added, failed, missing_count
        job.advance(ExportJobState.DONE)
        logger.info(
            "Export '%s' finished: added=%d missing=%d failed=%d total=%d",
            name,
            added,
            missing_count,
            failed,
            total,
        )
        return ExportSummary(
            exported_name=name, added=added, missing=missing, failed=failed, total=total
        )

    @staticmethod
    def _batch_reporter(
        report: ProgressReporter, added_before: int, missing: int, total: int
    ) -> BatchCallback:
        async def on_batch(added_so_far: int, failed_so_far: int) -> None:
            await report(
                BatchProgress(added=added_before + added_so_far, missing=missing, total=total)
            )

        return on_batch

    async def export_all(
        self,
        credentials: SyncCredentials,
        report: ProgressReporter | None = None,
        connection: PlexConnection | None = None,
        job: ExportJob | None = None,
    ) -> list[ExportSummary]:
        """Export every playlist of the Spotify user, one after another.

        A playlist that fails is logged and skipped, the rest still run. When
        a job is given, every finished playlist is added to its totals right
        away, so a status poll sees the batch grow.
        """
        report = report or _ignore_progress
        if connection is None:
            connection = await self.connect(credentials.plex_token)
        playlists = await self._spotify.get_user_playlists(credentials.spotify_token)
        await report(Status(f"Exporting {len(playlists)} playlists"))

        summaries: list[ExportSummary] = []
        for index, playlist in enumerate(playlists):
            if index:
                await asyncio.sleep(self._api_delay)
            try:
                summary = await self.export_one(
                    playlist.id, None, credentials, report=report, connection=connection
                )
            except Exception as e:
                # One broken playlist must not stop the others
                logger.exception("Export of playlist '%s' (%s) failed", playlist.name, playlist.id)
                await report(Status(f"Export of '{playlist.name}' failed: {user_message(e)}"))
                continue
            summaries.append(summary)
            if job is not None:
                job.record_playlist(summary)
        return summaries

    # =========================================================================
    # Streaming variant
    # =========================================================================

    async def run_export_job(
        self,
        job: ExportJob,
        credentials: SyncCredentials,
        channel: ProgressChannel,
        explicit_name: str | None = None,
        connection: PlexConnection | None = None,
    ) -> ExportSummary | None:
        """Run one export narrating into the progress channel.

        Exactly one terminal frame (done:... or error:...) is sent, then the
        job's sink is released, on every path: success, failure, cancellation.
        Exceptions never escape except CancelledError (re-raised so the task
        really ends cancelled).
        """

        async def report(event: ProgressEvent) -> None:
            await channel.send(job.job_id, event)

        terminal: ProgressEvent | None = None
        summary: ExportSummary | None = None
        try:
            summary = await self.export_one(
                job.source_playlist_id or "",
                explicit_name,
                credentials,
                report=report,
                connection=connection,
                job=job,
            )
            terminal = Done(
                added=summary.added,
                missing=summary.missing_count,
                failed=summary.failed,
                total=summary.total,
            )
        except asyncio.CancelledError:
            logger.info("Export job %s cancelled", job.job_id)
            if not job.is_finished:
                job.fail("cancelled")
            terminal = Error("cancelled")
            raise
        except Exception as e:
            logger.exception("Export job %s failed", job.job_id)
            if not job.is_finished:
                job.fail(user_message(e))
            terminal = Error(user_message(e))
        finally:
            if terminal is None:
                terminal = Error("export aborted")
            await channel.send(job.job_id, terminal)
            await channel.unregister(job.job_id)
        return summary

    async def run_export_all_job(
        self,
        job: ExportJob,
        credentials: SyncCredentials,
        channel: ProgressChannel,
        connection: PlexConnection | None = None,
    ) -> list[ExportSummary]:
        """Batch variant of run_export_job with the same terminal guarantee.

        The job record carries the running totals and the per-playlist
        summaries, so the outcome stays readable after the stream is gone.
        """

        async def report(event: ProgressEvent) -> None:
            # Per-batch counters of every single playlist would flood a batch
            # stream, Started/Status lines are enough there
            if isinstance(event, (Started, Status)):
                await channel.send(job.job_id, event)

        terminal: ProgressEvent | None = None
        summaries: list[ExportSummary] = []
        try:
            job.advance(ExportJobState.SEARCHING)
            summaries = await self.export_all(
                credentials, report=report, connection=connection, job=job
            )
            job.advance(ExportJobState.FINALIZING)
            job.advance(ExportJobState.DONE)
            terminal = Done(
                added=job.added, missing=job.missing, failed=job.failed, total=job.total
            )
        except asyncio.CancelledError:
            logger.info("Export-all job %s cancelled", job.job_id)
            if not job.is_finished:
                job.fail("cancelled")
            terminal = Error("cancelled")
            raise
        except Exception as e:
            logger.exception("Export-all job %s failed", job.job_id)
            if not job.is_finished:
                job.fail(user_message(e))
            terminal = Error(user_message(e))
        finally:
            if terminal is None:
                terminal = Error("export aborted")
            await channel.send(job.job_id, terminal)
            await channel.unregister(job.job_id)
        return summaries
