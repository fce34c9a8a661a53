"""Plex export endpoints - streamed single export and background export-all.

Hey future me - the streamed export is ONE HTTP request holding an SSE stream:

    GET /api/plex/export/stream?playlist_id=...&name=...
    → data: started:Spotify - Road Trip
    → data: Searching on Plex: 10/42
    → data: progress:0:3:42
    → data: done:39:3:0:42

The export-all batch runs without a stream; poll GET /api/plex/export/{job_id}
for its totals and per-playlist summaries.

Discovery happens BEFORE the stream opens, so "no Plex server" is a proper 424
response instead of an error frame. Once the stream is open, every outcome is
a frame. Closing the connection cancels the export task (generator finally).
"""

import logging
from collections.abc import AsyncIterator
from typing import Annotated
from uuid import uuid4

from fastapi import APIRouter, Depends, Query, status
from sse_starlette.sse import EventSourceResponse

from tunebridge.api.dependencies import (
    get_export_runner,
    get_export_service,
    get_progress_channel,
    get_sync_credentials,
)
from tunebridge.api.schemas import ExportJobAccepted, ExportJobStatus, ExportSummaryResponse
from tunebridge.application.services.playlist_export_service import (
    PlaylistExportService,
    SyncCredentials,
)
from tunebridge.application.services.progress_channel import ProgressChannel, QueueSink
from tunebridge.application.workers.export_job_runner import ExportJobRunner
from tunebridge.domain.entities import ExportJob
from tunebridge.domain.exceptions import EntityNotFoundException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plex/export", tags=["Plex Export"])


@router.get("/stream")
async def stream_export(
    credentials: Annotated[SyncCredentials, Depends(get_sync_credentials)],
    service: Annotated[PlaylistExportService, Depends(get_export_service)],
    channel: Annotated[ProgressChannel, Depends(get_progress_channel)],
    runner: Annotated[ExportJobRunner, Depends(get_export_runner)],
    playlist_id: str = Query(..., min_length=1, description="Spotify playlist id or #LikedSongs#"),
    name: str | None = Query(None, description="Export name override"),
) -> EventSourceResponse:
    """Export one playlist, streaming progress as server-sent events."""
    connection = await service.connect(credentials.plex_token)

    job = ExportJob(job_id=uuid4().hex, source_playlist_id=playlist_id)
    sink = QueueSink()
    channel.register(job.job_id, sink)
    runner.start(job, credentials, explicit_name=name, connection=connection)
    logger.info("Streaming export job %s for playlist %s", job.job_id, playlist_id)

    async def event_generator() -> AsyncIterator[dict[str, str]]:
        try:
            async for message in sink.messages():
                yield {"data": message}
        finally:
            # Client went away (or stream completed) - stop the export if it
            # is still running and release the sink either way
            if runner.cancel(job.job_id):
                logger.info("Client disconnected, cancelled export job %s", job.job_id)
            await channel.unregister(job.job_id)

    return EventSourceResponse(event_generator(), sep="\n")


@router.post("/all", status_code=status.HTTP_202_ACCEPTED, response_model=ExportJobAccepted)
async def export_all(
    credentials: Annotated[SyncCredentials, Depends(get_sync_credentials)],
    service: Annotated[PlaylistExportService, Depends(get_export_service)],
    runner: Annotated[ExportJobRunner, Depends(get_export_runner)],
) -> ExportJobAccepted:
    """Start exporting every playlist of the user in the background."""
    connection = await service.connect(credentials.plex_token)
    job = ExportJob(job_id=uuid4().hex)
    runner.start_all(job, credentials, connection=connection)
    logger.info("Started export-all job %s", job.job_id)
    return ExportJobAccepted(job_id=job.job_id)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_export(
    job_id: str,
    runner: Annotated[ExportJobRunner, Depends(get_export_runner)],
) -> None:
    """Cancel a running export job."""
    if not runner.cancel(job_id):
        raise EntityNotFoundException("Export job", job_id)


@router.get("/{job_id}", response_model=ExportJobStatus)
async def get_export_status(
    job_id: str,
    runner: Annotated[ExportJobRunner, Depends(get_export_runner)],
) -> ExportJobStatus:
    """State and totals of a running or recently finished export job."""
    job = runner.get_job(job_id)
    if job is None:
        raise EntityNotFoundException("Export job", job_id)
    return ExportJobStatus(
        job_id=job.job_id,
        state=job.state.value,
        running=runner.is_running(job_id),
        target_playlist_name=job.target_playlist_name,
        added=job.added,
        missing=job.missing,
        failed=job.failed,
        total=job.total,
        error_message=job.error_message,
        created_at=job.created_at,
        playlists=[
            ExportSummaryResponse(
                exported_name=s.exported_name,
                added=s.added,
                missing=s.missing,
                failed=s.failed,
                total=s.total,
            )
            for s in job.playlists
        ],
    )
