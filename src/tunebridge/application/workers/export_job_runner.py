"""Export job runner - one asyncio task per export.

Hey future me - cancellation is plain asyncio: cancel() on the task raises
CancelledError at whatever remote call the export is awaiting. The export
service turns that into a final "error:cancelled" frame and re-raises, so the
task really ends cancelled. No cancel flags, no polling.

Every task runs with the correlation id set to its job id, so all log lines of
one export can be grepped together.

Finished jobs stay readable through get_job() for a while (the last
FINISHED_JOBS_KEPT of them), that is how an export-all outcome gets picked up.
"""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Coroutine
from typing import Any

from tunebridge.application.services.playlist_export_service import (
    PlaylistExportService,
    SyncCredentials,
)
from tunebridge.application.services.progress_channel import ProgressChannel
from tunebridge.domain.entities import ExportJob, PlexConnection
from tunebridge.infrastructure.observability.logging import set_correlation_id

logger = logging.getLogger(__name__)

FINISHED_JOBS_KEPT = 50


class ExportJobRunner:
    """Starts, tracks and cancels export tasks by job id."""

    def __init__(self, export_service: PlaylistExportService, channel: ProgressChannel) -> None:
        self._service = export_service
        self._channel = channel
        self._tasks: dict[str, asyncio.Task] = {}
        self._jobs: dict[str, ExportJob] = {}
        self._finished: OrderedDict[str, ExportJob] = OrderedDict()
        self._stats = {"started": 0, "cancelled": 0}

    def start(
        self,
        job: ExportJob,
        credentials: SyncCredentials,
        explicit_name: str | None = None,
        connection: PlexConnection | None = None,
    ) -> asyncio.Task:
        """Run a single-playlist export in the background."""
        return self._spawn(
            job,
            self._service.run_export_job(
                job, credentials, self._channel, explicit_name, connection=connection
            ),
        )

    def start_all(
        self,
        job: ExportJob,
        credentials: SyncCredentials,
        connection: PlexConnection | None = None,
    ) -> asyncio.Task:
        """Run the export-all batch in the background."""
        return self._spawn(
            job,
            self._service.run_export_all_job(job, credentials, self._channel, connection=connection),
        )

    def _spawn(self, job: ExportJob, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        if job.job_id in self._tasks:
            coro.close()
            raise ValueError(f"Export job {job.job_id} is already running")
        task = asyncio.create_task(self._run(job.job_id, coro), name=f"export-{job.job_id}")
        self._tasks[job.job_id] = task
        self._jobs[job.job_id] = job
        self._stats["started"] += 1
        task.add_done_callback(lambda _task, job_id=job.job_id: self._forget(job_id))
        return task

    async def _run(self, job_id: str, coro: Coroutine[Any, Any, Any]) -> Any:
        # Tasks run in a copy of the context, this only tags this job's logs
        set_correlation_id(job_id)
        logger.info("Export job %s started", job_id)
        return await coro

    def _forget(self, job_id: str) -> None:
        self._tasks.pop(job_id, None)
        job = self._jobs.pop(job_id, None)
        if job is None:
            return
        self._finished[job_id] = job
        while len(self._finished) > FINISHED_JOBS_KEPT:
            self._finished.popitem(last=False)

    def get_job(self, job_id: str) -> ExportJob | None:
        """Running or recently finished job, None if unknown or long gone."""
        return self._jobs.get(job_id) or self._finished.get(job_id)

    def is_running(self, job_id: str) -> bool:
        return job_id in self._tasks

    def cancel(self, job_id: str) -> bool:
        """Cancel a running job. Returns False if no such job is running."""
        task = self._tasks.get(job_id)
        if task is None or task.done():
            return False
        task.cancel()
        self._stats["cancelled"] += 1
        logger.info("Export job %s cancellation requested", job_id)
        return True

    async def shutdown(self) -> None:
        """Cancel every running job and wait for them to finish."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Cancelling %d running export jobs", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._jobs.clear()
        self._finished.clear()

    def get_stats(self) -> dict:
        return {**self._stats, "running": len(self._tasks)}
