"""Progress channel - per-job registry of open progress streams.

Hey future me - one export job, one sink, ONE writer (the job's own task). The
SSE endpoint registers a QueueSink under the job id and drains it; the job
pushes events through send(). Delivery is at-most-once with no replay: a
client that subscribes late has simply missed the earlier frames.

send() for an unknown/unregistered job is a silent no-op. The browser may have
closed the tab; that must never fail the export itself.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from tunebridge.domain.ports import IProgressSink
from tunebridge.domain.value_objects.progress_events import ProgressEvent, encode_event

logger = logging.getLogger(__name__)


class QueueSink(IProgressSink):
    """In-memory sink drained by the SSE endpoint."""

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False

    async def write(self, message: str) -> None:
        if self._closed:
            return
        await self._queue.put(message)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    async def messages(self) -> AsyncIterator[str]:
        """Yield frames in write order until the sink is closed."""
        while True:
            item = await self._queue.get()
            if item is self._CLOSED:
                return
            yield str(item)


class ProgressChannel:
    """Job id -> sink registry; serializes events to wire text."""

    def __init__(self) -> None:
        self._sinks: dict[str, IProgressSink] = {}

    def register(self, job_id: str, sink: IProgressSink) -> None:
        if job_id in self._sinks:
            logger.warning("Progress sink for job %s replaced", job_id)
        self._sinks[job_id] = sink

    def is_registered(self, job_id: str) -> bool:
        return job_id in self._sinks

    async def send(self, job_id: str, event: ProgressEvent | str) -> None:
        """Write one frame to the job's sink; no-op if nobody listens."""
        sink = self._sinks.get(job_id)
        if sink is None:
            return
        try:
            await sink.write(encode_event(event))
        except Exception as e:
            # Subscriber went away mid-write - the export carries on regardless
            logger.debug("Dropping progress frame for job %s: %s", job_id, e)

    async def unregister(self, job_id: str) -> None:
        """Release the job's sink (closing it) and forget the job."""
        sink = self._sinks.pop(job_id, None)
        if sink is None:
            return
        try:
            await sink.close()
        except Exception as e:
            logger.debug("Closing progress sink for job %s failed: %s", job_id, e)
