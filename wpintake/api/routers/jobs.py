"""Jobs router — queue statistics and the live job event stream."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from wpintake.api.deps import get_event_bus, get_job_queue, require_admin
from wpintake.api.schemas.job import QueueStats
from wpintake.queue import JobEvent, JobEventBus, JobQueue

router = APIRouter(dependencies=[Depends(require_admin)])

_KEEPALIVE_SECONDS = 15.0


def _format_event(event: JobEvent) -> str:
    return f"event: {event.type}\ndata: {json.dumps(event.to_dict(), default=str)}\n\n"


@router.get("/stats", response_model=QueueStats)
async def queue_stats(
    queue: JobQueue = Depends(get_job_queue),
    bus: JobEventBus = Depends(get_event_bus),
) -> QueueStats:
    return QueueStats(**queue.stats(), subscribers=bus.subscriber_count)


@router.get("/events")
async def job_events(
    limit: int | None = Query(None, ge=1),
    bus: JobEventBus = Depends(get_event_bus),
) -> StreamingResponse:
    """Server-sent events for every job start, log line, completion and error.

    *limit* closes the stream after that many events.
    """
    sub = bus.subscribe()

    async def _stream() -> AsyncIterator[str]:
        sent = 0
        try:
            yield ": connected\n\n"
            while limit is None or sent < limit:
                try:
                    event = await asyncio.wait_for(sub.get(), _KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield _format_event(event)
                sent += 1
        finally:
            sub.close()

    return StreamingResponse(
        _stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
