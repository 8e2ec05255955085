"""Job queue — bounded asyncio worker pool with a live event broadcast."""

from __future__ import annotations

import asyncio
import os
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from wpintake.core.logging import job_log_context

logger = structlog.get_logger(__name__)

JobAction = Literal["analyze", "build", "upload"]
EventType = Literal["job-start", "job-log", "job-complete", "job-error"]

_SUBSCRIBER_BUFFER = 1000


@dataclass(frozen=True)
class JobEvent:
    type: EventType
    job_id: str
    action: str
    message: str | None = None
    result: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jobId": self.job_id, "action": self.action}
        if self.message is not None:
            data["message"] = self.message
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


class Subscription:
    """One listener's view of the bus; iterate to receive events."""

    def __init__(self, bus: JobEventBus) -> None:
        self._bus = bus
        self._queue: asyncio.Queue[JobEvent] = asyncio.Queue(maxsize=_SUBSCRIBER_BUFFER)
        self.dropped = 0

    def _offer(self, event: JobEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1

    async def get(self) -> JobEvent:
        return await self._queue.get()

    def close(self) -> None:
        self._bus._unsubscribe(self)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> JobEvent:
        return await self._queue.get()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()


class JobEventBus:
    """Fan-out of job events to every open subscription.

    A slow subscriber drops events once its buffer is full; publishers
    never block.
    """

    def __init__(self) -> None:
        self._subscribers: set[Subscription] = set()

    def subscribe(self) -> Subscription:
        sub = Subscription(self)
        self._subscribers.add(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        self._subscribers.discard(sub)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: JobEvent) -> None:
        for sub in list(self._subscribers):
            sub._offer(event)


@dataclass
class Job:
    id: str
    action: JobAction
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JobOutcome:
    job_id: str
    action: str
    ok: bool
    result: dict[str, Any] | None = None
    error: str | None = None


class JobContext:
    """Handed to a running job: live log lines and follow-up submission."""

    def __init__(self, job: Job, bus: JobEventBus, queue: JobQueue) -> None:
        self.job = job
        self.lines: list[str] = []
        self._bus = bus
        self._queue = queue
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()

    def emit(self, message: str) -> None:
        """Record *message* and broadcast it as a ``job-log`` event.

        Safe to call from worker threads (engines run via ``to_thread``).
        """
        self.lines.append(message)
        event = JobEvent("job-log", self.job.id, self.job.action, message=message)
        if threading.get_ident() == self._loop_thread:
            self._bus.publish(event)
        else:
            self._loop.call_soon_threadsafe(self._bus.publish, event)

    def submit(self, job: Job) -> asyncio.Future[JobOutcome]:
        return self._queue.submit(job)


JobHandler = Callable[[Job, JobContext], Awaitable[dict[str, Any] | None]]


class JobQueue:
    """Runs submitted jobs on at most *concurrency* workers, in FIFO order."""

    def __init__(
        self,
        handler: JobHandler | None = None,
        bus: JobEventBus | None = None,
        concurrency: int | None = None,
    ) -> None:
        if concurrency is None:
            concurrency = int(os.environ.get("WPINTAKE_JOB_CONCURRENCY", "2"))
        self.handler = handler
        self.bus = bus or JobEventBus()
        self.concurrency = max(1, concurrency)
        self._pending: asyncio.Queue[tuple[Job, asyncio.Future[JobOutcome]]] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._running = 0

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._workers:
            return
        if self.handler is None:
            raise RuntimeError("JobQueue has no handler")
        self._pending = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(), name=f"job-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info("queue.started", concurrency=self.concurrency)

    async def stop(self) -> None:
        """Cancel workers; jobs still queued are abandoned."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("queue.stopped")

    async def join(self) -> None:
        """Wait until every submitted job (and any it chained) has finished."""
        if self._pending is not None:
            await self._pending.join()

    # ── public ─────────────────────────────────────────────────────────────

    def submit(self, job: Job) -> asyncio.Future[JobOutcome]:
        """Queue *job*; the returned future resolves to its :class:`JobOutcome`."""
        if self._pending is None:
            raise RuntimeError("JobQueue is not started")
        future: asyncio.Future[JobOutcome] = asyncio.get_running_loop().create_future()
        self._pending.put_nowait((job, future))
        logger.info("queue.submitted", job_id=job.id, action=job.action)
        return future

    def stats(self) -> dict[str, int]:
        return {
            "size": self._pending.qsize() if self._pending is not None else 0,
            "pending": self._running,
            "concurrency": self.concurrency,
        }

    # ── internal ───────────────────────────────────────────────────────────

    async def _worker(self) -> None:
        assert self._pending is not None
        while True:
            job, future = await self._pending.get()
            self._running += 1
            try:
                outcome = await self._run(job)
                if not future.done():
                    future.set_result(outcome)
            finally:
                self._running -= 1
                self._pending.task_done()

    async def _run(self, job: Job) -> JobOutcome:
        self.bus.publish(JobEvent("job-start", job.id, job.action))
        ctx = JobContext(job, self.bus, self)
        try:
            with job_log_context(job.id, job.action):
                result = await self.handler(job, ctx)  # type: ignore[misc]
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("job.failed", job_id=job.id, action=job.action)
            error = str(exc) or type(exc).__name__
            self.bus.publish(JobEvent("job-error", job.id, job.action, error=error))
            return JobOutcome(job.id, job.action, ok=False, error=error)

        logger.info("job.complete", job_id=job.id, action=job.action)
        self.bus.publish(JobEvent("job-complete", job.id, job.action, result=result))
        return JobOutcome(job.id, job.action, ok=True, result=result)
