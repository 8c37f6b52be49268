"""
Scheduler boundary for the messaging jobs.

Three jobs are registered: outbox publish, outbox cleanup and inbox cleanup. Each job has its
own lock so at most one run of it is in flight in this process; a second run that arrives while
one is active is rejected instead of queued, since two concurrent publish runs over the same
batch would double-publish. Different jobs may run at the same time.

Across several replicas, the same single-flight guarantee has to come from outside (for example
a database advisory lock or running the scheduler in one replica only).
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.consumers.cleanup import InboxCleanupJob, OutboxCleanupJob
from app.consumers.outbox_processor import BatchResult, OutboxProcessor
from app.core.clock import utc_now
from app.core.config import (
    CLEANUP_INTERVAL,
    OUTBOX_BATCH_SIZE,
    OUTBOX_POLLING_INTERVAL,
    SHUTDOWN_TIMEOUT,
)

log = logging.getLogger("job_scheduler")

OUTBOX_PUBLISH_JOB = "messaging.outbox.processor"
OUTBOX_CLEANUP_JOB = "messaging.outbox.cleanup"
INBOX_CLEANUP_JOB = "messaging.inbox.cleanup"


class JobAlreadyRunning(RuntimeError):
    """Raised when a job is triggered while a previous run of it is still in flight."""


@dataclass
class JobState:
    job_id: str
    description: str
    interval_seconds: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_status: Optional[str] = None # succeeded | failed
    last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.lock.locked()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "description": self.description,
            "interval_seconds": self.interval_seconds,
            "running": self.running,
            "last_started_at": self.last_started_at,
            "last_finished_at": self.last_finished_at,
            "last_status": self.last_status,
            "last_error": self.last_error,
        }


class JobScheduler:
    def __init__(
        self,
        processor: OutboxProcessor,
        outbox_cleanup: OutboxCleanupJob,
        inbox_cleanup: InboxCleanupJob,
        batch_size: int = OUTBOX_BATCH_SIZE,
        poll_interval: float = OUTBOX_POLLING_INTERVAL,
        cleanup_interval: float = CLEANUP_INTERVAL,
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
    ):
        self.processor = processor
        self.outbox_cleanup = outbox_cleanup
        self.inbox_cleanup = inbox_cleanup
        self.batch_size = batch_size
        self.shutdown_timeout = shutdown_timeout

        self._cancellation = asyncio.Event()
        self._tasks: List[asyncio.Task] = []
        self._jobs: Dict[str, JobState] = {
            OUTBOX_PUBLISH_JOB: JobState(OUTBOX_PUBLISH_JOB, "Outbox: push pending messages to the bus", poll_interval),
            OUTBOX_CLEANUP_JOB: JobState(OUTBOX_CLEANUP_JOB, "Outbox: delete old published/dead messages", cleanup_interval),
            INBOX_CLEANUP_JOB: JobState(INBOX_CLEANUP_JOB, "Inbox: delete old processed messages", cleanup_interval),
        }

    # ----------- Triggerable operations -----------

    async def run_outbox_publish(self, max_batch: Optional[int] = None) -> BatchResult:
        batch_size = self.batch_size if max_batch is None else max_batch
        return await self._run(
            OUTBOX_PUBLISH_JOB,
            lambda: self.processor.process(batch_size, cancellation=self._cancellation),
        )

    async def run_cleanup(self, retention_days: Optional[int] = None) -> Dict[str, Optional[int]]:
        """Runs both retention sweeps. A sweep that is already running is reported as None."""
        deleted: Dict[str, Optional[int]] = {}
        for name, job_id, job in (
            ("outbox", OUTBOX_CLEANUP_JOB, self.outbox_cleanup),
            ("inbox", INBOX_CLEANUP_JOB, self.inbox_cleanup),
        ):
            try:
                deleted[name] = await self._run(job_id, lambda job=job: job.run(retention_days))
            except JobAlreadyRunning:
                log.info(f"{job_id} is already running; skipped.")
                deleted[name] = None
        return deleted

    async def trigger(self, job_id: str) -> Any:
        """Runs one registered job now with its default arguments."""
        if job_id == OUTBOX_PUBLISH_JOB:
            return await self.run_outbox_publish()
        if job_id == OUTBOX_CLEANUP_JOB:
            return await self._run(job_id, self.outbox_cleanup.run)
        if job_id == INBOX_CLEANUP_JOB:
            return await self._run(job_id, self.inbox_cleanup.run)
        raise KeyError(job_id)

    def describe(self) -> List[Dict[str, Any]]:
        return [job.as_dict() for job in self._jobs.values()]

    def get_job(self, job_id: str) -> JobState:
        return self._jobs[job_id]

    async def _run(self, job_id: str, action: Callable[[], Awaitable[Any]]) -> Any:
        job = self._jobs[job_id]
        if job.lock.locked():
            raise JobAlreadyRunning(f"Job '{job_id}' is already running.")

        async with job.lock:
            job.last_started_at = utc_now()
            try:
                result = await action()
            except Exception as e:
                job.last_status = "failed"
                job.last_error = str(e) or e.__class__.__name__
                raise
            else:
                job.last_status = "succeeded"
                job.last_error = None
                return result
            finally:
                job.last_finished_at = utc_now()

    # ----------- Periodic loops -----------

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self):
        """Starts the publish and cleanup loops in the background."""
        if self._tasks:
            log.warning("Job scheduler already running")
            return

        self._cancellation = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self._loop(OUTBOX_PUBLISH_JOB, self.run_outbox_publish)),
            asyncio.create_task(self._loop(OUTBOX_CLEANUP_JOB, lambda: self.trigger(OUTBOX_CLEANUP_JOB))),
            asyncio.create_task(self._loop(INBOX_CLEANUP_JOB, lambda: self.trigger(INBOX_CLEANUP_JOB))),
        ]
        log.info("--- Job Scheduler Started ---")

    async def stop(self):
        """
        Signals the loops to stop and waits for in-flight runs. A publish run stops before its
        next message; anything not yet persisted stays PENDING.
        """
        if not self._tasks:
            return

        self._cancellation.set()
        done, pending = await asyncio.wait(self._tasks, timeout=self.shutdown_timeout)
        for task in pending:
            log.warning("Job scheduler shutdown timed out, cancelling")
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        log.info("Job scheduler stopped.")

    async def _loop(self, job_id: str, action: Callable[[], Awaitable[Any]]):
        interval = self._jobs[job_id].interval_seconds
        while not self._cancellation.is_set():
            try:
                await action()
            except JobAlreadyRunning:
                log.info(f"{job_id} still running from a manual trigger; skipping this tick.")
            except Exception:
                log.exception(f"{job_id} run failed; will try again in {interval}s.")

            # Sleep until the next tick, waking early on shutdown
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._cancellation.wait(), timeout=interval)
