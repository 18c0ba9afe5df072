"""Bounded-concurrency generation job queue.

One ``JobQueue`` per process. ``enqueue`` returns a job id immediately; a
fixed pool of ``max_concurrency`` worker tasks pulls jobs in FIFO order and
hands them to the ``JobProcessor``. A job holds its worker slot for its whole
lifetime, including idle poll-interval waits, so the in-flight set can never
grow beyond the worker count.

All queue state is owned by the event loop the workers run on; call
``enqueue`` from that loop's thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any

from shotgen.config import Settings
from shotgen.services.errors import ConfigurationError, UnknownProviderError
from shotgen.services.jobs import GenerationParams, Job, JobSnapshot, JobStatus, TargetRef
from shotgen.services.job_processor import JobProcessor
from shotgen.services.lro_poller import LroPoller
from shotgen.services.persistence import Persistence
from shotgen.services.propagator import ResultPropagator
from shotgen.services.provider_registry import ProviderRegistry

logger = logging.getLogger(__name__)

MAX_CONCURRENT_JOBS = 2


@dataclass(frozen=True)
class QueueStatus:
    """Aggregate counters; individual jobs are not exposed."""
    pending: int
    processing: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class JobQueue:

    def __init__(
        self,
        persistence: Persistence,
        registry: ProviderRegistry,
        *,
        max_concurrency: int = MAX_CONCURRENT_JOBS,
        poller: LroPoller | None = None,
        persist_attempts: int = 3,
        persist_retry_delay: float = 1.0,
    ) -> None:
        if persistence is None:
            raise ConfigurationError("JobQueue requires a persistence sink")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.registry = registry
        self.max_concurrency = max_concurrency
        self.processor = JobProcessor(
            registry,
            ResultPropagator(persistence, persist_attempts, persist_retry_delay),
            poller or LroPoller(),
        )

        self._pending: deque[Job] = deque()
        self._in_flight: dict[str, Job] = {}
        # Counts pending jobs; a worker acquires one permit per job it takes.
        self._ready = asyncio.Semaphore(0)
        self._idle = asyncio.Event()
        self._idle.set()
        self._workers: list[asyncio.Task] = []

    @classmethod
    def from_settings(
        cls,
        persistence: Persistence,
        registry: ProviderRegistry,
        settings: Settings,
    ) -> JobQueue:
        return cls(
            persistence,
            registry,
            max_concurrency=settings.MAX_CONCURRENT_JOBS,
            poller=LroPoller(settings.POLL_MAX_ATTEMPTS, settings.POLL_INTERVAL),
            persist_attempts=settings.PERSIST_MAX_ATTEMPTS,
            persist_retry_delay=settings.PERSIST_RETRY_DELAY,
        )

    # ──────── Submission ────────

    def enqueue(self, target: TargetRef, provider_id: str, parameters: GenerationParams) -> str:
        """Queue a generation job and return its id without waiting for it."""
        if provider_id not in self.registry:
            raise UnknownProviderError(provider_id)

        job = Job(target=target, provider_id=provider_id, parameters=parameters)
        self._pending.append(job)
        self._ready.release()

        logger.info("Enqueued job %s for %s using %s", job.id, target, provider_id)
        if self._workers:
            self._idle.clear()
        else:
            logger.debug("Job %s queued while workers are stopped", job.id)
        return job.id

    # ──────── Lifecycle ────────

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Spawn the worker pool on the running event loop."""
        if self._workers:
            return
        if self._pending:
            self._idle.clear()
        self._workers = [
            asyncio.create_task(self._worker(), name=f"job-worker-{i}")
            for i in range(self.max_concurrency)
        ]
        logger.info("Job queue started with %d worker(s)", self.max_concurrency)

    async def stop(self) -> None:
        """Cancel the workers. Jobs still in flight are abandoned."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        # Nothing will drain the remaining pending jobs until start() runs again.
        self._idle.set()
        if workers:
            logger.info(
                "Job queue stopped (%d pending, %d abandoned in flight)",
                len(self._pending), len(self._in_flight),
            )

    async def join(self) -> None:
        """Wait until no job is pending or in flight, or the queue is stopped."""
        await self._idle.wait()

    async def __aenter__(self) -> JobQueue:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _worker(self) -> None:
        while True:
            await self._ready.acquire()
            job = self._pending.popleft()
            job.transition(JobStatus.PROCESSING)
            self._in_flight[job.id] = job
            try:
                await self.processor.run(job)
            except Exception as e:
                # One broken job must not take the worker down with it.
                logger.exception("Job %s crashed: %s", job.id, e)
                if not job.status.is_terminal:
                    job.transition(JobStatus.FAILED, error=str(e))
            finally:
                self._in_flight.pop(job.id, None)
                if not self._pending and not self._in_flight:
                    self._idle.set()

    # ──────── Status projection ────────

    def get_queue_status(self) -> QueueStatus:
        pending = len(self._pending)
        processing = len(self._in_flight)
        return QueueStatus(pending=pending, processing=processing, total=pending + processing)

    def pending_jobs_for(self, owner_id: str) -> list[JobSnapshot]:
        """Snapshots of jobs still waiting for a slot whose target belongs to ``owner_id``."""
        return [job.snapshot() for job in self._pending if job.target.owner_id == owner_id]
