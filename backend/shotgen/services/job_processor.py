"""Job processor. Runs one job from provider call to persisted outcome.

Steps:
1. Mark the target entity as generating (best-effort)
2. Call the provider (sync) or submit + poll (async task)
3. Propagate the outcome fields with retry
4. Settle the job's terminal status
"""

from __future__ import annotations

import logging
import time

from shotgen.services.errors import PersistenceError
from shotgen.services.jobs import Job, JobStatus
from shotgen.services.lro_poller import LroPoller
from shotgen.services.propagator import ResultPropagator
from shotgen.services.provider_registry import ProviderRegistry
from shotgen.services.providers.base import AsyncTaskProvider, Result, SynchronousProvider

logger = logging.getLogger(__name__)


class JobProcessor:

    def __init__(
        self,
        registry: ProviderRegistry,
        propagator: ResultPropagator,
        poller: LroPoller | None = None,
    ) -> None:
        self.registry = registry
        self.propagator = propagator
        self.poller = poller or LroPoller()

    async def run(self, job: Job) -> Job:
        """Execute a job that the dispatcher has already moved to processing."""
        start = time.monotonic()
        logger.info("Processing job %s for %s using %s", job.id, job.target, job.provider_id)

        await self._mark_generating(job)
        result = await self.generate(job)

        if result.ok:
            fields = job.target.kind.success_fields(result.artifact_ref)
        else:
            fields = job.target.kind.failure_fields(result.reason)

        try:
            await self.propagator.propagate(job.target, fields)
        except PersistenceError as e:
            if result.ok:
                logger.error(
                    "Job %s: generated artifact orphaned, write to %s never landed (artifact=%.120s)",
                    job.id, job.target, result.artifact_ref,
                )
            else:
                logger.error("Job %s: failure could not be recorded on %s", job.id, job.target)
            job.transition(JobStatus.FAILED, error=str(e))
            return job

        latency_ms = int((time.monotonic() - start) * 1000)
        if result.ok:
            job.transition(JobStatus.COMPLETED)
            logger.info("Job %s completed in %dms", job.id, latency_ms)
        else:
            job.transition(JobStatus.FAILED, error=result.reason)
            logger.info("Job %s failed in %dms: %s", job.id, latency_ms, result.reason)
        return job

    async def generate(self, job: Job) -> Result:
        """Produce a normalized Result; never raises for provider-side problems."""
        try:
            provider = self.registry.get(job.provider_id)
            if isinstance(provider, SynchronousProvider):
                return await provider.generate(job.parameters)
            if isinstance(provider, AsyncTaskProvider):
                handle = await provider.submit(job.parameters)
                logger.info("Job %s submitted to %s as %s", job.id, provider.provider_id, handle.token)
                return await self.poller.poll(provider, handle)
            return Result.failure(f"Provider {job.provider_id} has no supported capability")
        except Exception as e:
            logger.error("Job %s error: %s", job.id, e)
            return Result.failure(str(e) or e.__class__.__name__)

    async def _mark_generating(self, job: Job) -> None:
        fields = job.target.kind.processing_fields()
        if fields is None:
            return
        try:
            await self.propagator.propagate(job.target, fields)
        except PersistenceError as e:
            logger.warning("Job %s: could not mark %s as generating: %s", job.id, job.target, e)
