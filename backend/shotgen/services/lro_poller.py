"""Generic long-running-operation poller.

Drives any ``AsyncTaskProvider`` from a ``PollHandle`` to a terminal
``Result``. It has no knowledge of individual wire protocols: Veo operation
names, Kling task ids and Jimeng status fields all reduce to ``PollStatus``.
"""

from __future__ import annotations

import asyncio
import logging

from shotgen.services.errors import ConfigurationError, PollTimeoutError
from shotgen.services.providers.base import (
    AsyncTaskProvider,
    PollHandle,
    PollState,
    PollStatus,
    Result,
)

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 60
POLL_INTERVAL = 5.0


class LroPoller:

    def __init__(self, max_attempts: int = MAX_ATTEMPTS, interval: float = POLL_INTERVAL) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.interval = interval

    async def poll(self, provider: AsyncTaskProvider, handle: PollHandle) -> Result:
        """Check status until terminal or the attempt budget runs out.

        A status check that raises (network blip, 5xx, bad JSON) counts as
        pending for that attempt. Missing credentials are not transient and
        propagate.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                status = await provider.check_status(handle)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.warning(
                    "%s poll %d/%d for %s failed, treating as pending: %s",
                    provider.provider_id, attempt, self.max_attempts, handle.token, e,
                )
                status = PollStatus.pending()

            if status.state is PollState.SUCCEEDED:
                logger.info(
                    "%s task %s succeeded after %d poll(s)",
                    provider.provider_id, handle.token, attempt,
                )
                return Result.success(artifact_url=status.artifact_ref)
            if status.state is PollState.FAILED:
                logger.info("%s task %s failed: %s", provider.provider_id, handle.token, status.reason)
                return Result.failure(status.reason or "Generation failed")

            logger.debug("%s task %s pending (%d/%d)", provider.provider_id, handle.token, attempt, self.max_attempts)
            await asyncio.sleep(self.interval)

        timeout = PollTimeoutError(self.max_attempts, self.interval)
        logger.warning("%s task %s: %s", provider.provider_id, handle.token, timeout)
        return Result.failure(str(timeout))
