"""Result propagation: write job outcomes to the target entity with retry."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from shotgen.services.errors import PersistenceError
from shotgen.services.jobs import TargetRef
from shotgen.services.persistence import Persistence

logger = logging.getLogger(__name__)


class ResultPropagator:
    """Bounded retry around ``Persistence.update_entity``.

    Delay before attempt n+1 is ``n * retry_delay`` (linear backoff).
    """

    def __init__(
        self,
        persistence: Persistence,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.persistence = persistence
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    async def propagate(self, target: TargetRef, fields: dict[str, Any]) -> int:
        """Write ``fields`` and return the attempt number that landed.

        Raises PersistenceError once every attempt has failed.
        """
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self.persistence.update_entity(target, fields)
                return attempt
            except Exception as e:
                last_error = e
                logger.warning(
                    "Storage update for %s failed (attempt %d/%d): %s",
                    target, attempt, self.max_attempts, e,
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay * attempt)

        raise PersistenceError(
            f"Failed to persist outcome for {target} after {self.max_attempts} attempts: {last_error}"
        ) from last_error
