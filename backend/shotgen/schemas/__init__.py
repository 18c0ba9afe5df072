"""Pydantic v2 schemas package."""

from shotgen.schemas.queue import PendingJobRead, ProviderRead, QueueStatusRead

__all__ = [
    "PendingJobRead",
    "ProviderRead",
    "QueueStatusRead",
]
