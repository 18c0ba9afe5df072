"""Pydantic v2 schemas for the queue status API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from shotgen.services.jobs import JobStatus


class QueueStatusRead(BaseModel):
    """Aggregate job counters."""

    model_config = ConfigDict(from_attributes=True)

    pending: int
    processing: int
    total: int


class PendingJobRead(BaseModel):
    """A job still waiting for a worker slot."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    target_kind: str
    target_id: str
    owner_id: str | None = None
    provider_id: str
    status: JobStatus
    created_at: datetime


class ProviderRead(BaseModel):
    id: str
    label: str
    media: str
    kind: str
    configured: bool
