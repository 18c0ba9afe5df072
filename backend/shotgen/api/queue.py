"""Queue status API: aggregate counters and provider availability.

Per-entity outcomes are read from the entity itself, not from here.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from shotgen.schemas.queue import PendingJobRead, ProviderRead, QueueStatusRead
from shotgen.services.job_queue import JobQueue

router = APIRouter()


def get_job_queue(request: Request) -> JobQueue:
    """FastAPI dependency returning the process-wide queue built in the lifespan."""
    return request.app.state.job_queue


@router.get("/status", response_model=QueueStatusRead)
async def queue_status(queue: JobQueue = Depends(get_job_queue)):
    """Return pending/processing/total job counts."""
    return queue.get_queue_status()


@router.get("/pending", response_model=list[PendingJobRead])
async def pending_jobs(
    owner_id: str = Query(..., min_length=1),
    queue: JobQueue = Depends(get_job_queue),
):
    """Jobs still waiting for a slot for one owner (e.g. a character)."""
    return queue.pending_jobs_for(owner_id)


@router.get("/providers", response_model=list[ProviderRead])
async def list_providers(queue: JobQueue = Depends(get_job_queue)):
    """List registered providers and whether their credentials are present."""
    return queue.registry.to_dict_list()
