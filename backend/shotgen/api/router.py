"""Master API router: mounts all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from shotgen.api.queue import router as queue_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(queue_router, prefix="/queue", tags=["Generation Queue"])
