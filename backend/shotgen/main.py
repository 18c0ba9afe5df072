"""ShotGen: FastAPI application entry point.

Builds the provider registry, persistence sink and generation job queue on
startup, and mounts the queue status routes.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from shotgen.api.router import api_router
from shotgen.config import get_settings
from shotgen.database import close_db, get_session_factory
from shotgen.services.job_queue import JobQueue
from shotgen.services.jobs import TARGET_KINDS
from shotgen.services.persistence import SqlAlchemyPersistence
from shotgen.services.provider_registry import build_default_registry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: build and start the job queue, stop it on shutdown."""
    logger.info("%s starting up...", settings.APP_NAME)
    logger.info("USE_MOCK_API: %s", settings.USE_MOCK_API)

    persistence = SqlAlchemyPersistence(get_session_factory())
    await _recover_interrupted(persistence)

    registry = build_default_registry(settings)
    queue = JobQueue.from_settings(persistence, registry, settings)
    app.state.job_queue = queue
    queue.start()

    yield

    await queue.stop()
    await close_db()
    logger.info("%s shut down", settings.APP_NAME)


async def _recover_interrupted(persistence: SqlAlchemyPersistence) -> None:
    """Fail entities left as generating by a previous process.

    Jobs are in-memory only, so nothing will ever finish them.
    """
    for kind in TARGET_KINDS.values():
        try:
            await persistence.reset_interrupted(kind)
        except Exception as e:
            logger.warning("Startup recovery for %s failed (non-fatal): %s", kind.name, e)


app = FastAPI(
    title="ShotGen API",
    description="Image/video generation job queue",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

app.include_router(api_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": settings.APP_NAME,
        "status": "running",
        "mock_mode": settings.USE_MOCK_API,
    }


@app.get("/health")
async def health():
    """Detailed health check, including queue counters."""
    queue: JobQueue | None = getattr(app.state, "job_queue", None)
    return {
        "status": "healthy",
        "mock_mode": settings.USE_MOCK_API,
        "queue": queue.get_queue_status().to_dict() if queue else None,
        "workers_running": bool(queue and queue.running),
    }
