"""Pytest configuration helpers.

Puts ``backend/`` on ``sys.path`` so tests can import the ``shotgen`` package
without installing it, and provides in-memory fakes for persistence and
providers.
"""
import asyncio
import os
import sys
import time

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

from shotgen.config import Settings  # noqa: E402
from shotgen.services.jobs import GenerationParams, TargetKind, TargetRef  # noqa: E402
from shotgen.services.providers.base import (  # noqa: E402
    AsyncTaskProvider,
    PollHandle,
    PollStatus,
    Result,
    SynchronousProvider,
)

# A target kind without a processing status: one write per job.
PLAIN_KIND = TargetKind(
    name="plain",
    table="plain_entities",
    artifact_field="url",
    status_field="status",
    error_field="error",
)


class FakePersistence:
    """Records writes; the first ``fail_times`` calls raise."""

    def __init__(self, fail_times: int = 0) -> None:
        self.fail_times = fail_times
        self.calls = 0
        self.writes: list[tuple[TargetRef, dict]] = []

    async def update_entity(self, target, fields):
        self.calls += 1
        if self.calls <= self.fail_times:
            raise ConnectionError("storage unavailable")
        self.writes.append((target, dict(fields)))

    def writes_for(self, target_id: str) -> list[dict]:
        return [fields for target, fields in self.writes if target.id == target_id]


class StaticImageProvider(SynchronousProvider):
    """Synchronous provider returning a fixed result or raising."""

    media = "image"

    def __init__(self, provider_id="static-image", result=None, exc=None):
        self.provider_id = provider_id
        self.label = provider_id
        self.result = result or Result.success(artifact_url="https://cdn.test/image.png")
        self.exc = exc
        self.calls = 0

    def is_configured(self):
        return True

    async def generate(self, params):
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return self.result


class GatedImageProvider(SynchronousProvider):
    """Blocks each call until ``release(prompt)``; records start order and queue load."""

    media = "image"

    def __init__(self, provider_id="gated"):
        self.provider_id = provider_id
        self.label = provider_id
        self.started: list[str] = []
        self.finished: list[str] = []
        self.load_trace: list[int] = []
        self.observe = None
        self._gates: dict[str, asyncio.Event] = {}

    def is_configured(self):
        return True

    def _gate(self, prompt):
        return self._gates.setdefault(prompt, asyncio.Event())

    def release(self, prompt):
        self._gate(prompt).set()

    async def generate(self, params):
        self.started.append(params.prompt)
        if self.observe:
            self.load_trace.append(self.observe())
        await self._gate(params.prompt).wait()
        if self.observe:
            self.load_trace.append(self.observe())
        self.finished.append(params.prompt)
        return Result.success(artifact_url=f"https://cdn.test/{params.prompt}.png")


class ScriptedTaskProvider(AsyncTaskProvider):
    """Async provider whose status checks follow a script.

    Script items are PollStatus values or exceptions to raise; once the script
    is exhausted every check reports pending.
    """

    media = "video"

    def __init__(self, provider_id="scripted-video", script=None, submit_exc=None):
        self.provider_id = provider_id
        self.label = provider_id
        self.script = list(script or [])
        self.submit_exc = submit_exc
        self.submitted: list[GenerationParams] = []
        self.check_times: list[float] = []

    def is_configured(self):
        return True

    async def submit(self, params):
        if self.submit_exc is not None:
            raise self.submit_exc
        self.submitted.append(params)
        return PollHandle(self.provider_id, f"task-{len(self.submitted)}")

    async def check_status(self, handle):
        self.check_times.append(time.monotonic())
        if not self.script:
            return PollStatus.pending()
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


async def wait_until(predicate, timeout=2.0):
    """Yield to the loop until ``predicate()`` holds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="gemini-key",
        KLING_ACCESS_KEY="kling-ak",
        KLING_SECRET_KEY="kling-sk",
        JIMENG_API_KEY="jimeng-key",
        OPENAI_API_KEY="openai-key",
    )


@pytest.fixture
def bare_settings():
    """Settings with every credential blank."""
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="",
        AI_INTEGRATIONS_GEMINI_API_KEY="",
        AI_INTEGRATIONS_GEMINI_BASE_URL="",
        KLING_ACCESS_KEY="",
        KLING_SECRET_KEY="",
        JIMENG_API_KEY="",
        OPENAI_API_KEY="",
        AI_INTEGRATIONS_OPENAI_API_KEY="",
    )


@pytest.fixture
def params():
    return GenerationParams(prompt="a lighthouse at dusk", image_base64="aW1hZ2U=", duration=5)
