import asyncio

import pytest

from conftest import (
    PLAIN_KIND,
    FakePersistence,
    GatedImageProvider,
    ScriptedTaskProvider,
    StaticImageProvider,
    wait_until,
)
from shotgen.config import Settings
from shotgen.services.errors import ConfigurationError, UnknownProviderError
from shotgen.services.job_queue import JobQueue, QueueStatus
from shotgen.services.jobs import CHARACTER_IMAGE, SHOT_VIDEO, GenerationParams, JobStatus, TargetRef
from shotgen.services.lro_poller import LroPoller
from shotgen.services.provider_registry import ProviderRegistry
from shotgen.services.providers.base import PollStatus


def _registry(*providers):
    registry = ProviderRegistry()
    for provider in providers:
        registry.register(provider)
    return registry


def _queue(persistence, *providers, max_concurrency=2):
    return JobQueue(
        persistence,
        _registry(*providers),
        max_concurrency=max_concurrency,
        poller=LroPoller(interval=0),
        persist_retry_delay=0,
    )


def _variant(i, owner="char-1"):
    return TargetRef(CHARACTER_IMAGE, f"variant-{i}", owner_id=owner)


def test_requires_persistence():
    with pytest.raises(ConfigurationError):
        JobQueue(None, ProviderRegistry())


def test_unknown_provider_is_rejected_at_enqueue():
    queue = _queue(FakePersistence())
    with pytest.raises(UnknownProviderError):
        queue.enqueue(_variant(1), "hailuo", GenerationParams(prompt="x"))
    assert queue.get_queue_status() == QueueStatus(pending=0, processing=0, total=0)


def test_enqueue_returns_immediately_without_workers():
    provider = StaticImageProvider()
    queue = _queue(FakePersistence(), provider)

    job_id = queue.enqueue(_variant(1), provider.provider_id, GenerationParams(prompt="x"))

    assert job_id.startswith("char_img_")
    assert provider.calls == 0
    assert queue.get_queue_status() == QueueStatus(pending=1, processing=0, total=1)


@pytest.mark.asyncio
async def test_five_jobs_on_two_slots():
    persistence = FakePersistence()
    provider = GatedImageProvider()
    queue = _queue(persistence, provider)
    provider.observe = lambda: queue.get_queue_status().processing

    async with queue:
        for i in range(1, 6):
            queue.enqueue(_variant(i), provider.provider_id, GenerationParams(prompt=f"p{i}"))

        await wait_until(lambda: len(provider.started) == 2)
        await asyncio.sleep(0.01)
        assert provider.started == ["p1", "p2"]
        assert queue.get_queue_status() == QueueStatus(pending=3, processing=2, total=5)

        provider.release("p2")
        await wait_until(lambda: len(provider.started) == 3)
        assert provider.started[2] == "p3"
        assert provider.finished == ["p2"]

        for prompt in ("p1", "p3", "p4", "p5"):
            provider.release(prompt)
        await asyncio.wait_for(queue.join(), timeout=2)

    assert provider.started == ["p1", "p2", "p3", "p4", "p5"]
    assert set(provider.load_trace) <= {0, 1, 2}
    assert max(provider.load_trace) == 2
    assert queue.get_queue_status() == QueueStatus(pending=0, processing=0, total=0)
    for i in range(1, 6):
        writes = persistence.writes_for(f"variant-{i}")
        assert writes[-1]["status"] == "completed"
        assert writes[-1]["image_url"] == f"https://cdn.test/p{i}.png"


@pytest.mark.asyncio
async def test_async_job_holds_its_slot_while_polling():
    persistence = FakePersistence()
    video = ScriptedTaskProvider(script=[PollStatus.pending()] * 3 + [PollStatus.succeeded("https://cdn.test/v.mp4")])
    image = GatedImageProvider()
    queue = _queue(persistence, video, image, max_concurrency=1)
    image.observe = lambda: queue.get_queue_status().processing

    async with queue:
        queue.enqueue(TargetRef(SHOT_VIDEO, "shot-1"), video.provider_id, GenerationParams(prompt="v"))
        queue.enqueue(_variant(1), image.provider_id, GenerationParams(prompt="i"))
        await wait_until(lambda: len(image.started) == 1)
        # the image job only started once the video job released the single slot
        assert len(video.check_times) == 4
        image.release("i")
        await asyncio.wait_for(queue.join(), timeout=2)

    assert persistence.writes_for("shot-1")[-1] == {
        "video_url": "https://cdn.test/v.mp4",
        "video_status": "completed",
        "video_error": None,
    }
    assert image.load_trace == [1, 1]


@pytest.mark.asyncio
async def test_failing_job_does_not_affect_others():
    persistence = FakePersistence()
    broken = StaticImageProvider(provider_id="broken", exc=RuntimeError("kaboom"))
    good = StaticImageProvider(provider_id="good")
    queue = _queue(persistence, broken, good)

    async with queue:
        queue.enqueue(_variant(1), "broken", GenerationParams(prompt="a"))
        queue.enqueue(_variant(2), "good", GenerationParams(prompt="b"))
        queue.enqueue(_variant(3), "good", GenerationParams(prompt="c"))
        await asyncio.wait_for(queue.join(), timeout=2)

    assert persistence.writes_for("variant-1")[-1] == {"status": "failed", "error_message": "kaboom"}
    assert persistence.writes_for("variant-2")[-1]["status"] == "completed"
    assert persistence.writes_for("variant-3")[-1]["status"] == "completed"


@pytest.mark.asyncio
async def test_worker_survives_processor_crash(monkeypatch):
    persistence = FakePersistence()
    provider = StaticImageProvider()
    queue = _queue(persistence, provider, max_concurrency=1)
    seen = []
    original_run = queue.processor.run

    async def flaky_run(job):
        seen.append(job)
        if len(seen) == 1:
            raise RuntimeError("processor bug")
        return await original_run(job)

    monkeypatch.setattr(queue.processor, "run", flaky_run)

    async with queue:
        queue.enqueue(_variant(1), provider.provider_id, GenerationParams(prompt="a"))
        queue.enqueue(_variant(2), provider.provider_id, GenerationParams(prompt="b"))
        await asyncio.wait_for(queue.join(), timeout=2)

    assert seen[0].status is JobStatus.FAILED
    assert seen[0].error == "processor bug"
    assert seen[1].status is JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_pending_jobs_for_owner():
    provider = GatedImageProvider()
    queue = _queue(FakePersistence(), provider, max_concurrency=1)

    async with queue:
        first = queue.enqueue(_variant(1, owner="alice"), provider.provider_id, GenerationParams(prompt="a1"))
        second = queue.enqueue(_variant(2, owner="alice"), provider.provider_id, GenerationParams(prompt="a2"))
        third = queue.enqueue(_variant(3, owner="bob"), provider.provider_id, GenerationParams(prompt="b1"))
        await wait_until(lambda: provider.started == ["a1"])

        alice = queue.pending_jobs_for("alice")
        assert [snap.id for snap in alice] == [second]
        assert alice[0].status is JobStatus.PENDING
        assert [snap.id for snap in queue.pending_jobs_for("bob")] == [third]
        assert first not in {snap.id for snap in alice}

        for prompt in ("a1", "a2", "b1"):
            provider.release(prompt)
        await asyncio.wait_for(queue.join(), timeout=2)

    assert queue.pending_jobs_for("alice") == []


@pytest.mark.asyncio
async def test_join_returns_immediately_when_idle():
    queue = _queue(FakePersistence())
    await asyncio.wait_for(queue.join(), timeout=0.5)


@pytest.mark.asyncio
async def test_from_settings_uses_configured_limits():
    settings = Settings(
        _env_file=None,
        MAX_CONCURRENT_JOBS=3,
        POLL_INTERVAL=0.5,
        POLL_MAX_ATTEMPTS=10,
        PERSIST_MAX_ATTEMPTS=4,
        PERSIST_RETRY_DELAY=0.25,
    )
    queue = JobQueue.from_settings(FakePersistence(), ProviderRegistry(), settings)

    assert queue.max_concurrency == 3
    assert queue.processor.poller.max_attempts == 10
    assert queue.processor.poller.interval == 0.5
    assert queue.processor.propagator.max_attempts == 4
    assert queue.processor.propagator.retry_delay == 0.25

    queue.start()
    assert queue.running
    await queue.stop()
    assert not queue.running


@pytest.mark.asyncio
async def test_outcomes_are_written_to_the_queue_persistence():
    persistence = FakePersistence(fail_times=1)
    provider = StaticImageProvider()
    queue = JobQueue(
        persistence,
        _registry(provider),
        poller=LroPoller(interval=0),
        persist_attempts=2,
        persist_retry_delay=0,
    )

    async with queue:
        queue.enqueue(TargetRef(PLAIN_KIND, "entity-1"), provider.provider_id, GenerationParams(prompt="x"))
        await asyncio.wait_for(queue.join(), timeout=2)

    assert queue.processor.propagator.persistence is persistence
    assert persistence.calls == 2
    assert persistence.writes_for("entity-1")[0]["status"] == "completed"


@pytest.mark.asyncio
async def test_join_returns_after_stop_with_jobs_still_pending():
    provider = GatedImageProvider()
    queue = _queue(FakePersistence(), provider, max_concurrency=1)

    queue.start()
    queue.enqueue(_variant(1), provider.provider_id, GenerationParams(prompt="a"))
    queue.enqueue(_variant(2), provider.provider_id, GenerationParams(prompt="b"))
    await wait_until(lambda: provider.started == ["a"])
    await queue.stop()

    await asyncio.wait_for(queue.join(), timeout=0.5)
    assert queue.get_queue_status().pending == 1


@pytest.mark.asyncio
async def test_restart_drains_jobs_left_pending():
    persistence = FakePersistence()
    provider = StaticImageProvider()
    queue = _queue(persistence, provider)

    queue.enqueue(_variant(1), provider.provider_id, GenerationParams(prompt="a"))
    queue.enqueue(_variant(2), provider.provider_id, GenerationParams(prompt="b"))

    async with queue:
        await asyncio.wait_for(queue.join(), timeout=2)

    assert queue.get_queue_status().total == 0
    assert persistence.writes_for("variant-2")[-1]["status"] == "completed"
