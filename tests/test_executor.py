# tests/test_executor.py

from __future__ import annotations

import asyncio

import pytest

from drive_relay.tasks.executor import BoundedExecutor


def test_executor_rejects_zero_concurrency() -> None:
    with pytest.raises(ValueError):
        BoundedExecutor("bad", 0)


@pytest.mark.asyncio
async def test_executor_never_exceeds_concurrency() -> None:
    executor = BoundedExecutor("files", 2)
    active = 0
    peak = 0

    async def job() -> None:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1

    futures = [executor.submit(job) for _ in range(6)]
    assert executor.running_count == 2
    assert executor.waiting_count == 4

    await asyncio.gather(*futures)
    await executor.join()

    assert peak == 2
    assert executor.running_count == 0
    assert executor.waiting_count == 0


@pytest.mark.asyncio
async def test_executor_starts_jobs_in_submission_order() -> None:
    executor = BoundedExecutor("files", 1)
    started: list[int] = []

    def make(i: int):
        async def job() -> int:
            started.append(i)
            await asyncio.sleep(0)
            return i * 10

        return job

    futures = [executor.submit(make(i)) for i in range(5)]
    results = await asyncio.gather(*futures)

    assert started == [0, 1, 2, 3, 4]
    assert results == [0, 10, 20, 30, 40]


@pytest.mark.asyncio
async def test_executor_failure_does_not_affect_other_jobs() -> None:
    executor = BoundedExecutor("files", 2)

    async def ok() -> str:
        return "ok"

    async def boom() -> str:
        raise RuntimeError("boom")

    f1 = executor.submit(ok)
    f2 = executor.submit(boom)
    f3 = executor.submit(ok)

    results = await asyncio.gather(f1, f2, f3, return_exceptions=True)
    await executor.join()

    assert results[0] == "ok"
    assert isinstance(results[1], RuntimeError)
    assert results[2] == "ok"


@pytest.mark.asyncio
async def test_executor_skips_jobs_cancelled_while_waiting() -> None:
    executor = BoundedExecutor("files", 1)
    release = asyncio.Event()
    ran: list[str] = []

    async def blocker() -> None:
        await release.wait()
        ran.append("blocker")

    async def second() -> None:
        ran.append("second")

    first = executor.submit(blocker)
    waiting = executor.submit(second)
    waiting.cancel()

    release.set()
    await first
    await executor.join()

    assert ran == ["blocker"]
