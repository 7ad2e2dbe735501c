# tests/test_retry_queue.py

from __future__ import annotations

import asyncio

import pytest

from drive_relay.errors import PermanentError, TransientIOError
from drive_relay.tasks.retry_queue import DEFAULT_MAX_ATTEMPTS, RetryableQueue


@pytest.mark.asyncio
async def test_retryable_failures_then_success() -> None:
    attempts: list[str] = []

    async def worker(payload: str) -> None:
        attempts.append(payload)
        if len(attempts) <= 2:
            raise TransientIOError("503 from upstream")

    queue: RetryableQueue[str] = RetryableQueue("collect", worker)
    queue.enqueue("acc-1")
    await queue.join()

    assert attempts == ["acc-1"] * 3
    assert queue.succeeded == 1
    assert queue.dropped == 0
    assert not queue.is_processing


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts() -> None:
    attempts = 0

    async def worker(_payload: str) -> None:
        nonlocal attempts
        attempts += 1
        raise TransientIOError("still down")

    queue: RetryableQueue[str] = RetryableQueue("collect", worker)
    queue.enqueue("acc-1")
    await queue.join()

    assert attempts == DEFAULT_MAX_ATTEMPTS
    assert queue.succeeded == 0
    assert queue.dropped == 1
    assert queue.pending_count == 0


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried() -> None:
    attempts = 0

    async def worker(_payload: str) -> None:
        nonlocal attempts
        attempts += 1
        raise PermanentError("no such folder")

    queue: RetryableQueue[str] = RetryableQueue("collect", worker, max_attempts=5)
    queue.enqueue("acc-1")
    await queue.join()

    assert attempts == 1
    assert queue.dropped == 1


@pytest.mark.asyncio
async def test_unclassified_exception_is_not_retried() -> None:
    attempts = 0

    async def worker(_payload: str) -> None:
        nonlocal attempts
        attempts += 1
        raise ValueError("bug")

    queue: RetryableQueue[str] = RetryableQueue("collect", worker)
    queue.enqueue("acc-1")
    await queue.join()

    assert attempts == 1
    assert queue.dropped == 1


@pytest.mark.asyncio
async def test_retried_job_goes_to_the_tail() -> None:
    order: list[str] = []
    failed_once: set[str] = set()

    async def worker(payload: str) -> None:
        order.append(payload)
        if payload == "a" and payload not in failed_once:
            failed_once.add(payload)
            raise TransientIOError("flaky")

    queue: RetryableQueue[str] = RetryableQueue("collect", worker)
    queue.enqueue("a")
    queue.enqueue("b")
    await queue.join()

    assert order == ["a", "b", "a"]
    assert queue.succeeded == 2


@pytest.mark.asyncio
async def test_one_job_at_a_time() -> None:
    active = 0
    peak = 0

    async def worker(_payload: int) -> None:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0)
        active -= 1

    queue: RetryableQueue[int] = RetryableQueue("collect", worker)
    for i in range(5):
        queue.enqueue(i)
    await queue.join()

    assert peak == 1
    assert queue.succeeded == 5


def test_rejects_zero_attempts() -> None:
    async def worker(_payload: str) -> None:
        return None

    with pytest.raises(ValueError):
        RetryableQueue("collect", worker, max_attempts=0)
