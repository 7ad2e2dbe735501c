# src/drive_relay/tasks/retry_queue.py

from __future__ import annotations

"""
Retryable FIFO queue.

One job in flight at a time. A job that fails with a retryable error goes
back to the tail (so other queued jobs get their turn first) until it has
been attempted `max_attempts` times. Everything else that fails is logged
and dropped; there is no dead-letter store.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Generic

from ..errors import is_retryable
from .task_models import Job, P

logger = logging.getLogger(__name__)

QueueWorker = Callable[[P], Awaitable[None]]

DEFAULT_MAX_ATTEMPTS = 3


class RetryableQueue(Generic[P]):
    def __init__(
            self,
            name: str,
            worker: QueueWorker[P],
            *,
            max_attempts: int = DEFAULT_MAX_ATTEMPTS,
            describe: Callable[[P], str] = str,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.name = name
        self._worker = worker
        self._max_attempts = max_attempts
        self._describe = describe
        self._queue: deque[Job[P]] = deque()
        self._processing = False
        self._drain_task: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()

        self.succeeded = 0
        self.dropped = 0

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        return self._processing

    def enqueue(self, payload: P) -> None:
        """Append a fresh job (attempt 1) and start draining if idle."""
        self._queue.append(Job(payload=payload))
        self._idle.clear()
        logger.info("%s: enqueued %s (pending=%d)", self.name, self._describe(payload), len(self._queue))

        if not self._processing:
            self._processing = True
            self._drain_task = asyncio.create_task(self._drain())
            self._drain_task.add_done_callback(self._on_drain_done)

    async def join(self) -> None:
        """Wait until the queue is empty and no job is running."""
        await self._idle.wait()

    async def _drain(self) -> None:
        try:
            while self._queue:
                job = self._queue.popleft()
                label = self._describe(job.payload)
                logger.info(
                    "%s: processing %s (attempt %d/%d, pending=%d)",
                    self.name, label, job.attempt, self._max_attempts, len(self._queue),
                )
                try:
                    await self._worker(job.payload)
                except Exception as e:
                    self._handle_failure(job, e)
                else:
                    self.succeeded += 1
                    logger.info("%s: %s done (attempt %d)", self.name, label, job.attempt)
        finally:
            self._processing = False
            self._idle.set()

    def _handle_failure(self, job: Job[P], exc: Exception) -> None:
        label = self._describe(job.payload)
        job.history.append(f"{type(exc).__name__}: {exc}")

        if not is_retryable(exc):
            self.dropped += 1
            logger.error(
                "%s: %s failed permanently (attempt %d), dropping: %s",
                self.name, label, job.attempt, exc,
            )
            return

        if job.attempt < self._max_attempts:
            job.attempt += 1
            self._queue.append(job)
            logger.warning(
                "%s: %s failed (retryable), re-queued as attempt %d/%d: %s",
                self.name, label, job.attempt, self._max_attempts, exc,
            )
            return

        self.dropped += 1
        logger.error(
            "%s: %s failed %d times, giving up: %s",
            self.name, label, job.attempt, "; ".join(job.history),
        )

    def _on_drain_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s: drain loop crashed: %r", self.name, exc)
