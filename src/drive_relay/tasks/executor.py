# src/drive_relay/tasks/executor.py

from __future__ import annotations

"""
Bounded executor.

Runs zero-argument coroutine factories with at most `concurrency` of them in
flight. Waiting jobs start in submission order; completion order is whatever
the jobs make of it. No retries here: callers layer their own policy on top
of the returned futures.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


class BoundedExecutor:
    def __init__(self, name: str, concurrency: int) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.name = name
        self._concurrency = concurrency
        self._waiting: deque[tuple[JobFactory, asyncio.Future[Any]]] = deque()
        self._running = 0
        self._tasks: set[asyncio.Task[None]] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def running_count(self) -> int:
        return self._running

    @property
    def waiting_count(self) -> int:
        return len(self._waiting)

    def submit(self, job: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        """
        Queue a job and try to start it right away.

        The returned future settles with the job's own result or exception.
        Must be called from inside the running event loop.
        """
        fut: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._waiting.append((job, fut))
        self._idle.clear()
        logger.debug(
            "%s: job submitted (running=%d waiting=%d)", self.name, self._running, len(self._waiting)
        )
        self._dispatch()
        return fut

    async def join(self) -> None:
        """Wait until nothing is running and nothing is waiting."""
        await self._idle.wait()

    def _dispatch(self) -> None:
        while self._waiting and self._running < self._concurrency:
            job, fut = self._waiting.popleft()
            if fut.cancelled():
                # Caller gave up before the job got a slot.
                continue
            self._running += 1
            task = asyncio.create_task(self._run(job, fut))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        if self._running == 0 and not self._waiting:
            self._idle.set()

    async def _run(self, job: JobFactory, fut: asyncio.Future[Any]) -> None:
        try:
            result = await job()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as e:
            logger.debug("%s: job failed: %r", self.name, e)
            if not fut.done():
                fut.set_exception(e)
        else:
            if not fut.done():
                fut.set_result(result)
        finally:
            self._running -= 1
            # A finished job frees its slot for the next waiting one immediately.
            self._dispatch()
