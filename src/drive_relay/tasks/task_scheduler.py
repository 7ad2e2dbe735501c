# src/drive_relay/tasks/task_scheduler.py

from __future__ import annotations

"""
Task scheduler.

A small polling loop that, every `interval_seconds`:
- computes how many execution slots are free (skips the tick if none),
- picks the tasks due within this tick window, earliest first,
- starts each one without blocking the loop,
- races the handler against its timeout and drops the task afterwards.

On timeout the failed outcome is recorded first, then on_timeout is started
as a separate background task, so a slow hook never holds a slot.

The timeout is advisory: the handler is never cancelled, its late result is
simply ignored. Stopping the loop does not touch running executions either.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from collections.abc import Callable

from ..errors import TaskTimeoutError
from .task_models import Task, TaskOutcome, TaskRegistration, TaskResult, TaskStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TaskScheduler:
    def __init__(
            self,
            *,
            interval_seconds: float = 1.0,
            max_concurrent_tasks: int = 4,
            clock: Clock = time.time,
            history_size: int = 100,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if max_concurrent_tasks < 1:
            raise ValueError("max_concurrent_tasks must be >= 1")
        self._interval = float(interval_seconds)
        self._max_concurrent = int(max_concurrent_tasks)
        self._clock = clock

        self._scheduled: dict[str, Task] = {}
        self._running: set[str] = set()
        self._executions: dict[str, asyncio.Task[TaskOutcome]] = {}
        self._timeout_hooks: set[asyncio.Future[None]] = set()
        self._stop = asyncio.Event()
        self.history: deque[TaskOutcome] = deque(maxlen=history_size)

    # ---- registration ----

    def register_task(self, task: Task) -> TaskRegistration:
        """
        Store a task. It is never started here, even if already overdue:
        the next tick picks it up.
        """
        task_id = str(uuid.uuid4())
        self._scheduled[task_id] = task
        logger.debug("Task %s (%s) registered for %.3f", task_id, task.name, task.scheduled_time)
        return TaskRegistration(task_id=task_id, scheduled_time=task.scheduled_time)

    def unregister_task(self, task_id: str) -> bool:
        """Drop a task that has not started yet. Running tasks cannot be cancelled."""
        if task_id in self._running:
            return False
        return self._scheduled.pop(task_id, None) is not None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def scheduled_count(self) -> int:
        return len(self._scheduled)

    @property
    def running_count(self) -> int:
        return len(self._running)

    @property
    def pending_timeout_hooks(self) -> int:
        return len(self._timeout_hooks)

    def is_scheduled(self, task_id: str) -> bool:
        return task_id in self._scheduled

    # ---- loop ----

    async def run(self) -> None:
        """
        Tick every interval until stop() is called.

        Exceptions from the loop itself propagate: the owner treats them as
        fatal, since a dead loop means channels silently stop being renewed.
        """
        logger.info(
            "Task scheduler started (interval=%.3fs, max_concurrent=%d)",
            self._interval, self._max_concurrent,
        )
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except TimeoutError:
                pass
            if self._stop.is_set():
                break
            self.tick()
        logger.info("Task scheduler stopped (scheduled=%d running=%d)", len(self._scheduled), len(self._running))

    def stop(self) -> None:
        """Stop future ticks. Running executions finish on their own."""
        self._stop.set()

    def tick(self) -> list[str]:
        """Start every task due in this window, within the free slot budget."""
        available = self._max_concurrent - len(self._running)
        if available <= 0:
            logger.debug("Tick skipped: all %d slots busy", self._max_concurrent)
            return []

        now = self._clock()
        due = sorted(
            (
                (task.scheduled_time, task_id)
                for task_id, task in self._scheduled.items()
                if task_id not in self._running and task.scheduled_time - now <= self._interval
            ),
        )[:available]

        started = [task_id for _, task_id in due]
        if started:
            logger.debug("Executing %d / %d tasks at %.3f", len(started), len(self._scheduled), now)

        for task_id in started:
            self._running.add(task_id)
            execution = asyncio.create_task(self._execute(task_id))
            self._executions[task_id] = execution
        return started

    async def wait_idle(self) -> None:
        """Wait for every execution started so far to settle."""
        while self._executions:
            await asyncio.gather(*list(self._executions.values()), return_exceptions=True)

    # ---- execution ----

    async def _execute(self, task_id: str) -> TaskOutcome:
        task = self._scheduled[task_id]
        task_logger = logger.getChild(task_id)
        started = time.monotonic()
        status = TaskStatus.RUNNING

        try:
            task_logger.info("Executing task %s ...", task.name)
            handler = asyncio.ensure_future(_call_handler(task, task_id, task_logger))
            done, _ = await asyncio.wait({handler}, timeout=task.timeout_seconds)

            if handler in done:
                try:
                    result = handler.result()
                except Exception as e:
                    result = TaskResult.failed(f"{type(e).__name__}: {e}")
                if not isinstance(result, TaskResult):
                    result = TaskResult.success(result)
                status = TaskStatus.COMPLETED
            else:
                # Late settlement is discarded, but must not be reported as "never retrieved".
                handler.add_done_callback(_discard_late_result)
                result = TaskResult.failed(str(TaskTimeoutError(task.timeout_seconds)))
                status = TaskStatus.TIMED_OUT

            duration = time.monotonic() - started
            if result.ok:
                task_logger.info("Task %s completed successfully in %.3fs", task.name, duration)
            else:
                task_logger.error("Task %s failed in %.3fs: %s", task.name, duration, result.error)
            outcome = TaskOutcome(task_id=task_id, status=status, result=result, duration_seconds=duration)
            self.history.append(outcome)
            if status == TaskStatus.TIMED_OUT:
                self._fire_on_timeout(task, task_id, task_logger)
            return outcome

        finally:
            self._running.discard(task_id)
            self._scheduled.pop(task_id, None)
            self._executions.pop(task_id, None)

    def _fire_on_timeout(self, task: Task, task_id: str, task_logger: logging.Logger) -> None:
        """Start on_timeout in the background; it never holds the execution slot."""
        if task.on_timeout is None:
            return
        hook = asyncio.ensure_future(task.on_timeout(task_id, task_logger))
        self._timeout_hooks.add(hook)

        def _done(fut: asyncio.Future[None]) -> None:
            self._timeout_hooks.discard(fut)
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                task_logger.error("on_timeout handler of %s failed", task.name, exc_info=exc)

        hook.add_done_callback(_done)


async def _call_handler(task: Task, task_id: str, task_logger: logging.Logger) -> TaskResult:
    return await task.handler(task_id, task_logger)


def _discard_late_result(fut: asyncio.Future[TaskResult]) -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        logger.debug("Late failure of a timed-out task ignored: %r", exc)
