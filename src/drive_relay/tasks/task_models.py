# src/drive_relay/tasks/task_models.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Generic, TypeVar

P = TypeVar("P")


class TaskStatus(StrEnum):
    """
    Lifecycle of a scheduled task.

    scheduled -> running -> completed | timed_out
    The task leaves the schedule as soon as it leaves "running".
    """

    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"


class ResultStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class TaskResult:
    status: ResultStatus
    data: Any = None
    error: str | None = None

    @classmethod
    def success(cls, data: Any = None) -> TaskResult:
        return cls(status=ResultStatus.SUCCESS, data=data)

    @classmethod
    def failed(cls, error: str) -> TaskResult:
        return cls(status=ResultStatus.FAILED, error=error)

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS


TaskHandler = Callable[[str, logging.Logger], Awaitable[TaskResult]]
TaskTimeoutHandler = Callable[[str, logging.Logger], Awaitable[None]]


@dataclass(slots=True)
class Task:
    """
    One-shot, timeout-bounded unit of work.

    Tasks never recur: whoever needs a follow-up registers a new task
    (channel renewal does exactly that).
    """

    scheduled_time: float  # epoch seconds
    timeout_seconds: float
    handler: TaskHandler
    on_timeout: TaskTimeoutHandler | None = None
    name: str = "task"


@dataclass(slots=True, frozen=True)
class TaskRegistration:
    task_id: str
    scheduled_time: float


@dataclass(slots=True)
class TaskOutcome:
    """What the scheduler recorded for one execution attempt."""

    task_id: str
    status: TaskStatus
    result: TaskResult
    duration_seconds: float


@dataclass(slots=True)
class Job(Generic[P]):
    """RetryableQueue item. Invariant: 1 <= attempt <= max_attempts."""

    payload: P
    attempt: int = 1
    history: list[str] = field(default_factory=list)
