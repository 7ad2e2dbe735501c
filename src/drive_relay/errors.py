# src/drive_relay/errors.py

from __future__ import annotations

"""
Failure taxonomy shared by the queue, the executor and the HTTP collaborators.

Only `retryable` is inspected by the retry logic. Anything that is not a
RelayError is treated as permanent.
"""


class RelayError(Exception):
    def __init__(self, message: str, *, retryable: bool) -> None:
        super().__init__(message)
        self.retryable = retryable


class TransientIOError(RelayError):
    """Network blips, rate limits, 5xx answers."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class PermanentError(RelayError):
    """Auth failures, missing accounts, malformed data."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class ConfigError(PermanentError):
    pass


class TaskTimeoutError(Exception):
    """Scheduler-level timeout. Advisory: the handler is not cancelled."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Task timed out after {timeout_seconds:.3f}s")
        self.timeout_seconds = timeout_seconds


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, RelayError) and exc.retryable
