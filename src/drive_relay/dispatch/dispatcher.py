# src/drive_relay/dispatch/dispatcher.py

from __future__ import annotations

"""
Dispatcher.

Turns inbound notifications (and the startup scan) into work:
- "collect changes" jobs go through a RetryableQueue, one at a time, so the
  change token of an account is never read and written concurrently;
- "process file" jobs go through the shared BoundedExecutor. Retries are
  layered here: a retryable failure is resubmitted to the executor's tail
  until max_attempts is reached.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from ..channels.registry import ChannelLookup
from ..core.models import DriveFile
from ..errors import PermanentError, is_retryable
from ..tasks.executor import BoundedExecutor
from ..tasks.retry_queue import DEFAULT_MAX_ATTEMPTS, RetryableQueue
from ..transfer.file_processor import FileProcessor, ListingMode

logger = logging.getLogger(__name__)

SYNC_STATE = "sync"


@dataclass(slots=True, frozen=True)
class TransferJob:
    account_id: str
    file: DriveFile
    attempt: int = 1


class Dispatcher:
    def __init__(
            self,
            *,
            channels: ChannelLookup,
            processors: Mapping[str, FileProcessor],
            executor: BoundedExecutor,
            max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._channels = channels
        self._processors = processors
        self._executor = executor
        self._max_attempts = max_attempts
        self._collect_queue: RetryableQueue[str] = RetryableQueue(
            "collect-changes",
            self._collect_changes,
            max_attempts=max_attempts,
            describe=self._account_label,
        )
        self._transfers: set[asyncio.Future[bool]] = set()

        self.transfers_succeeded = 0
        self.transfers_dropped = 0

    @property
    def collect_queue(self) -> RetryableQueue[str]:
        return self._collect_queue

    @property
    def pending_transfers(self) -> int:
        return len(self._transfers)

    # ---- inbound ----

    def notify(self, channel_id: str, resource_state: str | None) -> bool:
        """
        Handle one push notification. Returns True if a collect job was queued.

        Unknown channels and "sync" handshakes are ignored.
        """
        owner = self._channels.owner_of(channel_id)
        if owner is None:
            logger.warning("Notification for unknown channel %s ... ignoring", channel_id)
            return False

        label = self._account_label(owner)
        if (resource_state or "").lower() == SYNC_STATE:
            logger.info("%s: sync notification on channel %s", label, channel_id)
            return False

        logger.info("%s: change notification (%s) on channel %s", label, resource_state, channel_id)
        self._collect_queue.enqueue(owner)
        return True

    async def enqueue_unprocessed(self, account_id: str, mode: ListingMode = "all") -> list[asyncio.Future[bool]]:
        """List the account's pending files and submit one transfer per file."""
        processor = self._processor(account_id)
        files = await processor.get_unprocessed_files(mode)
        return [self.submit_transfer(account_id, file) for file in files]

    # ---- jobs ----

    async def _collect_changes(self, account_id: str) -> None:
        processor = self._processor(account_id)
        files = await processor.get_unprocessed_files("changes")
        logger.info("%s: found %d changed files", processor.account.name, len(files))
        for file in files:
            self.submit_transfer(account_id, file)

    def submit_transfer(self, account_id: str, file: DriveFile) -> asyncio.Future[bool]:
        """
        Submit a file transfer. The returned future resolves to True once the
        file is relayed, or False once it has been dropped.
        """
        self._processor(account_id)
        done: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._transfers.add(done)
        done.add_done_callback(self._transfers.discard)
        self._submit_attempt(TransferJob(account_id=account_id, file=file), done)
        return done

    def _submit_attempt(self, job: TransferJob, done: asyncio.Future[bool]) -> None:
        processor = self._processor(job.account_id)
        fut = self._executor.submit(lambda: processor.process_file(job.file))
        fut.add_done_callback(lambda f: self._on_attempt_done(job, done, f))

    def _on_attempt_done(self, job: TransferJob, done: asyncio.Future[bool], fut: asyncio.Future[None]) -> None:
        label = f"{self._account_label(job.account_id)}: {job.file.name}"

        if fut.cancelled():
            logger.warning("%s: transfer cancelled", label)
            self._finish(done, False)
            return

        exc = fut.exception()
        if exc is None:
            self.transfers_succeeded += 1
            logger.info("%s: transfer done (attempt %d)", label, job.attempt)
            self._finish(done, True)
            return

        if is_retryable(exc) and job.attempt < self._max_attempts:
            retry = TransferJob(account_id=job.account_id, file=job.file, attempt=job.attempt + 1)
            logger.warning(
                "%s: transfer failed (retryable), resubmitting as attempt %d/%d: %s",
                label, retry.attempt, self._max_attempts, exc,
            )
            self._submit_attempt(retry, done)
            return

        self.transfers_dropped += 1
        logger.error("%s: transfer failed after %d attempt(s), dropping: %s", label, job.attempt, exc)
        self._finish(done, False)

    @staticmethod
    def _finish(done: asyncio.Future[bool], value: bool) -> None:
        if not done.done():
            done.set_result(value)

    async def join(self) -> None:
        """Wait until no collect job and no transfer is outstanding."""
        while True:
            await self._collect_queue.join()
            if self._transfers:
                await asyncio.gather(*list(self._transfers), return_exceptions=True)
                continue
            if self._collect_queue.pending_count == 0 and not self._collect_queue.is_processing:
                return

    # ---- helpers ----

    def _processor(self, account_id: str) -> FileProcessor:
        processor = self._processors.get(account_id)
        if processor is None:
            raise PermanentError(f"No processor for account {account_id}")
        return processor

    def _account_label(self, account_id: str) -> str:
        processor = self._processors.get(account_id)
        return processor.account.name if processor is not None else account_id
