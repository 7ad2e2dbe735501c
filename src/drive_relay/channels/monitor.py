# src/drive_relay/channels/monitor.py

from __future__ import annotations

"""
Per-account channel monitor.

Owns one account's push-notification channel: opens it, registers a renewal
task shortly before it expires, and closes the previous channel once its
replacement is active. The state machine lives in lifecycle.py; this class
only runs the commands it produces.
"""

import logging
import time
import uuid
from collections import deque
from collections.abc import Callable

from ..core.models import ChannelSpec
from ..core.ports import StorageClient
from ..tasks.task_models import Task, TaskResult
from ..tasks.task_scheduler import TaskScheduler
from . import lifecycle
from .channel_models import (
    ActivateChannel,
    CancelRenewal,
    Channel,
    ChannelState,
    CloseChannel,
    Command,
    ForgetChannel,
    MonitorView,
    OpenChannel,
    ScheduleRenewal,
    Transition,
)
from .registry import ChannelRegistry

logger = logging.getLogger(__name__)

DEFAULT_RENEW_OFFSET_SECONDS = 2 * 60
DEFAULT_RENEW_RETRY_SECONDS = 30


class ChannelMonitor:
    def __init__(
            self,
            *,
            account_id: str,
            account_name: str,
            folder_id: str,
            storage: StorageClient,
            scheduler: TaskScheduler,
            registry: ChannelRegistry,
            webhook_address: str,
            channel_expiration_seconds: float,
            renew_offset_seconds: float = DEFAULT_RENEW_OFFSET_SECONDS,
            renew_retry_seconds: float = DEFAULT_RENEW_RETRY_SECONDS,
            clock: Callable[[], float] = time.time,
            id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        if renew_offset_seconds >= channel_expiration_seconds:
            # Renewal would already be due when the channel opens.
            raise ValueError(
                f"renew_offset_seconds ({renew_offset_seconds}) must be shorter than "
                f"channel_expiration_seconds ({channel_expiration_seconds})"
            )
        self.account_id = account_id
        self.account_name = account_name
        self._folder_id = folder_id
        self._storage = storage
        self._scheduler = scheduler
        self._registry = registry
        self._webhook_address = webhook_address
        self._expiration_seconds = float(channel_expiration_seconds)
        self._renew_offset = float(renew_offset_seconds)
        self._renew_retry = float(renew_retry_seconds)
        self._clock = clock
        self._new_id = id_factory

        self._view: MonitorView = lifecycle.initial_view(account_id)
        self._renewal_task_id: str | None = None
        self._open_error: Exception | None = None
        self._log = logger.getChild(account_name)

    # ---- read-only state ----

    @property
    def view(self) -> MonitorView:
        return self._view

    @property
    def state(self) -> ChannelState:
        return self._view.state

    @property
    def channel(self) -> Channel | None:
        return self._view.current

    @property
    def channel_id(self) -> str | None:
        current = self._view.current
        return current.channel_id if current is not None else None

    @property
    def renewal_task_id(self) -> str | None:
        return self._renewal_task_id

    # ---- operations ----

    async def start(self) -> Channel:
        """
        Open a new channel. When one is already active this is a renewal:
        the old channel is closed only after the new one is confirmed.

        Raises whatever the collaborator raised if the channel could not be opened.
        """
        self._log.info("Starting channel (state=%s)...", self._view.state)
        self._open_error = None

        await self._apply(
            lifecycle.request_start(
                self._view,
                now=self._clock(),
                expiration_seconds=self._expiration_seconds,
                new_channel_id=self._new_id(),
            )
        )

        if self._open_error is not None:
            raise self._open_error
        if self._view.current is None:
            raise RuntimeError(f"{self.account_name}: no active channel (state={self._view.state})")
        return self._view.current

    async def stop(self, channel_id: str | None = None) -> None:
        """
        Close the given channel, or the current one and end monitoring.

        Collaborator failures are logged, never raised: a dangling remote
        channel is preferable to a blocked shutdown.
        """
        self._log.info("Stopping channel %s ...", channel_id or self.channel_id)
        await self._apply(lifecycle.request_stop(self._view, channel_id))

    # ---- command interpreter ----

    async def _apply(self, transition: Transition) -> None:
        self._view = transition.view
        pending: deque[Command] = deque(transition.commands)
        while pending:
            follow_up = await self._run_command(pending.popleft())
            if follow_up is not None:
                self._view = follow_up.view
                pending.extend(follow_up.commands)

    async def _run_command(self, command: Command) -> Transition | None:
        if isinstance(command, OpenChannel):
            return await self._open(command)

        if isinstance(command, ActivateChannel):
            channel = command.channel
            self._registry.bind(channel.channel_id, channel.owner)
            self._log.info("Channel %s active until %.0f", channel.channel_id, channel.expiration)
            return None

        if isinstance(command, ScheduleRenewal):
            self._schedule_renewal(command)
            return None

        if isinstance(command, CancelRenewal):
            if self._renewal_task_id is not None:
                self._scheduler.unregister_task(self._renewal_task_id)
                self._renewal_task_id = None
            return None

        if isinstance(command, CloseChannel):
            await self._close(command.channel)
            return Transition(view=lifecycle.channel_closed(self._view, command.channel.channel_id))

        if isinstance(command, ForgetChannel):
            self._registry.unbind(command.channel.channel_id)
            self._log.error("Channel %s lapsed without a replacement", command.channel.channel_id)
            return None

        raise TypeError(f"Unknown channel command: {command!r}")

    async def _open(self, command: OpenChannel) -> Transition:
        spec = ChannelSpec(
            channel_id=command.channel_id,
            address=self._webhook_address,
            expiration=command.expiration,
        )
        try:
            reply = await self._storage.watch(self._folder_id, spec)
        except Exception as e:
            self._open_error = e
            self._log.error("Failed to open channel %s: %s", command.channel_id, e)
            return lifecycle.channel_open_failed(
                self._view,
                now=self._clock(),
                retry_seconds=self._renew_retry,
                renew_offset_seconds=self._renew_offset,
            )

        self._log.info("Channel %s opened (resource=%s)", reply.channel_id, reply.resource_id)
        return lifecycle.channel_opened(self._view, reply, renew_offset_seconds=self._renew_offset)

    async def _close(self, channel: Channel) -> None:
        try:
            await self._storage.stop_channel(channel.channel_id, channel.resource_id)
            self._log.info("Channel %s stopped", channel.channel_id)
        except Exception as e:
            self._log.error("Failed to stop channel %s: %s", channel.channel_id, e)
        finally:
            self._registry.unbind(channel.channel_id)

    def _schedule_renewal(self, command: ScheduleRenewal) -> None:
        task = Task(
            scheduled_time=command.at,
            timeout_seconds=command.timeout_seconds,
            handler=self._renew,
            on_timeout=self._renew_timed_out,
            name=f"renew-channel:{self.account_name}",
        )
        registration = self._scheduler.register_task(task)
        self._renewal_task_id = registration.task_id
        self._log.info(
            "Channel renew task %s registered for %.0f", registration.task_id, registration.scheduled_time
        )

    async def _renew(self, task_id: str, task_logger: logging.Logger) -> TaskResult:
        if self._view.state == ChannelState.STOPPED:
            task_logger.info("%s: monitor stopped, renewal skipped", self.account_name)
            return TaskResult.success("skipped")
        try:
            channel = await self.start()
        except Exception as e:
            return TaskResult.failed(f"{self.account_name}: renewal failed: {e}")
        return TaskResult.success(channel.channel_id)

    async def _renew_timed_out(self, task_id: str, task_logger: logging.Logger) -> None:
        task_logger.warning(
            "%s: channel renewal still pending after %.0fs", self.account_name, self._renew_offset
        )
