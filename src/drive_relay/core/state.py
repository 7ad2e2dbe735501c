# src/drive_relay/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..accounts import AppConfig
from ..channels.monitor import ChannelMonitor
from ..channels.registry import ChannelRegistry
from ..dispatch.dispatcher import Dispatcher
from ..tasks.executor import BoundedExecutor
from ..tasks.task_scheduler import TaskScheduler
from ..transfer.file_processor import FileProcessor

if TYPE_CHECKING:
    import aiohttp


@dataclass
class AppState:
    # Settings kept on the state so handlers don't reach for globals.
    settings: Any
    config: AppConfig

    scheduler: TaskScheduler
    executor: BoundedExecutor
    registry: ChannelRegistry
    dispatcher: Dispatcher

    monitors: dict[str, ChannelMonitor] = field(default_factory=dict)
    processors: dict[str, FileProcessor] = field(default_factory=dict)

    http_session: aiohttp.ClientSession | None = None

    def health(self) -> dict[str, Any]:
        return {
            "status": "OK",
            "accounts": len(self.config.accounts),
            "bound_channels": len(self.registry),
            "scheduled_tasks": self.scheduler.scheduled_count,
            "running_tasks": self.scheduler.running_count,
            "transfers": {
                "running": self.executor.running_count,
                "waiting": self.executor.waiting_count,
                "succeeded": self.dispatcher.transfers_succeeded,
                "dropped": self.dispatcher.transfers_dropped,
            },
            "channels": {
                monitor.account_name: monitor.channel_id for monitor in self.monitors.values()
            },
        }
