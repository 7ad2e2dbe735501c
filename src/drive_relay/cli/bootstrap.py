# src/drive_relay/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- ensures local (gitignored) directories exist,
- builds one Drive client and one Paperless client per account,
- wires scheduler, executor, registry, processors, monitors and dispatcher
  into AppState.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import aiohttp

from ..accounts import Account, AppConfig
from ..channels.monitor import ChannelMonitor
from ..channels.registry import ChannelRegistry
from ..core.ports import DocumentSink, StorageClient
from ..core.state import AppState
from ..dispatch.dispatcher import Dispatcher
from ..drive.auth import ServiceAccountTokenProvider
from ..drive.change_tokens import ChangeTokenStore
from ..drive.client import DriveClient
from ..errors import ConfigError
from ..paperless.client import PaperlessClient
from ..tasks.executor import BoundedExecutor
from ..tasks.task_scheduler import TaskScheduler
from ..transfer.file_processor import FileProcessor

logger = logging.getLogger(__name__)

StorageFactory = Callable[[AppConfig, Account], StorageClient]
SinkFactory = Callable[[AppConfig, Account], DocumentSink]


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def drive_client_factory(session: aiohttp.ClientSession, settings) -> StorageFactory:
    # Accounts sharing a drive account share one token provider.
    providers: dict[str, ServiceAccountTokenProvider] = {}

    def build(config: AppConfig, account: Account) -> StorageClient:
        drive = config.drive_account_for(account)
        provider = providers.get(drive.id)
        if provider is None:
            provider = ServiceAccountTokenProvider(drive.credentials, name=drive.name)
            providers[drive.id] = provider
        return DriveClient(session, provider, timeout_seconds=settings.http_timeout_seconds)

    return build


def paperless_client_factory(session: aiohttp.ClientSession, settings) -> SinkFactory:
    def build(config: AppConfig, account: Account) -> DocumentSink:
        endpoint = config.endpoint_for(account)
        return PaperlessClient(
            session,
            server_url=endpoint.server_url,
            username=endpoint.username,
            password=endpoint.password,
            timeout_seconds=settings.http_timeout_seconds,
            name=endpoint.name,
        )

    return build


def _check_renewal_window(settings, config: AppConfig) -> None:
    offset = settings.renew_offset_seconds
    for drive in config.drive_accounts:
        if drive.channel_expiration_sec <= offset:
            raise ConfigError(
                f"{drive.name}: channel_expiration_sec ({drive.channel_expiration_sec}) must be longer "
                f"than RELAY_RENEW_OFFSET_SECONDS ({offset:g})"
            )


def create_initial_state(
        settings,
        config: AppConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        storage_factory: StorageFactory | None = None,
        sink_factory: SinkFactory | None = None,
        clock: Callable[[], float] = time.time,
) -> AppState:
    """
    Create AppState from settings and the account file.

    Factories are injectable so tests can swap the HTTP collaborators for
    in-memory fakes; without them a real aiohttp session is required.
    """
    _check_renewal_window(settings, config)
    _ensure_local_dirs(settings)

    if storage_factory is None or sink_factory is None:
        if session is None:
            raise ValueError("An aiohttp session is required to build the HTTP collaborators")
        storage_factory = storage_factory or drive_client_factory(session, settings)
        sink_factory = sink_factory or paperless_client_factory(session, settings)

    scheduler = TaskScheduler(
        interval_seconds=settings.scheduler_interval_seconds,
        max_concurrent_tasks=settings.scheduler_max_concurrent_tasks,
        clock=clock,
    )
    executor = BoundedExecutor("file-transfers", settings.concurrency)
    registry = ChannelRegistry()
    tokens = ChangeTokenStore(settings.data_dir / "tokens")
    webhook_address = f"{settings.webhook_url}/webhook"

    processors: dict[str, FileProcessor] = {}
    monitors: dict[str, ChannelMonitor] = {}
    for account in config.accounts:
        storage = storage_factory(config, account)
        processors[account.id] = FileProcessor(
            account,
            storage=storage,
            sink=sink_factory(config, account),
            tokens=tokens,
        )
        monitors[account.id] = ChannelMonitor(
            account_id=account.id,
            account_name=account.name,
            folder_id=account.drive_src_folder_id,
            storage=storage,
            scheduler=scheduler,
            registry=registry,
            webhook_address=webhook_address,
            channel_expiration_seconds=config.drive_account_for(account).channel_expiration_sec,
            renew_offset_seconds=settings.renew_offset_seconds,
            renew_retry_seconds=settings.renew_retry_seconds,
            clock=clock,
        )

    dispatcher = Dispatcher(
        channels=registry,
        processors=processors,
        executor=executor,
        max_attempts=settings.max_attempts,
    )

    logger.info("State ready: %d accounts, webhook=%s", len(config.accounts), webhook_address)
    return AppState(
        settings=settings,
        config=config,
        scheduler=scheduler,
        executor=executor,
        registry=registry,
        dispatcher=dispatcher,
        monitors=monitors,
        processors=processors,
        http_session=session,
    )
