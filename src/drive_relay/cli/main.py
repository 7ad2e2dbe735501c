# src/drive_relay/cli/main.py

"""
CLI entrypoint.

Initializes logging, loads the account file, builds AppState, then:
- serves the webhook and health endpoints,
- runs the task scheduler loop,
- relays every file already waiting in the source folders,
- opens one notification channel per account,
and waits for SIGINT/SIGTERM/SIGHUP.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from dataclasses import fields

import aiohttp
from aiohttp import web

from ..accounts import load_app_config
from ..api.webhook import create_app
from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class SchedulerDied(RuntimeError):
    pass


def _log_settings(settings) -> None:
    env_logger = logger.getChild("env")
    for f in fields(settings):
        env_logger.info("%s=%s", f.name, getattr(settings, f.name))


async def _start_accounts(state: AppState) -> None:
    async def start_one(account_id: str) -> None:
        monitor = state.monitors[account_id]
        futures = await state.dispatcher.enqueue_unprocessed(account_id, "all")
        logger.info("%s: queued %d waiting files", monitor.account_name, len(futures))
        await monitor.start()

    await asyncio.gather(*(start_one(account.id) for account in state.config.accounts))


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    for monitor in state.monitors.values():
        try:
            await monitor.stop()
        except Exception:
            logger.exception("%s: Failed to stop drive monitor", monitor.account_name)

    state.scheduler.stop()


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: signal.Signals) -> None:
        logger.info("Signal %s received, shutting down...", signum.name)
        stop.set()

    for signum in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(signum, _handle_signal, signum)
        except (NotImplementedError, RuntimeError):
            # Not every platform supports every signal (e.g. SIGHUP on Windows).
            logger.debug("Cannot install handler for %s", signum.name)


async def run_service() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s... (log file: %s)", settings.app_name, log_file)
    _log_settings(settings)

    config = load_app_config(settings.config_path)

    async with aiohttp.ClientSession() as session:
        state = create_initial_state(settings, config, session=session)

        runner = web.AppRunner(create_app(state))
        await runner.setup()
        site = web.TCPSite(runner, settings.host, settings.port)
        await site.start()
        logger.info("Server started on %s:%d", settings.host, settings.port)

        stop = asyncio.Event()
        _install_signal_handlers(stop)

        scheduler_task = asyncio.create_task(state.scheduler.run(), name="task-scheduler")
        scheduler_task.add_done_callback(lambda _t: stop.set())

        try:
            await _start_accounts(state)
            logger.info("Application started :-)")

            await stop.wait()

            if scheduler_task.done() and not scheduler_task.cancelled():
                exc = scheduler_task.exception()
                if exc is not None:
                    raise SchedulerDied("Task scheduler loop died") from exc
        finally:
            await _shutdown(state)
            if not scheduler_task.done():
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(asyncio.shield(scheduler_task), timeout=settings.scheduler_interval_seconds * 2)
            if not scheduler_task.done():
                scheduler_task.cancel()
            await runner.cleanup()

    logger.info("Bye.")


def main() -> None:
    try:
        asyncio.run(run_service())
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("Failed to run drive-relay")
        sys.exit(1)


if __name__ == "__main__":
    main()
