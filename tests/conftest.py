# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from drive_relay.accounts import Account, AppConfig
from drive_relay.drive.change_tokens import ChangeTokenStore

from .fakes import make_app_config


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="drive-relay-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        config_path=tmp_path / "data" / "accounts.json",
        host="127.0.0.1",
        port=0,
        webhook_url="https://relay.example.org",
        concurrency=2,
        max_attempts=3,
        http_timeout_seconds=5.0,
        scheduler_interval_seconds=0.01,
        scheduler_max_concurrent_tasks=4,
        renew_offset_seconds=120.0,
        renew_retry_seconds=30.0,
    )


@pytest.fixture()
def app_config() -> AppConfig:
    return make_app_config()


@pytest.fixture()
def account(app_config: AppConfig) -> Account:
    return app_config.accounts[0]


@pytest.fixture()
def tokens(tmp_path: Path) -> ChangeTokenStore:
    return ChangeTokenStore(tmp_path / "tokens")
