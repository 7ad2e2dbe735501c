# src/drive_relay/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole process.
- No secrets at import time: account credentials live in the account file
  (see accounts.py), not in the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "RELAY"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_float(name: str, default: float, *, minimum: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Paths ----
    data_dir: Path
    config_path: Path

    # ---- HTTP server ----
    host: str
    port: int
    webhook_url: str

    # ---- Transfers ----
    concurrency: int
    max_attempts: int
    http_timeout_seconds: float

    # ---- Scheduler / channels ----
    scheduler_interval_seconds: float
    scheduler_max_concurrent_tasks: int
    renew_offset_seconds: float
    renew_retry_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/drive-relay"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "drive-relay"),
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            data_dir=data_dir,
            config_path=_env_path(_k("CONFIG_PATH"), data_dir / "accounts.json"),
            host=_env(_k("HOST"), "0.0.0.0"),
            port=_env_int(_k("PORT"), 8080, minimum=1),
            webhook_url=_env(_k("WEBHOOK_URL"), "http://localhost:8080").rstrip("/"),
            concurrency=_env_int(_k("CONCURRENCY"), 2, minimum=1),
            max_attempts=_env_int(_k("MAX_ATTEMPTS"), 3, minimum=1),
            http_timeout_seconds=_env_float(_k("HTTP_TIMEOUT_SECONDS"), 60.0, minimum=1.0),
            scheduler_interval_seconds=_env_float(_k("SCHEDULER_INTERVAL_SECONDS"), 1.0, minimum=0.01),
            scheduler_max_concurrent_tasks=_env_int(_k("SCHEDULER_MAX_CONCURRENT_TASKS"), 4, minimum=1),
            renew_offset_seconds=_env_float(_k("RENEW_OFFSET_SECONDS"), 120.0, minimum=1.0),
            renew_retry_seconds=_env_float(_k("RENEW_RETRY_SECONDS"), 30.0, minimum=1.0),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
