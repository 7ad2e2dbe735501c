# src/drive_relay/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

LOG_FILE_NAME = "drive-relay.log"
LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Console threshold per third-party logger prefix. Unlisted libraries: ERROR.
_CONSOLE_THRESHOLDS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
}


def _is_own(name: str) -> bool:
    return name == "drive_relay" or name.startswith("drive_relay.")


class _ConsoleNoiseFilter(logging.Filter):
    """Everything from drive_relay; libraries only when they matter."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _is_own(record.name):
            return True
        for prefix, level in _CONSOLE_THRESHOLDS.items():
            if record.name == prefix or record.name.startswith(prefix + "."):
                return record.levelno >= level
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/drive-relay",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Path:
    """
    Route all logging to stderr (filtered) and to a rotating file under
    `log_dir` (unfiltered, DEBUG by default). Returns the log file path.

    Replaces whatever handlers the root logger had, so calling it twice
    does not duplicate output.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console.addFilter(_ConsoleNoiseFilter())

    file = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file.setLevel(file_level)
    file.setFormatter(formatter)

    for handler in (console, file):
        root.addHandler(handler)

    # warnings.warn(...) lands in 'py.warnings', which the console filter mutes below ERROR.
    logging.captureWarnings(True)
    # google-auth logs every token refresh at DEBUG.
    logging.getLogger("google.auth").setLevel(logging.INFO)
    return log_file
