# src/drive_relay/drive/change_tokens.py

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


class ChangeTokenStore:
    """
    One plain-text change token per (account, source folder).

    Files live under `<data_dir>/tokens` and are replaced atomically, so a
    crash mid-write leaves the previous token in place.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self._dir = Path(base_dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, account_id: str, folder_id: str) -> Path:
        return self._dir / f"{account_id}.{folder_id}.change-token.txt"

    def get(self, account_id: str, folder_id: str) -> str | None:
        path = self.path_for(account_id, folder_id)
        try:
            token = path.read_text("utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def set(self, account_id: str, folder_id: str, token: str) -> None:
        path = self.path_for(account_id, folder_id)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(token, "utf-8")
        os.replace(tmp, path)
        logger.debug("Change token saved account=%s folder=%s", account_id, folder_id)
