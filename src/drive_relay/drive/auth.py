# src/drive_relay/drive/auth.py

from __future__ import annotations

import asyncio
import logging
from typing import Any

import google.auth.exceptions
import google.auth.transport.requests
from google.oauth2 import service_account

from ..errors import PermanentError, TransientIOError

logger = logging.getLogger(__name__)

DRIVE_SCOPES = ("https://www.googleapis.com/auth/drive",)


class ServiceAccountTokenProvider:
    """
    Bearer tokens for a Drive service account.

    google-auth refreshes synchronously, so the refresh runs in a worker
    thread; the lock keeps concurrent requests from refreshing twice.
    """

    def __init__(self, credentials_info: dict[str, Any], *, name: str = "drive") -> None:
        self.name = name
        try:
            self._credentials = service_account.Credentials.from_service_account_info(
                credentials_info, scopes=list(DRIVE_SCOPES)
            )
        except (ValueError, KeyError) as e:
            raise PermanentError(f"{name}: invalid service account credentials: {e}") from e
        self._lock = asyncio.Lock()

    async def __call__(self) -> str:
        async with self._lock:
            if not self._credentials.valid:
                await self._refresh()
        return str(self._credentials.token)

    async def _refresh(self) -> None:
        logger.debug("%s: refreshing access token", self.name)
        request = google.auth.transport.requests.Request()
        try:
            await asyncio.to_thread(self._credentials.refresh, request)
        except google.auth.exceptions.RefreshError as e:
            # Retryable refresh errors are usually 5xx from the token endpoint.
            if getattr(e, "retryable", False):
                raise TransientIOError(f"{self.name}: token refresh failed: {e}") from e
            raise PermanentError(f"{self.name}: token refresh rejected: {e}") from e
        except google.auth.exceptions.TransportError as e:
            raise TransientIOError(f"{self.name}: token endpoint unreachable: {e}") from e
