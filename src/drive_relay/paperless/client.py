# src/drive_relay/paperless/client.py

from __future__ import annotations

import asyncio
import logging

import aiohttp

from ..errors import PermanentError, TransientIOError

logger = logging.getLogger(__name__)

POST_DOCUMENT_PATH = "/api/documents/post_document/"

# Answers that will not improve by sending the same document again.
_PERMANENT_STATUSES = frozenset({400, 401, 403, 404, 413, 415})


class PaperlessClient:
    """DocumentSink backed by the Paperless-ngx upload endpoint (HTTP Basic auth)."""

    def __init__(
            self,
            session: aiohttp.ClientSession,
            *,
            server_url: str,
            username: str,
            password: str,
            timeout_seconds: float = 60.0,
            name: str = "paperless",
    ) -> None:
        self._session = session
        self._url = server_url.rstrip("/") + POST_DOCUMENT_PATH
        self._auth = aiohttp.BasicAuth(username, password)
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.name = name

    async def upload_document(
            self,
            content: bytes,
            *,
            filename: str,
            mime_type: str,
            created_time: str | None = None,
    ) -> None:
        form = aiohttp.FormData()
        form.add_field("document", content, filename=filename, content_type=mime_type)
        if created_time:
            form.add_field("created", created_time)

        logger.info("%s: uploading %s (%d bytes)", self.name, filename, len(content))
        try:
            async with self._session.post(self._url, data=form, auth=self._auth, timeout=self._timeout) as resp:
                body = await resp.text()
                if 200 <= resp.status < 300:
                    logger.debug("%s: upload of %s accepted: %s", self.name, filename, body[:200])
                    return
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientIOError(f"{self.name}: upload of {filename} failed: {type(e).__name__}: {e}") from e

        msg = f"{self.name}: upload of {filename} failed: HTTP {resp.status}: {body[:300]}"
        if resp.status in _PERMANENT_STATUSES:
            raise PermanentError(msg)
        raise TransientIOError(msg)
