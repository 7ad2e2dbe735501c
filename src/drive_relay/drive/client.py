# src/drive_relay/drive/client.py

from __future__ import annotations

"""
Google Drive v3 over plain REST (aiohttp).

Implements the StorageClient port. HTTP and transport failures are turned
into TransientIOError / PermanentError here, so callers only ever see the
shared taxonomy.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import aiohttp

from ..core.models import ChangeListing, ChannelSpec, DriveChange, DriveFile, WatchResponse
from ..errors import PermanentError, RelayError, TransientIOError
from .pages import iter_pages

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
PAGE_SIZE = 100
DOWNLOAD_CHUNK_SIZE = 64 * 1024

FILE_FIELDS = "nextPageToken, files(id, name, size, parents, mimeType, createdTime, modifiedTime)"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

_RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")

TokenProvider = Callable[[], Awaitable[str]]


def classify_http_error(status: int, body: str, what: str) -> RelayError:
    """Map an HTTP error answer to the retry taxonomy."""
    msg = f"{what}: HTTP {status}: {body[:300]}"
    if status == 429 or status >= 500:
        return TransientIOError(msg)
    if status == 403 and any(reason in body for reason in _RATE_LIMIT_REASONS):
        return TransientIOError(msg)
    return PermanentError(msg)


def _parse_file(raw: dict[str, Any]) -> DriveFile:
    file_id = raw.get("id")
    name = raw.get("name")
    mime_type = raw.get("mimeType")
    if not file_id:
        raise PermanentError(f"File {name!r} has no id")
    if not name:
        raise PermanentError(f"File {file_id} has no name")
    if not mime_type:
        raise PermanentError(f"File {name} has no mime type")
    return DriveFile(
        id=str(file_id),
        name=str(name),
        mime_type=str(mime_type),
        created_time=raw.get("createdTime"),
        parents=tuple(raw.get("parents") or ()),
    )


class DriveClient:
    def __init__(
            self,
            session: aiohttp.ClientSession,
            token_provider: TokenProvider,
            *,
            base_url: str = DRIVE_API_URL,
            timeout_seconds: float = 60.0,
    ) -> None:
        self._session = session
        self._token = token_provider
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    # ---- low-level helpers ----

    async def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {await self._token()}"}

    async def _request(
            self,
            method: str,
            path: str,
            *,
            params: dict[str, str] | None = None,
            body: dict[str, Any] | None = None,
            expect_json: bool = True,
    ) -> dict[str, Any]:
        what = f"{method} {path}"
        url = f"{self._base_url}/{path}"
        try:
            async with self._session.request(
                method,
                url,
                params=params,
                json=body,
                headers=await self._headers(),
                timeout=self._timeout,
            ) as resp:
                if resp.status >= 400:
                    raise classify_http_error(resp.status, await resp.text(), what)
                if not expect_json or resp.status == 204:
                    return {}
                data = await resp.json(content_type=None)
        except RelayError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientIOError(f"{what}: {type(e).__name__}: {e}") from e
        except json.JSONDecodeError as e:
            raise PermanentError(f"{what}: malformed JSON answer") from e

        if not isinstance(data, dict):
            raise PermanentError(f"{what}: expected a JSON object")
        return data

    # ---- channels ----

    async def watch(self, folder_id: str, spec: ChannelSpec) -> WatchResponse:
        data = await self._request(
            "POST",
            f"files/{folder_id}/watch",
            body={
                "id": spec.channel_id,
                "type": "web_hook",
                "address": spec.address,
                "payload": spec.payload,
                "expiration": str(int(spec.expiration * 1000)),
            },
        )
        channel_id = data.get("id")
        resource_id = data.get("resourceId")
        expiration = data.get("expiration")
        if not channel_id:
            raise PermanentError("Channel start failed: id not set")
        if not resource_id:
            raise PermanentError("Channel start failed: resourceId not set")
        if not expiration:
            raise PermanentError("Channel start failed: expiration not set")
        try:
            expiration_s = int(expiration) / 1000.0
        except (TypeError, ValueError) as e:
            raise PermanentError(f"Channel start failed: bad expiration {expiration!r}") from e

        logger.debug("watch folder=%s -> channel=%s resource=%s", folder_id, channel_id, resource_id)
        return WatchResponse(channel_id=str(channel_id), resource_id=str(resource_id), expiration=expiration_s)

    async def stop_channel(self, channel_id: str, resource_id: str) -> None:
        await self._request(
            "POST",
            "channels/stop",
            body={"id": channel_id, "resourceId": resource_id},
            expect_json=False,
        )

    # ---- changes ----

    async def get_start_page_token(self) -> str:
        data = await self._request("GET", "changes/startPageToken")
        token = data.get("startPageToken")
        if not token:
            raise PermanentError("Failed to get start page token")
        return str(token)

    async def list_changes_since(self, token: str) -> ChangeListing:
        async def fetch(page_token: str | None) -> dict[str, Any]:
            return await self._request(
                "GET",
                "changes",
                params={
                    "pageToken": page_token or token,
                    "spaces": "drive",
                    "includeRemoved": "true",
                    "pageSize": str(PAGE_SIZE),
                },
            )

        changes: list[DriveChange] = []
        new_start: str | None = None
        async for page in iter_pages(fetch, token):
            for raw in page.get("changes") or []:
                changes.append(DriveChange(file_id=raw.get("fileId"), removed=bool(raw.get("removed", False))))
            new_start = page.get("newStartPageToken") or new_start

        if not new_start:
            raise PermanentError("Change listing ended without newStartPageToken")
        return ChangeListing(changes=changes, next_token=str(new_start))

    # ---- files ----

    async def list_files(self, folder_id: str) -> list[DriveFile]:
        query = f"'{folder_id}' in parents and trashed = false and mimeType != '{FOLDER_MIME_TYPE}'"

        async def fetch(page_token: str | None) -> dict[str, Any]:
            params = {
                "q": query,
                "fields": FILE_FIELDS,
                "orderBy": "modifiedTime desc",
                "pageSize": str(PAGE_SIZE),
            }
            if page_token:
                params["pageToken"] = page_token
            return await self._request("GET", "files", params=params)

        files: list[DriveFile] = []
        async for page in iter_pages(fetch):
            files.extend(_parse_file(raw) for raw in page.get("files") or [])
        return files

    async def move_file(self, file_id: str, from_folder_id: str, to_folder_id: str) -> None:
        await self._request(
            "PATCH",
            f"files/{file_id}",
            params={"addParents": to_folder_id, "removeParents": from_folder_id},
            body={},
        )

    async def get_file_content(self, file_id: str) -> bytes:
        what = f"GET files/{file_id}?alt=media"
        chunks: list[bytes] = []
        try:
            async with self._session.get(
                f"{self._base_url}/files/{file_id}",
                params={"alt": "media"},
                headers=await self._headers(),
                timeout=self._timeout,
            ) as resp:
                if resp.status >= 400:
                    raise classify_http_error(resp.status, await resp.text(), what)
                async for chunk in resp.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                    chunks.append(chunk)
        except RelayError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientIOError(f"{what}: {type(e).__name__}: {e}") from e
        return b"".join(chunks)
