# src/drive_relay/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The scheduler, the channel monitors and the dispatcher depend on Protocols
instead of concrete HTTP clients. This keeps Drive/Paperless swappable and
makes testing easier (see tests/fakes.py).

Every method may raise TransientIOError (retryable) or PermanentError.
"""

from typing import Protocol

from .models import ChangeListing, ChannelSpec, DriveFile, WatchResponse


class StorageClient(Protocol):
    """Cloud storage collaborator (Google Drive v3 in production)."""

    async def watch(self, folder_id: str, spec: ChannelSpec) -> WatchResponse: ...

    async def stop_channel(self, channel_id: str, resource_id: str) -> None: ...

    async def get_start_page_token(self) -> str: ...

    async def list_changes_since(self, token: str) -> ChangeListing: ...

    async def list_files(self, folder_id: str) -> list[DriveFile]: ...

    async def move_file(self, file_id: str, from_folder_id: str, to_folder_id: str) -> None: ...

    async def get_file_content(self, file_id: str) -> bytes: ...


class DocumentSink(Protocol):
    """Document-management endpoint (Paperless-ngx in production)."""

    async def upload_document(
            self,
            content: bytes,
            *,
            filename: str,
            mime_type: str,
            created_time: str | None = None,
    ) -> None: ...
