# src/drive_relay/transfer/file_processor.py

from __future__ import annotations

"""
Per-account file processing.

Finds the files that still sit in the account's source folder and relays
them one at a time: download, upload to the document sink, move to the
destination folder. A failed step aborts the remaining ones, so a file is
only moved once the sink has it.
"""

import logging
from typing import Literal

from ..accounts import Account
from ..core.models import DriveFile
from ..core.ports import DocumentSink, StorageClient
from ..drive.change_tokens import ChangeTokenStore

logger = logging.getLogger(__name__)

ListingMode = Literal["all", "changes"]


class FileProcessor:
    def __init__(
            self,
            account: Account,
            *,
            storage: StorageClient,
            sink: DocumentSink,
            tokens: ChangeTokenStore,
    ) -> None:
        self.account = account
        self._storage = storage
        self._sink = sink
        self._tokens = tokens
        self._log = logger.getChild(account.name)

    async def get_unprocessed_files(self, mode: ListingMode) -> list[DriveFile]:
        self._log.info("Getting unprocessed files (mode=%s)...", mode)
        src = self.account.drive_src_folder_id

        if mode == "all":
            files = await self._storage.list_files(src)
            self._log.info("Found %d files in source folder", len(files))
            return files

        if mode == "changes":
            token = self._tokens.get(self.account.id, src)
            if token is None:
                token = await self._storage.get_start_page_token()
                self._log.info("No change token yet, starting from %s", token)

            listing = await self._storage.list_changes_since(token)
            changed = {c.file_id for c in listing.changes if c.file_id and not c.removed}
            files = await self._storage.list_files(src)
            added = [f for f in files if f.id in changed]

            self._tokens.set(self.account.id, src, listing.next_token)
            self._log.info("Fetched %d changes, %d added files", len(listing.changes), len(added))
            return added

        raise ValueError(f"Unknown listing mode: {mode!r}")

    async def process_file(self, file: DriveFile) -> None:
        self._log.info("Processing file %s (%s)...", file.name, file.id)

        content = await self._storage.get_file_content(file.id)
        self._log.info("Downloaded %s (%d bytes)", file.name, len(content))

        await self._sink.upload_document(
            content,
            filename=file.name,
            mime_type=file.mime_type,
            created_time=file.created_time,
        )
        self._log.info("Uploaded %s", file.name)

        await self._storage.move_file(file.id, self.account.drive_src_folder_id, self.account.drive_dst_folder_id)
        self._log.info("Moved %s to destination folder", file.name)
