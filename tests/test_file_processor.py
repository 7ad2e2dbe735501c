# tests/test_file_processor.py

from __future__ import annotations

from pathlib import Path

import pytest

from drive_relay.accounts import Account
from drive_relay.core.models import DriveChange
from drive_relay.drive.change_tokens import ChangeTokenStore
from drive_relay.errors import TransientIOError
from drive_relay.transfer.file_processor import FileProcessor

from .fakes import NEXT_TOKEN, START_TOKEN, FakeSink, FakeStorage, make_file


def _processor(account: Account, storage: FakeStorage, sink: FakeSink, tokens: ChangeTokenStore) -> FileProcessor:
    return FileProcessor(account, storage=storage, sink=sink, tokens=tokens)


@pytest.mark.asyncio
async def test_all_mode_lists_the_source_folder(account: Account, tokens: ChangeTokenStore) -> None:
    files = [make_file("a"), make_file("b")]
    storage = FakeStorage(folders={"src-folder": files})
    processor = _processor(account, storage, FakeSink(), tokens)

    assert await processor.get_unprocessed_files("all") == files
    assert tokens.get(account.id, "src-folder") is None


@pytest.mark.asyncio
async def test_changes_mode_starts_from_start_token_and_saves_next(
    account: Account, tokens: ChangeTokenStore
) -> None:
    storage = FakeStorage(
        folders={"src-folder": [make_file("a"), make_file("b")]},
        changes=[
            DriveChange(file_id="a"),
            DriveChange(file_id="b", removed=True),
            DriveChange(file_id="elsewhere"),
            DriveChange(file_id=None),
        ],
    )
    processor = _processor(account, storage, FakeSink(), tokens)

    files = await processor.get_unprocessed_files("changes")

    assert [f.id for f in files] == ["a"]
    assert storage.ops("list_changes_since") == [("list_changes_since", START_TOKEN)]
    assert tokens.get(account.id, "src-folder") == NEXT_TOKEN

    await processor.get_unprocessed_files("changes")
    assert storage.ops("list_changes_since")[-1] == ("list_changes_since", NEXT_TOKEN)
    assert len(storage.ops("get_start_page_token")) == 1


@pytest.mark.asyncio
async def test_changes_mode_keeps_token_when_listing_fails(account: Account, tokens: ChangeTokenStore) -> None:
    tokens.set(account.id, "src-folder", "saved")
    storage = FakeStorage()
    storage.failures["list_changes_since"] = [TransientIOError("503")]
    processor = _processor(account, storage, FakeSink(), tokens)

    with pytest.raises(TransientIOError):
        await processor.get_unprocessed_files("changes")
    assert tokens.get(account.id, "src-folder") == "saved"


@pytest.mark.asyncio
async def test_unknown_mode_is_rejected(account: Account, tokens: ChangeTokenStore) -> None:
    processor = _processor(account, FakeStorage(), FakeSink(), tokens)
    with pytest.raises(ValueError):
        await processor.get_unprocessed_files("everything")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_process_file_downloads_uploads_then_moves(account: Account, tokens: ChangeTokenStore) -> None:
    calls: list[tuple] = []
    file = make_file("a", name="invoice.pdf")
    storage = FakeStorage(folders={"src-folder": [file]}, calls=calls)
    sink = FakeSink(calls=calls)
    processor = _processor(account, storage, sink, tokens)

    await processor.process_file(file)

    assert [c[0] for c in calls] == ["get_file_content", "upload_document", "move_file"]
    assert calls[-1] == ("move_file", "a", "src-folder", "dst-folder")
    upload = sink.uploads[0]
    assert upload.content == b"content of a"
    assert upload.filename == "invoice.pdf"
    assert upload.mime_type == "application/pdf"
    assert upload.created_time == "2024-01-02T03:04:05.000Z"


@pytest.mark.asyncio
async def test_upload_failure_leaves_file_in_place(account: Account, tokens: ChangeTokenStore) -> None:
    file = make_file("a")
    storage = FakeStorage(folders={"src-folder": [file]})
    sink = FakeSink(failures=[TransientIOError("502")])
    processor = _processor(account, storage, sink, tokens)

    with pytest.raises(TransientIOError):
        await processor.process_file(file)

    assert storage.ops("move_file") == []
    assert storage.folders["src-folder"] == [file]


def test_change_token_store_roundtrip(tmp_path: Path) -> None:
    store = ChangeTokenStore(tmp_path / "tokens")

    assert store.get("acc-1", "src") is None
    store.set("acc-1", "src", "tok-1")
    store.set("acc-1", "src", "tok-2")
    assert store.get("acc-1", "src") == "tok-2"
    assert store.get("acc-1", "other") is None
    assert not list((tmp_path / "tokens").glob("*.tmp"))

    store.path_for("acc-2", "src").write_text("  \n", "utf-8")
    assert store.get("acc-2", "src") is None
