# src/drive_relay/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class ChannelSpec:
    """What we ask the storage collaborator to deliver, and where."""

    channel_id: str
    address: str
    expiration: float  # epoch seconds
    payload: bool = True


@dataclass(frozen=True, slots=True)
class WatchResponse:
    channel_id: str
    resource_id: str
    expiration: float  # epoch seconds, as granted by the collaborator


@dataclass(frozen=True, slots=True)
class DriveChange:
    file_id: str | None
    removed: bool = False


@dataclass(frozen=True, slots=True)
class ChangeListing:
    changes: list[DriveChange]
    next_token: str


@dataclass(frozen=True, slots=True)
class DriveFile:
    id: str
    name: str
    mime_type: str
    created_time: str | None = None
    parents: tuple[str, ...] = field(default_factory=tuple)
