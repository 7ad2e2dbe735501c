# src/drive_relay/channels/registry.py

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class ChannelLookup(Protocol):
    """Read-only view handed to the dispatcher and the HTTP layer."""

    def owner_of(self, channel_id: str) -> str | None: ...

    def snapshot(self) -> dict[str, str]: ...


class ChannelRegistry:
    """
    channel id -> owning account id.

    Written only by ChannelMonitor (bind on activation, unbind on close).
    During a renewal an account briefly owns two channel ids.
    """

    def __init__(self) -> None:
        self._owners: dict[str, str] = {}

    def bind(self, channel_id: str, owner: str) -> None:
        self._owners[channel_id] = owner
        logger.debug("Channel %s bound to %s", channel_id, owner)

    def unbind(self, channel_id: str) -> None:
        if self._owners.pop(channel_id, None) is not None:
            logger.debug("Channel %s unbound", channel_id)

    def owner_of(self, channel_id: str) -> str | None:
        return self._owners.get(channel_id)

    def snapshot(self) -> dict[str, str]:
        return dict(self._owners)

    def __len__(self) -> int:
        return len(self._owners)
