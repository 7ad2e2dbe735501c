# src/drive_relay/channels/channel_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ChannelState(StrEnum):
    """
    Monitor / channel lifecycle.

    starting -> active -> renewing -> active (new channel) -> ...
    stopped is terminal.
    """

    STARTING = "starting"
    ACTIVE = "active"
    RENEWING = "renewing"
    STOPPED = "stopped"


@dataclass(slots=True, frozen=True)
class Channel:
    channel_id: str
    resource_id: str
    owner: str  # account id
    expiration: float  # epoch seconds
    state: ChannelState = ChannelState.ACTIVE


@dataclass(slots=True, frozen=True)
class MonitorView:
    """
    Everything the lifecycle functions need to know about one account.

    `current` is the channel that receives notifications. `retiring` holds
    replaced channels whose close has been requested but not yet confirmed;
    during renewal they coexist with the new one.
    """

    owner: str
    state: ChannelState = ChannelState.STARTING
    current: Channel | None = None
    retiring: tuple[Channel, ...] = field(default_factory=tuple)


# ---- commands (interpreted by ChannelMonitor) ----

@dataclass(slots=True, frozen=True)
class OpenChannel:
    channel_id: str
    expiration: float


@dataclass(slots=True, frozen=True)
class ActivateChannel:
    channel: Channel


@dataclass(slots=True, frozen=True)
class ScheduleRenewal:
    at: float
    timeout_seconds: float


@dataclass(slots=True, frozen=True)
class CancelRenewal:
    pass


@dataclass(slots=True, frozen=True)
class CloseChannel:
    channel: Channel


@dataclass(slots=True, frozen=True)
class ForgetChannel:
    """Drop a channel from tracking without contacting the collaborator (it already lapsed)."""

    channel: Channel


Command = OpenChannel | ActivateChannel | ScheduleRenewal | CancelRenewal | CloseChannel | ForgetChannel


@dataclass(slots=True, frozen=True)
class Transition:
    view: MonitorView
    commands: tuple[Command, ...] = ()
