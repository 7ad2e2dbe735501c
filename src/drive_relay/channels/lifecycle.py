# src/drive_relay/channels/lifecycle.py

from __future__ import annotations

"""
Channel lifecycle as pure state transitions.

Each function takes the current MonitorView and returns the next view plus
the side effects to perform, in order. Nothing here does I/O; ChannelMonitor
interprets the commands and feeds collaborator answers back in.
"""

from dataclasses import replace

from ..core.models import WatchResponse
from .channel_models import (
    ActivateChannel,
    CancelRenewal,
    Channel,
    ChannelState,
    CloseChannel,
    ForgetChannel,
    MonitorView,
    OpenChannel,
    ScheduleRenewal,
    Transition,
)


def initial_view(owner: str) -> MonitorView:
    return MonitorView(owner=owner)


def request_start(view: MonitorView, *, now: float, expiration_seconds: float, new_channel_id: str) -> Transition:
    """
    Ask for a new channel.

    From starting: first channel. From active: renewal, the current channel
    stays in place until the new one is open. While renewing or stopped:
    nothing, so two renewal cycles never overlap.
    """
    if view.state in (ChannelState.STOPPED, ChannelState.RENEWING):
        return Transition(view=view)

    next_state = ChannelState.RENEWING if view.current is not None else ChannelState.STARTING
    return Transition(
        view=replace(view, state=next_state),
        commands=(OpenChannel(channel_id=new_channel_id, expiration=now + expiration_seconds),),
    )


def channel_opened(view: MonitorView, reply: WatchResponse, *, renew_offset_seconds: float) -> Transition:
    """The collaborator confirmed a new channel: activate it, then retire the old one."""
    channel = Channel(
        channel_id=reply.channel_id,
        resource_id=reply.resource_id,
        owner=view.owner,
        expiration=reply.expiration,
        state=ChannelState.ACTIVE,
    )

    if view.state == ChannelState.STOPPED:
        # stop() won the race against the open call.
        return Transition(
            view=replace(view, retiring=view.retiring + (channel,)),
            commands=(CloseChannel(channel=channel),),
        )

    commands: list = [
        ActivateChannel(channel=channel),
        ScheduleRenewal(at=channel.expiration - renew_offset_seconds, timeout_seconds=renew_offset_seconds),
    ]
    retiring = view.retiring
    old = view.current
    if old is not None:
        old = replace(old, state=ChannelState.RENEWING)
        retiring = retiring + (old,)
        commands.append(CloseChannel(channel=old))

    return Transition(
        view=replace(view, state=ChannelState.ACTIVE, current=channel, retiring=retiring),
        commands=tuple(commands),
    )


def channel_open_failed(
        view: MonitorView,
        *,
        now: float,
        retry_seconds: float,
        renew_offset_seconds: float,
) -> Transition:
    """
    Opening failed.

    First start: back to starting, the caller sees the error. Renewal: the
    old channel keeps serving and another attempt is scheduled while it is
    still alive; once it has lapsed the account is dropped from tracking.
    """
    if view.state == ChannelState.STOPPED:
        return Transition(view=view)

    old = view.current
    if old is None:
        return Transition(view=replace(view, state=ChannelState.STARTING))

    retry_at = now + retry_seconds
    if retry_at < old.expiration:
        return Transition(
            view=replace(view, state=ChannelState.ACTIVE),
            commands=(ScheduleRenewal(at=retry_at, timeout_seconds=renew_offset_seconds),),
        )

    return Transition(
        view=replace(view, state=ChannelState.STOPPED, current=None),
        commands=(ForgetChannel(channel=old),),
    )


def channel_closed(view: MonitorView, channel_id: str) -> MonitorView:
    """Close confirmed (or given up on): stop tracking the channel."""
    return replace(view, retiring=tuple(c for c in view.retiring if c.channel_id != channel_id))


def request_stop(view: MonitorView, channel_id: str | None = None) -> Transition:
    """
    Close the given channel, or the current one (which also ends the monitor).
    """
    current = view.current
    if channel_id is None or (current is not None and channel_id == current.channel_id):
        commands: list = [CancelRenewal()]
        if current is not None:
            current = replace(current, state=ChannelState.STOPPED)
            commands.append(CloseChannel(channel=current))
        retiring = view.retiring + ((current,) if current is not None else ())
        return Transition(
            view=replace(view, state=ChannelState.STOPPED, current=None, retiring=retiring),
            commands=tuple(commands),
        )

    for channel in view.retiring:
        if channel.channel_id == channel_id:
            return Transition(view=view, commands=(CloseChannel(channel=channel),))

    return Transition(view=view)
