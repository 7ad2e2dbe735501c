# src/drive_relay/api/webhook.py

"""
HTTP surface: the Drive webhook and a health endpoint.

The webhook always answers 200 OK. Drive retries anything else with
backoff, so internal failures are logged here and never surfaced upstream.
"""

from __future__ import annotations

import logging

from aiohttp import web

from ..core.state import AppState

logger = logging.getLogger(__name__)

CHANNEL_ID_HEADER = "X-Goog-Channel-ID"
RESOURCE_STATE_HEADER = "X-Goog-Resource-State"

STATE_KEY = web.AppKey("drive_relay_state", AppState)


async def handle_webhook(request: web.Request) -> web.Response:
    state = request.app[STATE_KEY]
    channel_id = request.headers.get(CHANNEL_ID_HEADER)
    resource_state = request.headers.get(RESOURCE_STATE_HEADER)

    try:
        if not channel_id:
            logger.warning("Received webhook without channel id ... ignoring")
        elif not resource_state:
            logger.warning("Received webhook without resource state for channel %s ... ignoring", channel_id)
        else:
            state.dispatcher.notify(channel_id, resource_state)
    except Exception:
        logger.exception("Failed to handle webhook for channel %s", channel_id)

    return web.Response(status=200, text="OK")


async def handle_health(request: web.Request) -> web.Response:
    state = request.app[STATE_KEY]
    return web.json_response(state.health())


def create_app(state: AppState) -> web.Application:
    app = web.Application()
    app[STATE_KEY] = state
    app.router.add_post("/webhook", handle_webhook)
    app.router.add_get("/health", handle_health)
    return app
