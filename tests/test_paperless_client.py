# tests/test_paperless_client.py

from __future__ import annotations

import base64
from typing import Any

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from drive_relay.errors import PermanentError, TransientIOError
from drive_relay.paperless.client import POST_DOCUMENT_PATH, PaperlessClient


class FakePaperless:
    def __init__(self) -> None:
        self.received: list[dict[str, Any]] = []
        self.status = 200

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(POST_DOCUMENT_PATH, self.post_document)
        return app

    async def post_document(self, request: web.Request) -> web.Response:
        form = await request.post()
        document = form["document"]
        self.received.append(
            {
                "auth": request.headers.get("Authorization"),
                "filename": document.filename,
                "content_type": document.content_type,
                "content": document.file.read(),
                "created": form.get("created"),
            }
        )
        if self.status != 200:
            return web.Response(status=self.status, text="nope")
        return web.json_response("8c1f1b2e-task-id")


@pytest_asyncio.fixture()
async def paperless():
    fake = FakePaperless()
    server = TestServer(fake.app())
    await server.start_server()
    session = aiohttp.ClientSession()
    client = PaperlessClient(
        session,
        server_url=str(server.make_url("/")),
        username="relay",
        password="secret",
        timeout_seconds=5,
        name="Paperless One",
    )
    try:
        yield fake, client
    finally:
        await session.close()
        await server.close()


@pytest.mark.asyncio
async def test_upload_posts_multipart_with_basic_auth(paperless) -> None:
    fake, client = paperless

    await client.upload_document(
        b"%PDF-1.7",
        filename="invoice.pdf",
        mime_type="application/pdf",
        created_time="2024-01-02T03:04:05.000Z",
    )

    got = fake.received[0]
    assert got["auth"] == "Basic " + base64.b64encode(b"relay:secret").decode()
    assert got["filename"] == "invoice.pdf"
    assert got["content_type"] == "application/pdf"
    assert got["content"] == b"%PDF-1.7"
    assert got["created"] == "2024-01-02T03:04:05.000Z"


@pytest.mark.asyncio
async def test_upload_without_created_time(paperless) -> None:
    fake, client = paperless

    await client.upload_document(b"x", filename="a.png", mime_type="image/png")

    assert fake.received[0]["created"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 413])
async def test_client_errors_are_permanent(paperless, status: int) -> None:
    fake, client = paperless
    fake.status = status

    with pytest.raises(PermanentError, match=f"HTTP {status}"):
        await client.upload_document(b"x", filename="a.pdf", mime_type="application/pdf")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [429, 500, 503])
async def test_server_errors_are_transient(paperless, status: int) -> None:
    fake, client = paperless
    fake.status = status

    with pytest.raises(TransientIOError):
        await client.upload_document(b"x", filename="a.pdf", mime_type="application/pdf")


@pytest.mark.asyncio
async def test_unreachable_server_is_transient() -> None:
    async with aiohttp.ClientSession() as session:
        client = PaperlessClient(session, server_url="http://127.0.0.1:9", username="u", password="p", timeout_seconds=2)
        with pytest.raises(TransientIOError):
            await client.upload_document(b"x", filename="a.pdf", mime_type="application/pdf")
