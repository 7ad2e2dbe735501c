# src/drive_relay/drive/pages.py

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from ..errors import PermanentError

FetchPage = Callable[[str | None], Awaitable[dict[str, Any]]]


async def iter_pages(fetch: FetchPage, first_token: str | None = None) -> AsyncIterator[dict[str, Any]]:
    """
    Yield raw pages, one request each, following `nextPageToken`.

    Finite and not restartable: a fresh listing needs a fresh generator.
    """
    token = first_token
    seen: set[str] = set()
    while True:
        page = await fetch(token)
        yield page

        token = page.get("nextPageToken")
        if not token:
            return
        if token in seen:
            raise PermanentError(f"Pagination loop detected at token {token!r}")
        seen.add(token)
