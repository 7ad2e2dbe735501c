# tests/test_drive_auth.py

from __future__ import annotations

import asyncio

import google.auth.exceptions
import pytest

from drive_relay.drive import auth
from drive_relay.drive.auth import ServiceAccountTokenProvider
from drive_relay.errors import PermanentError, TransientIOError


class FakeCredentials:
    """Stands in for google.oauth2.service_account.Credentials."""

    def __init__(self) -> None:
        self.valid = False
        self.token: str | None = None
        self.refreshes = 0
        self.error: Exception | None = None

    def refresh(self, _request) -> None:
        self.refreshes += 1
        if self.error is not None:
            raise self.error
        self.token = f"tok-{self.refreshes}"
        self.valid = True


@pytest.fixture()
def creds(monkeypatch: pytest.MonkeyPatch) -> FakeCredentials:
    fake = FakeCredentials()
    monkeypatch.setattr(
        auth.service_account.Credentials,
        "from_service_account_info",
        staticmethod(lambda _info, scopes=None: fake),
    )
    return fake


def test_malformed_credentials_are_permanent() -> None:
    with pytest.raises(PermanentError, match="invalid service account credentials"):
        ServiceAccountTokenProvider({"type": "service_account", "client_email": "x@y"}, name="Drive One")


@pytest.mark.asyncio
async def test_token_is_refreshed_once_and_reused(creds: FakeCredentials) -> None:
    provider = ServiceAccountTokenProvider({}, name="Drive One")

    tokens = await asyncio.gather(provider(), provider(), provider())

    assert tokens == ["tok-1", "tok-1", "tok-1"]
    assert creds.refreshes == 1


@pytest.mark.asyncio
async def test_rejected_refresh_is_permanent(creds: FakeCredentials) -> None:
    creds.error = google.auth.exceptions.RefreshError("invalid_grant")
    provider = ServiceAccountTokenProvider({}, name="Drive One")

    with pytest.raises(PermanentError, match="rejected"):
        await provider()


@pytest.mark.asyncio
async def test_retryable_refresh_failure_is_transient(creds: FakeCredentials) -> None:
    creds.error = google.auth.exceptions.RefreshError("internal_failure", retryable=True)
    provider = ServiceAccountTokenProvider({}, name="Drive One")

    with pytest.raises(TransientIOError):
        await provider()


@pytest.mark.asyncio
async def test_unreachable_token_endpoint_is_transient(creds: FakeCredentials) -> None:
    creds.error = google.auth.exceptions.TransportError("connection refused")
    provider = ServiceAccountTokenProvider({}, name="Drive One")

    with pytest.raises(TransientIOError, match="unreachable"):
        await provider()
