"""
Tests for the OAuth credential provider.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import httpx
import pytest

from app.db.helpers import DatabaseError
from app.services import credential_service
from app.services.credential_service import (
    CredentialError,
    CredentialExpiredError,
    OAuthCredentialProvider,
)

MODULE = "app.services.credential_service"


@pytest.fixture(autouse=True)
def plaintext_tokens(monkeypatch):
    monkeypatch.setattr(f"{MODULE}.settings.ENCRYPTION_KEY", None)


def _row(expires_at, refresh_token=b"refresh-1"):
    return {"access_token": b"access-1", "refresh_token": refresh_token, "expires_at": expires_at}


@pytest.mark.asyncio
async def test_no_stored_account_returns_none(monkeypatch):
    monkeypatch.setattr(f"{MODULE}.fetch_one", AsyncMock(return_value=None))

    assert await OAuthCredentialProvider().get_access_token("user-1", "github") is None


@pytest.mark.asyncio
async def test_valid_token_is_returned(monkeypatch):
    row = _row(datetime.now(UTC) + timedelta(hours=1))
    monkeypatch.setattr(f"{MODULE}.fetch_one", AsyncMock(return_value=row))

    assert await OAuthCredentialProvider().get_access_token("user-1", "google") == "access-1"


@pytest.mark.asyncio
async def test_token_without_expiry_never_expires(monkeypatch):
    monkeypatch.setattr(f"{MODULE}.fetch_one", AsyncMock(return_value=_row(None, None)))

    assert await OAuthCredentialProvider().get_access_token("user-1", "github") == "access-1"


@pytest.mark.asyncio
async def test_expired_github_token_raises(monkeypatch):
    row = _row(datetime.now(UTC) - timedelta(hours=1))
    monkeypatch.setattr(f"{MODULE}.fetch_one", AsyncMock(return_value=row))

    with pytest.raises(CredentialExpiredError):
        await OAuthCredentialProvider().get_access_token("user-1", "github")


@pytest.mark.asyncio
async def test_store_failure_is_credential_error(monkeypatch):
    monkeypatch.setattr(
        f"{MODULE}.fetch_one", AsyncMock(side_effect=DatabaseError("down", operation="fetch_one"))
    )

    with pytest.raises(CredentialError) as exc_info:
        await OAuthCredentialProvider().get_access_token("user-1", "google")

    assert not isinstance(exc_info.value, CredentialExpiredError)


@pytest.mark.asyncio
async def test_expired_google_token_is_refreshed_and_persisted(monkeypatch):
    row = _row(datetime.now(UTC) - timedelta(minutes=5))
    monkeypatch.setattr(f"{MODULE}.fetch_one", AsyncMock(return_value=row))
    execute = AsyncMock(return_value=1)
    monkeypatch.setattr(f"{MODULE}.execute_query", execute)

    provider = OAuthCredentialProvider(client_id="cid", client_secret="secret")
    token_response = httpx.Response(
        200,
        json={"access_token": "access-2", "expires_in": 3599},
        request=httpx.Request("POST", credential_service.GOOGLE_TOKEN_URL),
    )
    monkeypatch.setattr(provider, "_post_with_retry", AsyncMock(return_value=token_response))

    token = await provider.get_access_token("user-1", "google")

    assert token == "access-2"
    params = execute.await_args.args[1]
    assert params[0] == b"access-2"
    assert params[2] == "user-1"


@pytest.mark.asyncio
async def test_rejected_refresh_raises_expired(monkeypatch):
    row = _row(datetime.now(UTC) - timedelta(minutes=5))
    monkeypatch.setattr(f"{MODULE}.fetch_one", AsyncMock(return_value=row))

    provider = OAuthCredentialProvider(client_id="cid", client_secret="secret")
    rejected = httpx.Response(
        400,
        json={"error": "invalid_grant"},
        request=httpx.Request("POST", credential_service.GOOGLE_TOKEN_URL),
    )
    monkeypatch.setattr(provider, "_post_with_retry", AsyncMock(return_value=rejected))

    with pytest.raises(CredentialExpiredError):
        await provider.get_access_token("user-1", "google")


@pytest.mark.asyncio
async def test_non_json_refresh_response_raises_expired(monkeypatch):
    row = _row(datetime.now(UTC) - timedelta(minutes=5))
    monkeypatch.setattr(f"{MODULE}.fetch_one", AsyncMock(return_value=row))

    provider = OAuthCredentialProvider(client_id="cid", client_secret="secret")
    html = httpx.Response(
        200,
        text="<html>maintenance</html>",
        request=httpx.Request("POST", credential_service.GOOGLE_TOKEN_URL),
    )
    monkeypatch.setattr(provider, "_post_with_retry", AsyncMock(return_value=html))

    with pytest.raises(CredentialExpiredError):
        await provider.get_access_token("user-1", "google")
