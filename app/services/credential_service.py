"""
Credential provider for Gmail and GitHub access tokens.

Reads tokens stored by the sign-in flow, refreshes expired Google tokens,
and hands the follow-up sync a ready-to-use bearer token. A user who never
connected the provider gets None; a token that is expired and cannot be
refreshed raises CredentialExpiredError.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Protocol

import httpx

from app.config import settings
from app.db.helpers import DatabaseError, execute_query, fetch_one
from app.infrastructure.observability.logging import get_logger
from app.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_token,
    encrypt_token,
)

logger = get_logger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

REQUEST_TIMEOUT = 10  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
EXPIRY_BUFFER = timedelta(minutes=1)


class CredentialError(Exception):
    """Raised when a stored credential cannot be used."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


class CredentialExpiredError(CredentialError):
    """The access token expired and could not be refreshed; the user must reconnect."""


class CredentialProvider(Protocol):
    async def get_access_token(self, user_id: str, provider: str) -> str | None: ...


class OAuthCredentialProvider:
    """Token provider backed by the oauth_accounts table."""

    def __init__(self, client_id: str | None = None, client_secret: str | None = None):
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET

    async def get_access_token(self, user_id: str, provider: str) -> str | None:
        """
        Return a valid access token for `provider`, refreshing if needed.

        Returns:
            The bearer token, or None when the user has no stored account

        Raises:
            CredentialExpiredError: token expired and refresh is impossible or failed
            CredentialError: stored token is unreadable or the store failed
        """
        try:
            row = await fetch_one(
                """
                SELECT access_token, refresh_token, expires_at
                FROM oauth_accounts
                WHERE user_id = %s AND provider = %s
                """,
                (user_id, provider),
            )
        except DatabaseError as e:
            raise CredentialError(f"Failed to load credentials: {e}", user_id=user_id) from e

        if not row or not row.get("access_token"):
            logger.debug("No stored credentials", user_id=user_id, provider=provider)
            return None

        try:
            access_token = decrypt_token(row["access_token"])
            refresh_token = decrypt_token(row["refresh_token"]) if row.get("refresh_token") else None
        except EncryptionError as e:
            logger.error("Stored token unreadable", user_id=user_id, provider=provider, error=str(e))
            raise CredentialError(
                f"Stored token unreadable: {e}", user_id=user_id, recoverable=False
            ) from e

        expires_at = row.get("expires_at")
        if expires_at is None or expires_at - EXPIRY_BUFFER > datetime.now(UTC):
            return access_token

        if provider != "google" or not refresh_token:
            raise CredentialExpiredError("Access token expired", user_id=user_id)

        return await self._refresh_google_token(user_id, refresh_token)

    async def _refresh_google_token(self, user_id: str, refresh_token: str) -> str:
        if not self.client_id or not self.client_secret:
            raise CredentialExpiredError("Google OAuth client not configured", user_id=user_id)

        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        try:
            response = await self._post_with_retry(GOOGLE_TOKEN_URL, data)
        except httpx.RequestError as e:
            logger.warning("Network error refreshing Google token", user_id=user_id, error=str(e))
            raise CredentialExpiredError(f"Token refresh failed: {e}", user_id=user_id) from e

        payload = {}
        if response.is_success:
            try:
                payload = response.json()
            except ValueError:
                logger.warning("Google token response is not JSON", user_id=user_id)
        if not isinstance(payload, dict):
            payload = {}
        access_token = payload.get("access_token")
        if not access_token:
            logger.warning(
                "Google token refresh rejected",
                user_id=user_id,
                status_code=response.status_code,
            )
            raise CredentialExpiredError("Token refresh rejected", user_id=user_id)

        expires_at = datetime.now(UTC) + timedelta(seconds=int(payload.get("expires_in", 3600)))
        try:
            await execute_query(
                """
                UPDATE oauth_accounts
                SET access_token = %s, expires_at = %s, updated_at = NOW()
                WHERE user_id = %s AND provider = 'google'
                """,
                (encrypt_token(access_token), expires_at, user_id),
            )
        except (DatabaseError, EncryptionError) as e:
            # The fresh token is still usable for this pass
            logger.error("Failed to persist refreshed token", user_id=user_id, error=str(e))

        logger.info("Google access token refreshed", user_id=user_id, expires_at=expires_at.isoformat())
        return access_token

    async def _post_with_retry(self, url: str, data: dict) -> httpx.Response:
        """POST form data, retrying transient statuses and network errors."""
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    response = await client.post(url, data=data, headers=headers)
                except httpx.RequestError as exc:
                    if attempt == MAX_RETRIES:
                        raise
                    logger.warning(
                        "Token endpoint request error, retrying",
                        attempt=attempt,
                        error=str(exc),
                    )
                    await asyncio.sleep(BACKOFF_FACTOR**attempt)
                    continue

                if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                    await asyncio.sleep(BACKOFF_FACTOR**attempt)
                    continue

                return response

        raise httpx.RequestError("Token endpoint retries exhausted")


credential_provider = OAuthCredentialProvider()
