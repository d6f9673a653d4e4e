"""
Source adapter base.

An adapter turns one external system into a list of CandidateItem records.
The HTTP plumbing (auth header, retry on transient statuses, error mapping)
lives here so the concrete adapters only describe queries and normalization.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import httpx

from app.infrastructure.observability.logging import get_logger
from app.models.domain.followup_domain import CandidateItem, IntegrationType

logger = get_logger(__name__)

REQUEST_TIMEOUT = 20  # seconds
MAX_RETRIES = 3
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class SourceError(Exception):
    """Raised when a source API call fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        auth_failed: bool = False,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.auth_failed = auth_failed
        self.recoverable = recoverable


class MalformedItemError(ValueError):
    """Raised when a single raw record cannot be normalized."""


class SourceAdapter(ABC):
    """Fetches candidate items for one user from one external system."""

    source: IntegrationType
    provider: str
    base_url: str

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = REQUEST_TIMEOUT,
        retry_delay: float = 0.5,
    ):
        self._transport = transport
        self._timeout = timeout
        self._retry_delay = retry_delay

    def _headers(self, access_token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}

    def _client(self, access_token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(access_token),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _get_json(
        self, client: httpx.AsyncClient, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """
        GET a JSON document.

        Raises:
            SourceError: auth_failed=True on HTTP 401, otherwise a transient
                or unexpected API failure
        """
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = await client.get(path, params=params)
            except httpx.RequestError as e:
                if attempt == MAX_RETRIES:
                    logger.warning(
                        "Source request failed", source=self.source, path=path, error=str(e)
                    )
                    raise SourceError(f"{self.source} request failed: {e}") from e
                await asyncio.sleep(self._retry_delay * 2 ** (attempt - 1))
                continue

            if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                logger.debug(
                    "Source transient status, retrying",
                    source=self.source,
                    status_code=response.status_code,
                    attempt=attempt,
                )
                await asyncio.sleep(self._retry_delay * 2 ** (attempt - 1))
                continue

            return self._handle_response(response, path)

        raise SourceError(f"{self.source} retries exhausted for {path}")

    def _handle_response(self, response: httpx.Response, path: str) -> dict[str, Any]:
        if response.status_code == 401:
            logger.warning("Source rejected credentials", source=self.source, path=path)
            raise SourceError(
                f"{self.source} authorization expired", status_code=401, auth_failed=True
            )

        if not response.is_success:
            logger.warning(
                "Source API error",
                source=self.source,
                path=path,
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise SourceError(
                f"{self.source} API error (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        try:
            data = response.json() if response.content else {}
        except ValueError as e:
            raise SourceError(f"Invalid {self.source} response: {e}") from e

        if not isinstance(data, dict):
            raise SourceError(f"Unexpected {self.source} response shape")
        return data

    @abstractmethod
    async def fetch_candidates(self, access_token: str, limit: int) -> list[CandidateItem]:
        """Return up to `limit` candidate items per query for the token's owner."""
