"""
Mailbox adapter: Gmail sent threads as follow-up candidates.

Lists recent threads in the Sent folder, fetches each thread's metadata
concurrently, and normalizes the last message of each thread into a
CandidateItem. Whether the owner is still waiting on a reply is decided by
the last message carrying the SENT label.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

import httpx

from app.infrastructure.observability.logging import get_logger
from app.models.domain.followup_domain import CandidateItem
from app.services.sources.base import MalformedItemError, SourceAdapter, SourceError

logger = get_logger(__name__)

GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
GMAIL_THREAD_URL = "https://mail.google.com/mail/u/0/#inbox/{thread_id}"
SENT_THREADS_QUERY = "in:sent -in:trash"
MAX_TITLE_LENGTH = 100
MAX_CONCURRENT_THREAD_FETCHES = 5


def _parse_internal_date(value: Any) -> datetime | None:
    """Gmail internalDate is epoch milliseconds as a string."""
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _header(message: dict, name: str) -> str:
    headers = (message.get("payload") or {}).get("headers") or []
    for header in headers:
        if str(header.get("name", "")).lower() == name.lower():
            return str(header.get("value") or "")
    return ""


def normalize_thread(thread: dict[str, Any]) -> CandidateItem:
    """
    Normalize a Gmail thread (format=metadata) into a CandidateItem.

    Raises:
        MalformedItemError: thread has no id or no messages
    """
    thread_id = thread.get("id")
    messages = thread.get("messages") or []
    if not thread_id or not messages:
        raise MalformedItemError("Thread is missing an id or messages")

    last_message = messages[-1]
    snippet = str(last_message.get("snippet") or "")
    subject = _header(last_message, "Subject") or _header(messages[0], "Subject")
    title = (subject or snippet or "No subject")[:MAX_TITLE_LENGTH]
    labels = last_message.get("labelIds") or []

    return CandidateItem(
        source_id=str(thread_id),
        kind="email_followup",
        role="owner_sent" if "SENT" in labels else "reply_received",
        title=title,
        snippet=snippet,
        reference_time=_parse_internal_date(last_message.get("internalDate")),
        source_url=GMAIL_THREAD_URL.format(thread_id=thread_id),
        description=snippet or None,
    )


class MailboxAdapter(SourceAdapter):
    """Gmail implementation of the source adapter."""

    source = "gmail"
    provider = "google"
    base_url = GMAIL_API_BASE_URL

    async def fetch_candidates(self, access_token: str, limit: int) -> list[CandidateItem]:
        async with self._client(access_token) as client:
            listing = await self._get_json(
                client, "/threads", params={"maxResults": limit, "q": SENT_THREADS_QUERY}
            )
            thread_ids = [
                t["id"] for t in listing.get("threads") or [] if isinstance(t, dict) and t.get("id")
            ][:limit]

            if not thread_ids:
                logger.info("No sent threads found")
                return []

            semaphore = asyncio.Semaphore(MAX_CONCURRENT_THREAD_FETCHES)
            threads = await asyncio.gather(
                *(self._fetch_thread(client, semaphore, thread_id) for thread_id in thread_ids)
            )

        candidates: list[CandidateItem] = []
        for thread in threads:
            if thread is None:
                continue
            try:
                candidates.append(normalize_thread(thread))
            except MalformedItemError as e:
                logger.warning("Skipping malformed thread", thread_id=thread.get("id"), error=str(e))

        logger.info(
            "Mailbox candidates fetched",
            threads_listed=len(thread_ids),
            candidates=len(candidates),
        )
        return candidates

    async def _fetch_thread(
        self, client: httpx.AsyncClient, semaphore: asyncio.Semaphore, thread_id: str
    ) -> dict[str, Any] | None:
        """Fetch one thread; non-auth failures skip the thread."""
        async with semaphore:
            try:
                return await self._get_json(
                    client,
                    f"/threads/{thread_id}",
                    params={"format": "metadata", "metadataHeaders": ["Subject"]},
                )
            except SourceError as e:
                if e.auth_failed:
                    raise
                logger.warning("Failed to fetch thread", thread_id=thread_id, error=str(e))
                return None
