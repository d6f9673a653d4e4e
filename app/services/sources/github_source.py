"""
Tracker adapter: GitHub pull requests and issues as follow-up candidates.

Resolves the authenticated login, then runs three issue-search queries
concurrently: PRs requesting the user's review, the user's own PRs that
have gone quiet, and open issues assigned to the user.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.followup_domain import CandidateItem, CandidateKind, CandidateRole
from app.services.sources.base import MalformedItemError, SourceAdapter, SourceError

logger = get_logger(__name__)

GITHUB_API_BASE_URL = "https://api.github.com"


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _login(user: Any) -> str:
    if isinstance(user, dict):
        return str(user.get("login") or "unknown")
    return "unknown"


def _normalize(
    item: dict[str, Any],
    *,
    kind: CandidateKind,
    role: CandidateRole,
    id_prefix: str,
    time_field: str,
    description: str,
) -> CandidateItem:
    item_id = item.get("id")
    if item_id is None:
        raise MalformedItemError("Search result is missing an id")

    title = str(item.get("title") or "(untitled)")
    return CandidateItem(
        source_id=f"{id_prefix}-{item_id}",
        kind=kind,
        role=role,
        title=title,
        snippet=str(item.get("body") or "")[:200],
        reference_time=_parse_timestamp(item.get(time_field)),
        source_url=str(item.get("html_url") or ""),
        description=description,
        is_open=item.get("state", "open") == "open",
    )


def normalize_review_request(item: dict[str, Any]) -> CandidateItem:
    """PR where the user's review is requested; aged by last update."""
    return _normalize(
        item,
        kind="pr_review",
        role="review_requested",
        id_prefix="pr",
        time_field="updated_at",
        description=f"PR #{item.get('number', '?')} by {_login(item.get('user'))}",
    )


def normalize_authored_pr(item: dict[str, Any], stale_days: int | None = None) -> CandidateItem:
    """PR opened by the user; aged by last update."""
    days = stale_days or settings.STALE_PR_DAYS
    return _normalize(
        item,
        kind="pr_review",
        role="authored",
        id_prefix="stale-pr",
        time_field="updated_at",
        description=f"Your PR #{item.get('number', '?')} hasn't been updated in {days}+ days",
    )


def normalize_assigned_issue(item: dict[str, Any]) -> CandidateItem:
    """Issue assigned to the user; aged by creation time."""
    return _normalize(
        item,
        kind="issue_stale",
        role="assigned",
        id_prefix="issue",
        time_field="created_at",
        description=f"Issue #{item.get('number', '?')} assigned to you",
    )


class TrackerAdapter(SourceAdapter):
    """GitHub implementation of the source adapter."""

    source = "github"
    provider = "github"
    base_url = GITHUB_API_BASE_URL

    def _headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def fetch_candidates(
        self, access_token: str, limit: int, now: datetime | None = None
    ) -> list[CandidateItem]:
        now = now or datetime.now(UTC)
        stale_before = (now - timedelta(days=settings.STALE_PR_DAYS)).date().isoformat()

        async with self._client(access_token) as client:
            principal = await self._get_json(client, "/user")
            login = principal.get("login")
            if not login:
                raise SourceError("Could not resolve GitHub user")

            queries = [
                (f"is:pr is:open review-requested:{login}", normalize_review_request),
                (f"is:pr is:open author:{login} updated:<{stale_before}", normalize_authored_pr),
                (f"is:issue is:open assignee:{login}", normalize_assigned_issue),
            ]
            results = await asyncio.gather(
                *(self._search(client, query, limit) for query, _ in queries)
            )

        candidates: list[CandidateItem] = []
        for (query, normalizer), result in zip(queries, results):
            for item in (result.get("items") or [])[:limit]:
                if not isinstance(item, dict):
                    logger.warning("Skipping non-object search result", query=query)
                    continue
                try:
                    candidates.append(normalizer(item))
                except MalformedItemError as e:
                    logger.warning("Skipping malformed search result", query=query, error=str(e))

        logger.info("Tracker candidates fetched", login=login, candidates=len(candidates))
        return candidates

    async def _search(self, client: httpx.AsyncClient, query: str, limit: int) -> dict[str, Any]:
        """Run one search query; non-auth failures yield an empty result."""
        try:
            return await self._get_json(
                client, "/search/issues", params={"q": query, "per_page": limit}
            )
        except SourceError as e:
            if e.auth_failed:
                raise
            logger.warning(
                "Search query failed", query=query, status_code=e.status_code, error=str(e)
            )
            return {}
