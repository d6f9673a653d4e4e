"""
Tests for the GitHub tracker adapter.
"""

from datetime import UTC, datetime

import httpx
import pytest

from app.services.sources.base import MalformedItemError, SourceError
from app.services.sources.github_source import (
    TrackerAdapter,
    normalize_assigned_issue,
    normalize_authored_pr,
    normalize_review_request,
)

PR = {
    "id": 101,
    "number": 12,
    "title": "Add retry",
    "html_url": "https://github.com/acme/api/pull/12",
    "state": "open",
    "user": {"login": "octocat"},
    "updated_at": "2025-03-01T10:00:00Z",
    "created_at": "2025-02-20T10:00:00Z",
}


def test_normalize_review_request():
    item = normalize_review_request(PR)

    assert item.source_id == "pr-101"
    assert item.kind == "pr_review"
    assert item.role == "review_requested"
    assert item.description == "PR #12 by octocat"
    assert item.reference_time == datetime(2025, 3, 1, 10, 0, tzinfo=UTC)


def test_normalize_authored_pr():
    item = normalize_authored_pr(PR, stale_days=5)

    assert item.source_id == "stale-pr-101"
    assert item.role == "authored"
    assert item.description == "Your PR #12 hasn't been updated in 5+ days"


def test_normalize_assigned_issue_uses_created_at():
    item = normalize_assigned_issue({**PR, "state": "closed"})

    assert item.source_id == "issue-101"
    assert item.kind == "issue_stale"
    assert item.reference_time == datetime(2025, 2, 20, 10, 0, tzinfo=UTC)
    assert item.is_open is False


def test_missing_id_is_malformed():
    with pytest.raises(MalformedItemError):
        normalize_review_request({"title": "no id"})


@pytest.mark.asyncio
async def test_fetch_candidates_runs_three_queries():
    queries = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/user":
            return httpx.Response(200, json={"login": "octocat"})
        query = request.url.params["q"]
        queries.append(query)
        if "review-requested" in query:
            return httpx.Response(200, json={"items": [PR, "garbage", {"title": "no id"}]})
        if "author" in query:
            return httpx.Response(200, json={"items": [{**PR, "id": 202}]})
        return httpx.Response(200, json={"items": [{**PR, "id": 303}]})

    adapter = TrackerAdapter(transport=httpx.MockTransport(handler), retry_delay=0)
    now = datetime(2025, 3, 10, tzinfo=UTC)

    candidates = await adapter.fetch_candidates("token", limit=10, now=now)

    assert [c.source_id for c in candidates] == ["pr-101", "stale-pr-202", "issue-303"]
    assert sorted(queries) == sorted(
        [
            "is:pr is:open review-requested:octocat",
            "is:pr is:open author:octocat updated:<2025-03-05",
            "is:issue is:open assignee:octocat",
        ]
    )


@pytest.mark.asyncio
async def test_bad_token_raises_auth_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Bad credentials"})

    adapter = TrackerAdapter(transport=httpx.MockTransport(handler), retry_delay=0)

    with pytest.raises(SourceError) as exc_info:
        await adapter.fetch_candidates("token", limit=10)

    assert exc_info.value.auth_failed is True


@pytest.mark.asyncio
async def test_failed_query_keeps_other_results():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/user":
            return httpx.Response(200, json={"login": "octocat"})
        query = request.url.params["q"]
        if "assignee" in query:
            return httpx.Response(422, json={"message": "Validation Failed"})
        if "review-requested" in query:
            return httpx.Response(200, json={"items": [PR]})
        return httpx.Response(200, json={"items": [{**PR, "id": 202}]})

    adapter = TrackerAdapter(transport=httpx.MockTransport(handler), retry_delay=0)
    now = datetime(2025, 3, 10, tzinfo=UTC)

    candidates = await adapter.fetch_candidates("token", limit=10, now=now)

    assert [c.source_id for c in candidates] == ["pr-101", "stale-pr-202"]


@pytest.mark.asyncio
async def test_query_401_still_raises_auth_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/user":
            return httpx.Response(200, json={"login": "octocat"})
        return httpx.Response(401, json={"message": "Bad credentials"})

    adapter = TrackerAdapter(transport=httpx.MockTransport(handler), retry_delay=0)

    with pytest.raises(SourceError) as exc_info:
        await adapter.fetch_candidates("token", limit=10)

    assert exc_info.value.auth_failed is True
