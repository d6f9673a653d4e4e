"""
Tests for follow-up classification rules and their age boundaries.
"""

from datetime import timedelta

import pytest

from app.services.followup.classifier import FollowUpPolicy, assign_priority, classify


def test_sent_email_qualifies_at_exactly_three_days(candidate, now):
    item = candidate(reference_time=now - timedelta(days=3))
    assert assign_priority(item, now) == "medium"


def test_sent_email_just_under_three_days_is_excluded(candidate, now):
    item = candidate(reference_time=now - timedelta(days=2, hours=23))
    assert assign_priority(item, now) is None


def test_email_with_reply_from_someone_else_is_excluded(candidate, now):
    item = candidate(role="reply_received", reference_time=now - timedelta(days=10))
    assert assign_priority(item, now) is None


def test_review_request_is_high_regardless_of_age(candidate, now):
    item = candidate(kind="pr_review", role="review_requested", reference_time=now)
    assert assign_priority(item, now) == "high"


@pytest.mark.parametrize(
    ("age", "expected"),
    [
        (timedelta(days=5), "medium"),
        (timedelta(days=4, hours=23), None),
    ],
)
def test_authored_pr_stale_boundary(candidate, now, age, expected):
    item = candidate(kind="pr_review", role="authored", reference_time=now - age)
    assert assign_priority(item, now) == expected


@pytest.mark.parametrize(
    ("age", "is_open", "expected"),
    [
        (timedelta(days=7), True, "low"),
        (timedelta(days=6, hours=23), True, None),
        (timedelta(days=30), False, None),
    ],
)
def test_assigned_issue_rules(candidate, now, age, is_open, expected):
    item = candidate(
        kind="issue_stale", role="assigned", reference_time=now - age, is_open=is_open
    )
    assert assign_priority(item, now) == expected


def test_missing_timestamp_is_excluded_even_for_review_requests(candidate, now):
    email = candidate(reference_time=None)
    review = candidate(kind="pr_review", role="review_requested", reference_time=None)

    assert assign_priority(email, now) is None
    assert assign_priority(review, now) is None


def test_naive_timestamp_is_treated_as_bad_data(candidate, now):
    naive = (now - timedelta(days=10)).replace(tzinfo=None)
    assert assign_priority(candidate(reference_time=naive), now) is None


def test_custom_policy_thresholds(candidate, now):
    policy = FollowUpPolicy(email_days=1)
    item = candidate(reference_time=now - timedelta(days=1))
    assert assign_priority(item, now, policy) == "medium"


def test_classify_filters_preserves_order_and_sets_priority(candidate, now):
    old = now - timedelta(days=8)
    items = [
        candidate(source_id="a", reference_time=old),
        candidate(source_id="b", reference_time=now),
        candidate(source_id="c", kind="issue_stale", role="assigned", reference_time=old),
        candidate(source_id="d", kind="pr_review", role="review_requested", reference_time=now),
    ]

    result = classify(items, now)

    assert [(i.source_id, i.suggested_priority) for i in result] == [
        ("a", "medium"),
        ("c", "low"),
        ("d", "high"),
    ]
    # Inputs are not mutated
    assert all(i.suggested_priority is None for i in items)


def test_classify_is_deterministic(candidate, now):
    items = [candidate(reference_time=now - timedelta(days=4))]
    assert classify(items, now) == classify(items, now)
