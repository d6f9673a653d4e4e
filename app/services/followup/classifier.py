"""
Follow-up classifier.

Pure functions that decide which candidate items need a reminder and at
what priority. No I/O: the same candidates and `now` always produce the
same result.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from app.config import settings
from app.models.domain.followup_domain import CandidateItem, Priority


@dataclass(frozen=True, slots=True)
class FollowUpPolicy:
    """Age thresholds, in days. All comparisons are `age >= threshold`."""

    email_days: int = 3
    stale_pr_days: int = 5
    stale_issue_days: int = 7

    @classmethod
    def from_settings(cls) -> "FollowUpPolicy":
        return cls(
            email_days=settings.EMAIL_FOLLOWUP_DAYS,
            stale_pr_days=settings.STALE_PR_DAYS,
            stale_issue_days=settings.STALE_ISSUE_DAYS,
        )


DEFAULT_POLICY = FollowUpPolicy()


def item_age(item: CandidateItem, now: datetime) -> timedelta | None:
    """
    Age of an item relative to `now`, or None when the timestamp is unusable.

    A missing timestamp, or one whose timezone awareness differs from `now`,
    cannot be compared and is treated as bad data.
    """
    reference = item.reference_time
    if not isinstance(reference, datetime):
        return None
    if (reference.tzinfo is None) != (now.tzinfo is None):
        return None
    return now - reference


def assign_priority(
    item: CandidateItem, now: datetime, policy: FollowUpPolicy = DEFAULT_POLICY
) -> Priority | None:
    """
    Return the reminder priority for one candidate, or None if it does not qualify.

    Rules:
        email, owner sent last, unanswered for >= email_days  -> medium
        PR requesting the owner's review (any age)             -> high
        PR authored by the owner, idle for >= stale_pr_days    -> medium
        open issue assigned to the owner, >= stale_issue_days  -> low
    """
    age = item_age(item, now)
    if age is None:
        return None

    if item.kind == "email_followup":
        if item.role == "owner_sent" and age >= timedelta(days=policy.email_days):
            return "medium"
        return None

    if item.kind == "pr_review":
        if item.role == "review_requested":
            return "high"
        if item.role == "authored" and age >= timedelta(days=policy.stale_pr_days):
            return "medium"
        return None

    if item.kind == "issue_stale":
        if (
            item.role == "assigned"
            and item.is_open
            and age >= timedelta(days=policy.stale_issue_days)
        ):
            return "low"
        return None

    return None


def classify(
    candidates: Iterable[CandidateItem],
    now: datetime,
    policy: FollowUpPolicy = DEFAULT_POLICY,
) -> list[CandidateItem]:
    """
    Filter candidates down to those needing a reminder.

    Returns new CandidateItem instances with `suggested_priority` set;
    input order is preserved.
    """
    classified: list[CandidateItem] = []
    for item in candidates:
        priority = assign_priority(item, now, policy)
        if priority is not None:
            classified.append(item.with_priority(priority))
    return classified
