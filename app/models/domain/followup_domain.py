# app/models/domain/followup_domain.py
"""
Follow-up Domain Models
Candidate items produced by the source adapters, and the persistent
Reminder / Integration records validated at the repository boundary.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

CandidateKind = Literal["email_followup", "pr_review", "issue_stale"]
ReminderType = Literal["email_followup", "pr_review", "issue_stale", "custom"]
Priority = Literal["low", "medium", "high", "urgent"]
ReminderStatus = Literal["pending", "completed"]
IntegrationType = Literal["gmail", "github"]

# How the account owner relates to a candidate item
CandidateRole = Literal[
    "owner_sent",  # email thread whose last message came from the owner
    "reply_received",  # email thread whose last message came from someone else
    "review_requested",  # PR waiting on the owner's review
    "authored",  # PR opened by the owner
    "assigned",  # issue assigned to the owner
]

INTEGRATION_PROVIDERS: dict[str, str] = {"gmail": "google", "github": "github"}


@dataclass(slots=True)
class CandidateItem:
    """Normalized, ephemeral record describing something that might need a reminder."""

    source_id: str
    kind: CandidateKind
    role: CandidateRole
    title: str
    snippet: str
    reference_time: datetime | None
    source_url: str
    description: str | None = None
    is_open: bool = True
    suggested_priority: Priority | None = None

    def with_priority(self, priority: Priority) -> "CandidateItem":
        return replace(self, suggested_priority=priority)


class Reminder(BaseModel):
    """Persistent, user-visible follow-up task."""

    id: str
    user_id: str
    type: ReminderType = "custom"
    title: str
    description: str | None = None
    source_id: str | None = None
    source_url: str | None = None
    source_reference_at: datetime | None = None
    due_at: datetime
    priority: Priority = "medium"
    status: ReminderStatus = "pending"
    auto_follow_up: bool = False
    follow_up_days: int | None = Field(default=None, gt=0)
    next_follow_up_at: datetime | None = None
    follow_up_attempts: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime

    def is_pending(self) -> bool:
        return self.status == "pending"

    def is_due_for_follow_up(self, now: datetime) -> bool:
        """True when auto follow-up is on and the next nudge time has passed."""
        return (
            self.auto_follow_up
            and self.is_pending()
            and self.next_follow_up_at is not None
            and self.next_follow_up_at <= now
        )


class InvalidStatusTransition(ValueError):
    """Raised when an update would move a reminder from completed back to pending."""


REMINDER_UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "source_url",
        "due_at",
        "priority",
        "status",
        "auto_follow_up",
        "follow_up_days",
        "next_follow_up_at",
        "follow_up_attempts",
    }
)


def check_reminder_changes(current: Reminder, changes: dict[str, Any]) -> None:
    """Reject unknown fields and the completed -> pending transition."""
    unknown = set(changes) - REMINDER_UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    if current.status == "completed" and changes.get("status") == "pending":
        raise InvalidStatusTransition("Completed reminders cannot be reopened")


class NewReminder(BaseModel):
    """Fields supplied when creating a reminder; the store assigns id and timestamps."""

    user_id: str
    type: ReminderType = "custom"
    title: str = Field(..., min_length=1)
    description: str | None = None
    source_id: str | None = None
    source_url: str | None = None
    source_reference_at: datetime | None = None
    due_at: datetime
    priority: Priority = "medium"


class Integration(BaseModel):
    """Per-user, per-external-system connection record."""

    id: str
    user_id: str
    type: IntegrationType
    enabled: bool = True
    config: dict[str, Any] = Field(default_factory=dict)
    last_sync_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class FollowUpSchedule:
    """Output of the escalation scheduler."""

    next_follow_up_at: datetime
    follow_up_attempts: int


SyncErrorKind = Literal["no_credential", "credential_expired", "source_unavailable", "sync_failed"]


@dataclass(slots=True)
class SyncResult:
    """Outcome of one sync pass for one user and one source."""

    created: int = 0
    skipped: int = 0
    failed: int = 0
    error: SyncErrorKind | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
            "error": self.error,
        }
