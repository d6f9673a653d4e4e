"""
Tests for reminder domain rules.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from app.models.domain.followup_domain import (
    InvalidStatusTransition,
    NewReminder,
    SyncResult,
    check_reminder_changes,
)


def test_completed_reminder_cannot_be_reopened(reminder_store):
    reminder = reminder_store.add(status="completed")

    with pytest.raises(InvalidStatusTransition):
        check_reminder_changes(reminder, {"status": "pending"})


def test_unknown_fields_are_rejected(reminder_store):
    reminder = reminder_store.add()

    with pytest.raises(ValueError, match="user_id"):
        check_reminder_changes(reminder, {"user_id": "someone-else"})


def test_pending_can_be_completed(reminder_store):
    check_reminder_changes(reminder_store.add(), {"status": "completed", "priority": "low"})


def test_new_reminder_requires_title(now):
    with pytest.raises(ValidationError):
        NewReminder(user_id="u", title="", due_at=now)


def test_follow_up_days_must_be_positive(reminder_store):
    with pytest.raises(ValidationError):
        reminder_store.add(follow_up_days=0)


def test_is_due_for_follow_up(reminder_store, now):
    reminder = reminder_store.add(
        auto_follow_up=True, follow_up_days=3, next_follow_up_at=now - timedelta(seconds=1)
    )

    assert reminder.is_due_for_follow_up(now) is True
    assert reminder.is_due_for_follow_up(now - timedelta(days=1)) is False


def test_sync_result_success_flag():
    assert SyncResult(created=1).success is True
    assert SyncResult(error="no_credential").to_dict()["error"] == "no_credential"
