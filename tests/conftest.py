import uuid
from datetime import UTC, datetime
from typing import Any

import pytest

from app.auth.verify import auth_dependency
from app.db.helpers import DatabaseError
from app.models.domain.followup_domain import (
    CandidateItem,
    Integration,
    NewReminder,
    Reminder,
    check_reminder_changes,
)
from app.services.credential_service import CredentialExpiredError
from app.services.sources.base import SourceError

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


class FakeReminderStore:
    """In-memory reminder store with the same dedup and update rules as Postgres."""

    def __init__(self):
        self.reminders: dict[str, Reminder] = {}
        self.fail_on_create: set[str] = set()
        self.create_calls = 0

    def add(self, **fields: Any) -> Reminder:
        values = {
            "id": str(uuid.uuid4()),
            "user_id": "user-123",
            "title": "Reminder",
            "due_at": NOW,
            "created_at": NOW,
            "updated_at": NOW,
        }
        values.update(fields)
        reminder = Reminder(**values)
        self.reminders[reminder.id] = reminder
        return reminder

    async def find_pending_by_source(self, user_id: str, source_id: str) -> Reminder | None:
        for reminder in self.reminders.values():
            if (
                reminder.user_id == user_id
                and reminder.source_id == source_id
                and reminder.status == "pending"
            ):
                return reminder
        return None

    async def create(self, new_reminder: NewReminder) -> Reminder | None:
        self.create_calls += 1
        if new_reminder.source_id in self.fail_on_create:
            raise DatabaseError("insert failed", operation="create")
        if new_reminder.source_id and await self.find_pending_by_source(
            new_reminder.user_id, new_reminder.source_id
        ):
            return None
        return self.add(**new_reminder.model_dump())

    async def get(self, reminder_id: str, user_id: str) -> Reminder | None:
        reminder = self.reminders.get(reminder_id)
        if reminder is None or reminder.user_id != user_id:
            return None
        return reminder

    async def list_for_user(self, user_id, status=None, reminder_type=None) -> list[Reminder]:
        reminders = [
            r
            for r in self.reminders.values()
            if r.user_id == user_id
            and (status is None or r.status == status)
            and (reminder_type is None or r.type == reminder_type)
        ]
        return sorted(reminders, key=lambda r: r.due_at)

    async def update(self, reminder_id: str, user_id: str, changes: dict[str, Any]):
        current = await self.get(reminder_id, user_id)
        if current is None:
            return None
        check_reminder_changes(current, changes)
        updated = current.model_copy(update=changes)
        self.reminders[reminder_id] = updated
        return updated

    async def delete(self, reminder_id: str, user_id: str) -> bool:
        if await self.get(reminder_id, user_id) is None:
            return False
        del self.reminders[reminder_id]
        return True

    async def due_for_follow_up(self, now: datetime, limit: int = 100) -> list[Reminder]:
        due = [r for r in self.reminders.values() if r.is_due_for_follow_up(now)]
        return sorted(due, key=lambda r: r.next_follow_up_at)[:limit]


class FakeIntegrationStore:
    def __init__(self):
        self.integrations: dict[tuple[str, str], Integration] = {}

    def add(self, user_id: str, integration_type: str, enabled: bool = True) -> Integration:
        integration = Integration(
            id=str(uuid.uuid4()),
            user_id=user_id,
            type=integration_type,
            enabled=enabled,
            created_at=NOW,
            updated_at=NOW,
        )
        self.integrations[(user_id, integration_type)] = integration
        return integration

    async def get(self, user_id, integration_type):
        return self.integrations.get((user_id, integration_type))

    async def list_for_user(self, user_id):
        return [i for (uid, _), i in self.integrations.items() if uid == user_id]

    async def upsert(self, user_id, integration_type, enabled=True, config=None):
        existing = self.integrations.get((user_id, integration_type))
        if existing is None:
            existing = self.add(user_id, integration_type, enabled)
        updated = existing.model_copy(update={"enabled": enabled, "config": config or {}})
        self.integrations[(user_id, integration_type)] = updated
        return updated

    async def list_enabled(self, integration_type):
        return [
            i for (_, t), i in self.integrations.items() if t == integration_type and i.enabled
        ]

    async def touch_last_sync(self, user_id, integration_type, synced_at):
        existing = self.integrations.get((user_id, integration_type))
        if existing is None:
            return
        self.integrations[(user_id, integration_type)] = existing.model_copy(
            update={"last_sync_at": synced_at}
        )


class FakeCredentialProvider:
    def __init__(self, token: str | None = "token-abc", expired: bool = False):
        self.token = token
        self.expired = expired

    async def get_access_token(self, user_id: str, provider: str) -> str | None:
        if self.expired:
            raise CredentialExpiredError("Token expired", user_id=user_id)
        return self.token


class FakeAdapter:
    source = "gmail"
    provider = "google"

    def __init__(self, candidates: list[CandidateItem] | None = None, error: Exception | None = None):
        self.candidates = candidates or []
        self.error = error
        self.calls = 0

    async def fetch_candidates(self, access_token: str, limit: int) -> list[CandidateItem]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.candidates)


def make_candidate(**fields: Any) -> CandidateItem:
    values = {
        "source_id": "thread-1",
        "kind": "email_followup",
        "role": "owner_sent",
        "title": "Proposal",
        "snippet": "Any thoughts?",
        "reference_time": NOW,
        "source_url": "https://mail.google.com/mail/u/0/#inbox/thread-1",
        "description": "Any thoughts?",
    }
    values.update(fields)
    return CandidateItem(**values)


@pytest.fixture
def reminder_store():
    return FakeReminderStore()


@pytest.fixture
def integration_store():
    return FakeIntegrationStore()


@pytest.fixture
def source_unavailable():
    return SourceError("gmail API error (HTTP 503)", status_code=503)


@pytest.fixture
def candidate():
    return make_candidate


@pytest.fixture
def credential_provider():
    return FakeCredentialProvider()


@pytest.fixture
def fake_adapter():
    return FakeAdapter
