"""
Store interfaces the follow-up services depend on.

The Postgres repositories implement these; tests inject in-memory fakes.
"""

from datetime import datetime
from typing import Any, Protocol

from app.db.helpers import DatabaseError
from app.models.domain.followup_domain import (
    Integration,
    IntegrationType,
    NewReminder,
    Reminder,
    ReminderStatus,
    ReminderType,
)


class ReminderStoreError(DatabaseError):
    """Raised when a stored record fails validation or a write is rejected."""


class ReminderStore(Protocol):
    async def find_pending_by_source(self, user_id: str, source_id: str) -> Reminder | None: ...

    async def create(self, new_reminder: NewReminder) -> Reminder | None: ...

    async def get(self, reminder_id: str, user_id: str) -> Reminder | None: ...

    async def list_for_user(
        self,
        user_id: str,
        status: ReminderStatus | None = None,
        reminder_type: ReminderType | None = None,
    ) -> list[Reminder]: ...

    async def update(
        self, reminder_id: str, user_id: str, changes: dict[str, Any]
    ) -> Reminder | None: ...

    async def delete(self, reminder_id: str, user_id: str) -> bool: ...

    async def due_for_follow_up(self, now: datetime, limit: int = 100) -> list[Reminder]: ...


class IntegrationStore(Protocol):
    async def get(self, user_id: str, integration_type: IntegrationType) -> Integration | None: ...

    async def list_for_user(self, user_id: str) -> list[Integration]: ...

    async def upsert(
        self,
        user_id: str,
        integration_type: IntegrationType,
        enabled: bool = True,
        config: dict[str, Any] | None = None,
    ) -> Integration: ...

    async def list_enabled(self, integration_type: IntegrationType) -> list[Integration]: ...

    async def touch_last_sync(
        self, user_id: str, integration_type: IntegrationType, synced_at: datetime
    ) -> None: ...
