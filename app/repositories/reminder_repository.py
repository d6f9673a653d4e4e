"""
Postgres repository for reminders.

Every read and write is scoped by user_id; a reminder belonging to another
user behaves exactly like a missing one.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from app.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from app.infrastructure.observability.logging import get_logger
from app.models.domain.followup_domain import (
    NewReminder,
    Reminder,
    ReminderStatus,
    ReminderType,
    check_reminder_changes,
)
from app.repositories.base import ReminderStoreError

logger = get_logger(__name__)


def _valid_id(reminder_id: str) -> bool:
    try:
        uuid.UUID(str(reminder_id))
    except ValueError:
        return False
    return True


class ReminderRepository:
    """Persistence helpers for the reminders table."""

    SELECT_COLUMNS = """
        id, user_id, type, title, description, source_id, source_url, source_reference_at,
        due_at, priority, status, auto_follow_up, follow_up_days,
        next_follow_up_at, follow_up_attempts, created_at, updated_at
    """

    @classmethod
    def _row_to_reminder(cls, row: dict | None) -> Reminder | None:
        if not row:
            return None

        try:
            return Reminder.model_validate({**row, "id": str(row["id"])})
        except ValidationError as e:
            logger.error("Stored reminder failed validation", reminder_id=str(row.get("id")), error=str(e))
            raise ReminderStoreError(
                f"Invalid reminder row: {e}", operation="row_to_reminder", recoverable=False
            ) from e

    @with_db_retry(max_retries=2)
    async def find_pending_by_source(self, user_id: str, source_id: str) -> Reminder | None:
        """Return the pending reminder for (user_id, source_id), if any."""
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM reminders
            WHERE user_id = %s AND source_id = %s AND status = 'pending'
            LIMIT 1
        """
        row = await fetch_one(query, (user_id, source_id))
        return self._row_to_reminder(row)

    @with_db_retry(max_retries=2)
    async def create(self, new_reminder: NewReminder) -> Reminder | None:
        """
        Insert a pending reminder.

        Returns None when a pending reminder already exists for the same
        (user_id, source_id); the partial unique index makes this atomic.
        """
        query = f"""
            INSERT INTO reminders (
                user_id, type, title, description, source_id, source_url, source_reference_at,
                due_at, priority, status
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, 'pending')
            ON CONFLICT (user_id, source_id)
                WHERE status = 'pending' AND source_id IS NOT NULL
                DO NOTHING
            RETURNING {self.SELECT_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                new_reminder.user_id,
                new_reminder.type,
                new_reminder.title,
                new_reminder.description,
                new_reminder.source_id,
                new_reminder.source_url,
                new_reminder.source_reference_at,
                new_reminder.due_at,
                new_reminder.priority,
            ),
        )

        if row is None:
            logger.debug(
                "Pending reminder already exists",
                user_id=new_reminder.user_id,
                source_id=new_reminder.source_id,
            )
            return None

        reminder = self._row_to_reminder(row)
        logger.info(
            "Reminder created",
            user_id=reminder.user_id,
            reminder_id=reminder.id,
            type=reminder.type,
            source_id=reminder.source_id,
        )
        return reminder

    @with_db_retry(max_retries=2)
    async def get(self, reminder_id: str, user_id: str) -> Reminder | None:
        if not _valid_id(reminder_id):
            return None

        query = f"SELECT {self.SELECT_COLUMNS} FROM reminders WHERE id = %s AND user_id = %s"
        row = await fetch_one(query, (reminder_id, user_id))
        return self._row_to_reminder(row)

    @with_db_retry(max_retries=2)
    async def list_for_user(
        self,
        user_id: str,
        status: ReminderStatus | None = None,
        reminder_type: ReminderType | None = None,
    ) -> list[Reminder]:
        conditions = ["user_id = %s"]
        params: list[Any] = [user_id]

        if status:
            conditions.append("status = %s")
            params.append(status)
        if reminder_type:
            conditions.append("type = %s")
            params.append(reminder_type)

        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM reminders
            WHERE {" AND ".join(conditions)}
            ORDER BY due_at ASC
        """
        rows = await fetch_all(query, tuple(params))
        return [self._row_to_reminder(row) for row in rows]

    async def update(
        self, reminder_id: str, user_id: str, changes: dict[str, Any]
    ) -> Reminder | None:
        """
        Apply `changes` to a reminder owned by `user_id` and refresh updated_at.

        Raises:
            InvalidStatusTransition: on completed -> pending
            ValueError: on fields that are not updatable
        """
        current = await self.get(reminder_id, user_id)
        if current is None:
            return None

        check_reminder_changes(current, changes)
        if not changes:
            return current

        # Column names come from the REMINDER_UPDATABLE_FIELDS whitelist
        assignments = ", ".join(f"{column} = %s" for column in changes)
        query = f"""
            UPDATE reminders
            SET {assignments}, updated_at = NOW()
            WHERE id = %s AND user_id = %s
            RETURNING {self.SELECT_COLUMNS}
        """
        row = await fetch_one(query, (*changes.values(), reminder_id, user_id))

        logger.info(
            "Reminder updated",
            user_id=user_id,
            reminder_id=reminder_id,
            fields=sorted(changes),
        )
        return self._row_to_reminder(row)

    @with_db_retry(max_retries=2)
    async def delete(self, reminder_id: str, user_id: str) -> bool:
        if not _valid_id(reminder_id):
            return False

        affected = await execute_query(
            "DELETE FROM reminders WHERE id = %s AND user_id = %s", (reminder_id, user_id)
        )
        if affected:
            logger.info("Reminder deleted", user_id=user_id, reminder_id=reminder_id)
        return affected > 0

    @with_db_retry(max_retries=2)
    async def due_for_follow_up(self, now: datetime, limit: int = 100) -> list[Reminder]:
        query = f"""
            SELECT {self.SELECT_COLUMNS}
            FROM reminders
            WHERE auto_follow_up = TRUE
              AND status = 'pending'
              AND next_follow_up_at IS NOT NULL
              AND next_follow_up_at <= %s
            ORDER BY next_follow_up_at ASC
            LIMIT %s
        """
        rows = await fetch_all(query, (now, limit))
        return [self._row_to_reminder(row) for row in rows]


reminder_repository = ReminderRepository()
