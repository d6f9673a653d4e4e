"""
Escalation scheduler for automatic follow-ups.

Enabling auto follow-up schedules the first nudge `follow_up_days` out.
Each firing bumps the attempt counter and doubles the interval, capped:

    interval(attempt) = min(follow_up_days * 2 ** (attempt - 1), cap_days)

so a 3 day base yields 3, 6, 12, 14, 14, ... days between nudges. Nothing
here runs on a timer; an external trigger polls `due_for_follow_up`.
"""

from datetime import datetime, timedelta

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.followup_domain import FollowUpSchedule, Reminder
from app.repositories.base import ReminderStore

logger = get_logger(__name__)

DEFAULT_CAP_DAYS = 14


class EscalationError(Exception):
    """Raised when a reminder cannot be scheduled."""

    def __init__(self, message: str, reminder_id: str | None = None):
        super().__init__(message)
        self.reminder_id = reminder_id


def follow_up_interval_days(base_days: int, attempts: int, cap_days: int = DEFAULT_CAP_DAYS) -> int:
    """Days until the next nudge after `attempts` firings (attempts >= 1)."""
    if base_days <= 0:
        raise ValueError("base_days must be positive")
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    return min(base_days * 2 ** (attempts - 1), cap_days)


def initial_schedule(follow_up_days: int, now: datetime) -> FollowUpSchedule:
    """Schedule produced when a user turns auto follow-up on."""
    if follow_up_days <= 0:
        raise ValueError("follow_up_days must be positive")
    return FollowUpSchedule(
        next_follow_up_at=now + timedelta(days=follow_up_days),
        follow_up_attempts=0,
    )


def schedule_next(
    reminder: Reminder, now: datetime, cap_days: int = DEFAULT_CAP_DAYS
) -> FollowUpSchedule:
    """Schedule produced when an automatic follow-up fires for `reminder`."""
    if not reminder.auto_follow_up or not reminder.follow_up_days:
        raise EscalationError("Auto follow-up is not enabled", reminder_id=reminder.id)

    attempts = reminder.follow_up_attempts + 1
    interval = follow_up_interval_days(reminder.follow_up_days, attempts, cap_days)
    return FollowUpSchedule(
        next_follow_up_at=now + timedelta(days=interval),
        follow_up_attempts=attempts,
    )


class EscalationService:
    """Applies scheduler decisions to stored reminders."""

    def __init__(self, reminder_store: ReminderStore, cap_days: int | None = None):
        self.reminder_store = reminder_store
        self.cap_days = cap_days or settings.FOLLOWUP_CAP_DAYS

    async def enable_auto_follow_up(
        self, user_id: str, reminder_id: str, follow_up_days: int, now: datetime
    ) -> Reminder | None:
        """Turn on auto follow-up; resets attempts. Returns None if not found."""
        reminder = await self.reminder_store.get(reminder_id, user_id)
        if reminder is None:
            return None
        if not reminder.is_pending():
            raise EscalationError("Cannot schedule a completed reminder", reminder_id=reminder_id)

        schedule = initial_schedule(follow_up_days, now)
        updated = await self.reminder_store.update(
            reminder_id,
            user_id,
            {
                "auto_follow_up": True,
                "follow_up_days": follow_up_days,
                "next_follow_up_at": schedule.next_follow_up_at,
                "follow_up_attempts": schedule.follow_up_attempts,
            },
        )
        logger.info(
            "Auto follow-up enabled",
            user_id=user_id,
            reminder_id=reminder_id,
            follow_up_days=follow_up_days,
            next_follow_up_at=schedule.next_follow_up_at.isoformat(),
        )
        return updated

    async def disable_auto_follow_up(self, user_id: str, reminder_id: str) -> Reminder | None:
        """Turn off auto follow-up and clear the schedule."""
        updated = await self.reminder_store.update(
            reminder_id,
            user_id,
            {
                "auto_follow_up": False,
                "next_follow_up_at": None,
                "follow_up_attempts": 0,
            },
        )
        if updated is not None:
            logger.info("Auto follow-up disabled", user_id=user_id, reminder_id=reminder_id)
        return updated

    async def record_firing(self, reminder: Reminder, now: datetime) -> Reminder | None:
        """Advance the schedule after a follow-up was drafted or sent."""
        schedule = schedule_next(reminder, now, self.cap_days)
        updated = await self.reminder_store.update(
            reminder.id,
            reminder.user_id,
            {
                "next_follow_up_at": schedule.next_follow_up_at,
                "follow_up_attempts": schedule.follow_up_attempts,
            },
        )
        logger.info(
            "Follow-up escalated",
            user_id=reminder.user_id,
            reminder_id=reminder.id,
            attempts=schedule.follow_up_attempts,
            next_follow_up_at=schedule.next_follow_up_at.isoformat(),
        )
        return updated

    async def due_for_follow_up(self, now: datetime, limit: int = 100) -> list[Reminder]:
        """Pending auto follow-up reminders whose next nudge time has passed."""
        return await self.reminder_store.due_for_follow_up(now, limit=limit)
