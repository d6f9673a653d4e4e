"""
Auto follow-up job.
Drafts a follow-up for every reminder whose next nudge is due, then
advances its escalation schedule.
"""

import asyncio
from datetime import UTC, datetime

from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.domain.followup_domain import Reminder
from app.services.draft_service import DraftService, FollowUpContext
from app.services.followup.escalation import EscalationError, EscalationService

logger = get_logger(__name__)

JOB_INTERVAL_MINUTES = 60
BATCH_SIZE = 100

_TITLE_PREFIX = "Follow up: "


class AutoFollowUpMetrics:
    """Metrics for one job run."""

    def __init__(self):
        self.start_time = datetime.now(UTC)
        self.reminders_processed = 0
        self.drafts_generated = 0
        self.failures = 0
        self.total_duration_seconds = 0.0

    def finalize(self) -> None:
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": "auto_follow_up",
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "reminders_processed": self.reminders_processed,
            "drafts_generated": self.drafts_generated,
            "failures": self.failures,
        }


def build_context(reminder: Reminder, now: datetime) -> FollowUpContext:
    """Draft context for a due reminder."""
    subject = reminder.title.removeprefix(_TITLE_PREFIX) or reminder.title
    sent_at = reminder.source_reference_at or reminder.created_at
    return FollowUpContext(
        subject=subject,
        snippet=reminder.description or "",
        days_since_last_email=max(1, (now - sent_at).days),
        previous_attempts=reminder.follow_up_attempts,
    )


class AutoFollowUpJob:
    """Fires due automatic follow-ups."""

    def __init__(self, escalation_service: EscalationService, draft_service: DraftService):
        self.escalation_service = escalation_service
        self.draft_service = draft_service

    async def run_once(self, now: datetime | None = None) -> dict:
        now = now or datetime.now(UTC)
        metrics = AutoFollowUpMetrics()

        due = await self.escalation_service.due_for_follow_up(now, limit=BATCH_SIZE)
        logger.info("Starting auto follow-up job", due_count=len(due))

        for reminder in due:
            metrics.reminders_processed += 1
            try:
                await self._fire(reminder, now)
                metrics.drafts_generated += 1
            except (EscalationError, DatabaseError) as e:
                metrics.failures += 1
                logger.warning(
                    "Auto follow-up failed",
                    user_id=reminder.user_id,
                    reminder_id=reminder.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        metrics.finalize()
        logger.info("Auto follow-up job completed", **metrics.to_dict())
        return metrics.to_dict()

    async def _fire(self, reminder: Reminder, now: datetime) -> None:
        draft = await self.draft_service.generate_draft(build_context(reminder, now))
        await self.escalation_service.record_firing(reminder, now)
        logger.info(
            "Follow-up drafted",
            user_id=reminder.user_id,
            reminder_id=reminder.id,
            attempt=reminder.follow_up_attempts + 1,
            tone=draft.tone,
            draft_subject=draft.subject,
        )


async def start_auto_follow_up_scheduler() -> None:
    """Worker entry point: fire due follow-ups, then sleep until the next run."""
    from app.db.pool import db_pool
    from app.services.draft_service import draft_service
    from app.services.followup.factory import build_escalation_service

    await db_pool.initialize()
    job = AutoFollowUpJob(build_escalation_service(), draft_service)
    try:
        while True:
            try:
                await job.run_once()
            except DatabaseError as e:
                logger.error("Auto follow-up job failed", error=str(e))
            await asyncio.sleep(JOB_INTERVAL_MINUTES * 60)
    finally:
        await db_pool.close()
