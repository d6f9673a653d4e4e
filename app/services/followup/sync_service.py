"""
Follow-up sync orchestrator.

One pass for one user and one source:

    credential -> fetch candidates -> classify -> dedup -> create -> touch last_sync_at

The pass never raises. Expected conditions (integration not connected,
expired credential, source outage) come back as a SyncResult error kind;
per-item failures are logged and counted without stopping the pass.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from app.config import settings
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger, log_sync_result
from app.models.domain.followup_domain import (
    CandidateItem,
    NewReminder,
    SyncResult,
)
from app.repositories.base import IntegrationStore, ReminderStore
from app.services.credential_service import (
    CredentialError,
    CredentialExpiredError,
    CredentialProvider,
)
from app.services.followup.classifier import DEFAULT_POLICY, FollowUpPolicy, classify, item_age
from app.services.sources.base import SourceAdapter, SourceError

logger = get_logger(__name__)

TITLE_PREFIXES = {
    "owner_sent": "Follow up",
    "review_requested": "Review PR",
    "authored": "Stale PR",
    "assigned": "Stale Issue",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_reminder(user_id: str, item: CandidateItem, now: datetime) -> NewReminder:
    """Map a classified candidate to the reminder the user will see."""
    prefix = TITLE_PREFIXES.get(item.role)
    title = f"{prefix}: {item.title}" if prefix else item.title

    description = item.description
    if item.kind == "issue_stale" and description:
        age = item_age(item, now)
        if age is not None:
            description = f"{description} for {age.days} days"

    return NewReminder(
        user_id=user_id,
        type=item.kind,
        title=title,
        description=description or None,
        source_id=item.source_id,
        source_url=item.source_url or None,
        source_reference_at=item.reference_time,
        due_at=now,
        priority=item.suggested_priority or "medium",
    )


class SyncOrchestrator:
    """Runs follow-up sync passes for a single source system."""

    def __init__(
        self,
        adapter: SourceAdapter,
        credential_provider: CredentialProvider,
        reminder_store: ReminderStore,
        integration_store: IntegrationStore,
        *,
        policy: FollowUpPolicy = DEFAULT_POLICY,
        page_size: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.adapter = adapter
        self.credential_provider = credential_provider
        self.reminder_store = reminder_store
        self.integration_store = integration_store
        self.policy = policy
        self.page_size = page_size or settings.sync_page_size()
        self.clock = clock

    @property
    def source(self) -> str:
        return self.adapter.source

    async def sync(self, user_id: str) -> SyncResult:
        """Run one pass; returns counts and, on a pass-level failure, an error kind."""
        logger.info("Starting sync pass", user_id=user_id, source=self.source)

        try:
            result = await self._run(user_id)
        except Exception as e:
            logger.exception(
                "Sync pass failed unexpectedly",
                user_id=user_id,
                source=self.source,
                error_type=type(e).__name__,
            )
            result = SyncResult(error="sync_failed")

        log_sync_result(
            user_id, self.source, result.created, result.skipped, result.failed, result.error
        )
        return result

    async def _run(self, user_id: str) -> SyncResult:
        try:
            access_token = await self.credential_provider.get_access_token(
                user_id, self.adapter.provider
            )
        except CredentialExpiredError:
            return SyncResult(error="credential_expired")
        except CredentialError as e:
            logger.warning("Credential lookup failed", user_id=user_id, error=str(e))
            return SyncResult(error="sync_failed")

        if not access_token:
            return SyncResult(error="no_credential")

        try:
            candidates = await self.adapter.fetch_candidates(access_token, self.page_size)
        except SourceError as e:
            if e.auth_failed:
                return SyncResult(error="credential_expired")
            return SyncResult(error="source_unavailable")

        now = self.clock()
        classified = classify(candidates, now, self.policy)
        result = SyncResult()

        for item in classified:
            await self._persist_candidate(user_id, item, now, result)

        try:
            await self.integration_store.touch_last_sync(user_id, self.source, now)
        except DatabaseError as e:
            logger.warning("Failed to record last sync time", user_id=user_id, error=str(e))

        logger.debug(
            "Candidates classified",
            user_id=user_id,
            source=self.source,
            fetched=len(candidates),
            classified=len(classified),
        )
        return result

    async def _persist_candidate(
        self, user_id: str, item: CandidateItem, now: datetime, result: SyncResult
    ) -> None:
        """Create a reminder for `item` unless a pending one already exists."""
        try:
            existing = await self.reminder_store.find_pending_by_source(user_id, item.source_id)
            if existing is not None:
                result.skipped += 1
                return

            created = await self.reminder_store.create(build_reminder(user_id, item, now))
            if created is None:
                # Lost a race with a concurrent pass
                result.skipped += 1
            else:
                result.created += 1

        except DatabaseError as e:
            result.failed += 1
            logger.warning(
                "Failed to persist reminder",
                user_id=user_id,
                source_id=item.source_id,
                error=str(e),
            )
        except ValueError as e:
            result.failed += 1
            logger.warning(
                "Skipping malformed candidate",
                user_id=user_id,
                source_id=item.source_id,
                error=str(e),
            )
        except Exception as e:
            result.failed += 1
            logger.exception(
                "Unexpected error persisting reminder",
                user_id=user_id,
                source_id=item.source_id,
                error_type=type(e).__name__,
            )
