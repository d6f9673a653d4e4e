"""
Follow-up sync job.
Runs one sync pass for every user with an enabled integration of a source.
Invoked by the cron endpoints or by the worker loop.
"""

import asyncio
import time
from datetime import UTC, datetime

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.followup_domain import IntegrationType, SyncResult
from app.repositories.base import IntegrationStore
from app.services.followup.sync_service import SyncOrchestrator

logger = get_logger(__name__)

JOB_INTERVAL_MINUTES = 60  # cadence when run by the worker loop


class FollowUpSyncMetrics:
    """Metrics for one job run."""

    def __init__(self, source: str):
        self.source = source
        self.start_time = datetime.now(UTC)
        self.users_processed = 0
        self.reminders_created = 0
        self.users_failed = 0
        self.errors: dict[str, int] = {}
        self.total_duration_seconds = 0.0

    def record(self, user_id: str, result: SyncResult, duration_ms: float) -> None:
        self.users_processed += 1
        self.reminders_created += result.created
        if result.error:
            self.users_failed += 1
            self.errors[result.error] = self.errors.get(result.error, 0) + 1

        logger.debug(
            "User sync finished",
            user_id=user_id,
            source=self.source,
            created=result.created,
            error=result.error,
            duration_ms=round(duration_ms, 1),
        )

    def finalize(self) -> None:
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": "followup_sync",
            "source": self.source,
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "users_processed": self.users_processed,
            "reminders_created": self.reminders_created,
            "users_failed": self.users_failed,
            "errors": self.errors,
        }


class FollowUpSyncJob:
    """Syncs every enabled integration of one source with bounded concurrency."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        integration_store: IntegrationStore,
        max_concurrent: int | None = None,
        user_timeout_seconds: float | None = None,
    ):
        self.orchestrator = orchestrator
        self.integration_store = integration_store
        self.max_concurrent = max_concurrent or settings.SYNC_MAX_CONCURRENT_USERS
        self.user_timeout_seconds = user_timeout_seconds or settings.SYNC_USER_TIMEOUT_SECONDS
        self.is_running = False

    @property
    def source(self) -> IntegrationType:
        return self.orchestrator.source

    async def run_once(self) -> dict:
        """Run a single pass over all enabled users and return metrics."""
        if self.is_running:
            logger.warning("Follow-up sync already running, skipping", source=self.source)
            return {"skipped": True, "reason": "already_running"}

        self.is_running = True
        metrics = FollowUpSyncMetrics(self.source)
        try:
            integrations = await self.integration_store.list_enabled(self.source)
            logger.info(
                "Starting follow-up sync job",
                source=self.source,
                user_count=len(integrations),
            )

            semaphore = asyncio.Semaphore(self.max_concurrent)
            await asyncio.gather(
                *(self._sync_user(semaphore, i.user_id, metrics) for i in integrations)
            )

            metrics.finalize()
            logger.info("Follow-up sync job completed", **metrics.to_dict())
            return metrics.to_dict()

        finally:
            self.is_running = False

    async def _sync_user(
        self, semaphore: asyncio.Semaphore, user_id: str, metrics: FollowUpSyncMetrics
    ) -> None:
        async with semaphore:
            start = time.time()
            try:
                result = await asyncio.wait_for(
                    self.orchestrator.sync(user_id), timeout=self.user_timeout_seconds
                )
            except TimeoutError:
                logger.warning(
                    "User sync timed out",
                    user_id=user_id,
                    source=self.source,
                    timeout_seconds=self.user_timeout_seconds,
                )
                result = SyncResult(error="source_unavailable")
            metrics.record(user_id, result, (time.time() - start) * 1000)


async def start_followup_sync_scheduler() -> None:
    """Worker entry point: sync every source, then sleep until the next run."""
    from app.db.pool import db_pool
    from app.repositories.integration_repository import integration_repository
    from app.services.followup.factory import ADAPTERS, build_sync_orchestrator

    await db_pool.initialize()
    try:
        while True:
            for source in ADAPTERS:
                job = FollowUpSyncJob(build_sync_orchestrator(source), integration_repository)
                try:
                    await job.run_once()
                except Exception as e:
                    logger.error("Follow-up sync job failed", source=source, error=str(e))
            await asyncio.sleep(JOB_INTERVAL_MINUTES * 60)
    finally:
        await db_pool.close()
