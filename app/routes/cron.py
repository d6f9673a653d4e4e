"""
Cron API Routes
Periodic triggers for the sync and auto follow-up jobs. Guarded by the
shared CRON_SECRET rather than a user token.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.verify import cron_dependency
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.jobs.auto_followup_job import AutoFollowUpJob
from app.jobs.followup_sync_job import FollowUpSyncJob
from app.repositories.base import IntegrationStore
from app.routes.deps import (
    OrchestratorFactory,
    get_draft_service,
    get_escalation_service,
    get_integration_store,
    get_orchestrator_factory,
)
from app.services.draft_service import DraftService
from app.services.followup.escalation import EscalationService

logger = get_logger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(cron_dependency)])


async def _run_sync_job(
    source: str, build_orchestrator: OrchestratorFactory, store: IntegrationStore
) -> dict:
    job = FollowUpSyncJob(build_orchestrator(source), store)
    try:
        return await job.run_once()
    except DatabaseError as e:
        logger.error("Cron sync failed", source=source, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Sync job failed"
        ) from e


@router.get("/email-check")
async def email_check(
    build_orchestrator: OrchestratorFactory = Depends(get_orchestrator_factory),
    store: IntegrationStore = Depends(get_integration_store),
):
    return await _run_sync_job("gmail", build_orchestrator, store)


@router.get("/github-check")
async def github_check(
    build_orchestrator: OrchestratorFactory = Depends(get_orchestrator_factory),
    store: IntegrationStore = Depends(get_integration_store),
):
    return await _run_sync_job("github", build_orchestrator, store)


@router.get("/auto-follow-up")
async def auto_follow_up(
    escalation: EscalationService = Depends(get_escalation_service),
    drafts: DraftService = Depends(get_draft_service),
):
    try:
        return await AutoFollowUpJob(escalation, drafts).run_once()
    except DatabaseError as e:
        logger.error("Cron auto follow-up failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Auto follow-up job failed",
        ) from e
