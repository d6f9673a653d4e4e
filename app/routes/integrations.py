"""
Integration API Routes
Connect, configure and manually sync a user's external sources.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.verify import current_user_id
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.api.reminder_request import UpsertIntegrationRequest
from app.models.api.reminder_response import (
    IntegrationResponse,
    IntegrationsListResponse,
    SyncResponse,
)
from app.models.domain.followup_domain import IntegrationType
from app.repositories.base import IntegrationStore
from app.routes.deps import OrchestratorFactory, get_integration_store, get_orchestrator_factory

logger = get_logger(__name__)

router = APIRouter(tags=["integrations"])


@router.get("/integrations", response_model=IntegrationsListResponse)
async def list_integrations(
    user_id: str = Depends(current_user_id),
    store: IntegrationStore = Depends(get_integration_store),
):
    try:
        integrations = await store.list_for_user(user_id)
    except DatabaseError as e:
        logger.error("Error listing integrations", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list integrations",
        ) from e

    return IntegrationsListResponse(
        integrations=[IntegrationResponse.from_domain(i) for i in integrations]
    )


@router.post("/integrations", response_model=IntegrationResponse)
async def upsert_integration(
    request: UpsertIntegrationRequest,
    user_id: str = Depends(current_user_id),
    store: IntegrationStore = Depends(get_integration_store),
):
    """Create the integration, or update it if one of this type already exists."""
    try:
        integration = await store.upsert(
            user_id, request.type, enabled=request.enabled, config=request.config
        )
    except DatabaseError as e:
        logger.error(
            "Error saving integration", user_id=user_id, type=request.type, error=str(e)
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save integration",
        ) from e

    return IntegrationResponse.from_domain(integration)


@router.post("/sync/{source}", response_model=SyncResponse)
async def sync_source(
    source: IntegrationType,
    user_id: str = Depends(current_user_id),
    build_orchestrator: OrchestratorFactory = Depends(get_orchestrator_factory),
):
    """Run one follow-up sync pass for the caller."""
    result = await build_orchestrator(source).sync(user_id)
    return SyncResponse(
        success=result.success,
        reminders_created=result.created,
        error=result.error,
    )
