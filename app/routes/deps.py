"""
Route dependencies.
Each collaborator is resolved through a function so tests can swap it
with `app.dependency_overrides`.
"""

from collections.abc import Callable

from app.repositories.base import IntegrationStore, ReminderStore
from app.repositories.integration_repository import integration_repository
from app.repositories.reminder_repository import reminder_repository
from app.services.draft_service import DraftService, draft_service
from app.services.followup.escalation import EscalationService
from app.services.followup.factory import build_escalation_service, build_sync_orchestrator
from app.services.followup.sync_service import SyncOrchestrator

OrchestratorFactory = Callable[[str], SyncOrchestrator]


def get_reminder_store() -> ReminderStore:
    return reminder_repository


def get_integration_store() -> IntegrationStore:
    return integration_repository


def get_escalation_service() -> EscalationService:
    return build_escalation_service()


def get_draft_service() -> DraftService:
    return draft_service


def get_orchestrator_factory() -> OrchestratorFactory:
    return build_sync_orchestrator
