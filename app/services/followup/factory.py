"""
Wiring for the follow-up services.

Routes and jobs get their orchestrators here so collaborators are passed
in explicitly rather than reached through module globals.
"""

from app.models.domain.followup_domain import IntegrationType
from app.repositories.integration_repository import integration_repository
from app.repositories.reminder_repository import reminder_repository
from app.services.credential_service import credential_provider
from app.services.followup.classifier import FollowUpPolicy
from app.services.followup.escalation import EscalationService
from app.services.followup.sync_service import SyncOrchestrator
from app.services.sources import MailboxAdapter, SourceAdapter, TrackerAdapter

ADAPTERS: dict[str, type[SourceAdapter]] = {
    "gmail": MailboxAdapter,
    "github": TrackerAdapter,
}


def build_sync_orchestrator(source: IntegrationType) -> SyncOrchestrator:
    if source not in ADAPTERS:
        raise ValueError(f"Unknown source '{source}'")

    return SyncOrchestrator(
        adapter=ADAPTERS[source](),
        credential_provider=credential_provider,
        reminder_store=reminder_repository,
        integration_store=integration_repository,
        policy=FollowUpPolicy.from_settings(),
    )


def build_escalation_service() -> EscalationService:
    return EscalationService(reminder_repository)
