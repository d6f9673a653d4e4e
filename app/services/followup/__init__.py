"""
Follow-up detection and escalation.

Exports the classifier, the escalation scheduler and the sync orchestrator.
"""

from .classifier import DEFAULT_POLICY, FollowUpPolicy, assign_priority, classify
from .escalation import (
    EscalationError,
    EscalationService,
    follow_up_interval_days,
    initial_schedule,
    schedule_next,
)
from .sync_service import SyncOrchestrator, build_reminder

__all__ = [
    "DEFAULT_POLICY",
    "EscalationError",
    "EscalationService",
    "FollowUpPolicy",
    "SyncOrchestrator",
    "assign_priority",
    "build_reminder",
    "classify",
    "follow_up_interval_days",
    "initial_schedule",
    "schedule_next",
]
