# app/models/api/reminder_response.py
"""
Reminder and integration API response models.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.models.domain.followup_domain import (
    Integration,
    IntegrationType,
    Priority,
    Reminder,
    ReminderStatus,
    ReminderType,
    SyncErrorKind,
)


class ReminderResponse(BaseModel):
    """Reminder as shown on the dashboard."""

    id: str
    type: ReminderType
    title: str
    description: str | None = None
    due_at: datetime
    priority: Priority
    status: ReminderStatus
    source_url: str | None = None
    created_at: datetime
    auto_follow_up: bool = False
    follow_up_days: int | None = None
    next_follow_up_at: datetime | None = None
    follow_up_attempts: int = 0

    @classmethod
    def from_domain(cls, reminder: Reminder) -> "ReminderResponse":
        return cls.model_validate(reminder.model_dump())


class RemindersListResponse(BaseModel):
    reminders: list[ReminderResponse]
    total: int


class DeleteReminderResponse(BaseModel):
    success: bool = True
    reminder_id: str


class IntegrationResponse(BaseModel):
    id: str
    type: IntegrationType
    enabled: bool
    config: dict[str, Any] = Field(default_factory=dict)
    last_sync_at: datetime | None = None

    @classmethod
    def from_domain(cls, integration: Integration) -> "IntegrationResponse":
        return cls.model_validate(integration.model_dump())


class IntegrationsListResponse(BaseModel):
    integrations: list[IntegrationResponse]


class SyncResponse(BaseModel):
    """Outcome of a user-triggered sync."""

    success: bool
    reminders_created: int = Field(..., description="New reminders created by this pass")
    error: SyncErrorKind | None = None


class DraftBody(BaseModel):
    subject: str
    body: str
    tone: str


class DraftResponse(BaseModel):
    draft: DraftBody
    generated_at: datetime
