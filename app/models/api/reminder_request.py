# app/models/api/reminder_request.py
"""
Reminder and integration API request models.
Used by routes for input validation.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.models.domain.followup_domain import IntegrationType, Priority, ReminderStatus


class CreateReminderRequest(BaseModel):
    """Request for creating a custom reminder."""

    title: str = Field(..., min_length=1, max_length=300, description="Reminder title")
    due_at: datetime = Field(..., description="When the reminder is due")
    description: str | None = Field(default=None, max_length=2000, description="Details")
    priority: Priority = Field(default="medium", description="low, medium, high or urgent")
    source_url: str | None = Field(default=None, description="Link back to the related item")


class UpdateReminderRequest(BaseModel):
    """Partial reminder update; only supplied fields change."""

    title: str | None = Field(None, min_length=1, max_length=300, description="New title")
    description: str | None = Field(None, max_length=2000, description="New description")
    due_at: datetime | None = Field(None, description="New due time")
    priority: Priority | None = Field(None, description="New priority")
    status: ReminderStatus | None = Field(None, description="pending or completed")

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class AutoFollowUpRequest(BaseModel):
    """Request for turning automatic follow-up on or off."""

    enabled: bool = Field(..., description="Whether automatic follow-up is on")
    follow_up_days: int = Field(
        default=3, ge=1, le=14, description="Days until the first follow-up (1-14)"
    )


class UpsertIntegrationRequest(BaseModel):
    """Request for connecting or updating an integration."""

    type: IntegrationType = Field(..., description="gmail or github")
    enabled: bool = Field(default=True, description="Whether the integration syncs")
    config: dict[str, Any] = Field(default_factory=dict, description="Source-specific settings")


class DraftRequest(BaseModel):
    """Request for drafting a follow-up email."""

    subject: str = Field(..., min_length=1, description="Subject of the original email")
    snippet: str = Field(..., min_length=1, description="Snippet of the original email")
    days_since_last_email: int = Field(default=3, ge=0, description="Days since it was sent")
    recipient_name: str | None = Field(default=None, description="Recipient display name")
    previous_attempts: int = Field(default=0, ge=0, description="Follow-ups already sent")
