"""
Reminder API Routes
CRUD for a user's reminders plus auto follow-up configuration.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.auth.verify import current_user_id
from app.db.helpers import DatabaseError
from app.infrastructure.observability.logging import get_logger
from app.models.api.reminder_request import (
    AutoFollowUpRequest,
    CreateReminderRequest,
    UpdateReminderRequest,
)
from app.models.api.reminder_response import (
    DeleteReminderResponse,
    ReminderResponse,
    RemindersListResponse,
)
from app.models.domain.followup_domain import (
    InvalidStatusTransition,
    NewReminder,
    ReminderStatus,
    ReminderType,
)
from app.repositories.base import ReminderStore
from app.routes.deps import get_escalation_service, get_reminder_store
from app.services.followup.escalation import EscalationError, EscalationService

logger = get_logger(__name__)

router = APIRouter(prefix="/reminders", tags=["reminders"])


def _not_found(reminder_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND, detail=f"Reminder {reminder_id} not found"
    )


def _server_error(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


@router.get("", response_model=RemindersListResponse)
async def list_reminders(
    user_id: str = Depends(current_user_id),
    store: ReminderStore = Depends(get_reminder_store),
    status_filter: ReminderStatus | None = Query(default=None, alias="status"),
    type_filter: ReminderType | None = Query(default=None, alias="type"),
):
    """List reminders, earliest due first."""
    try:
        reminders = await store.list_for_user(
            user_id, status=status_filter, reminder_type=type_filter
        )
    except DatabaseError as e:
        logger.error("Error listing reminders", user_id=user_id, error=str(e))
        raise _server_error("Failed to list reminders") from e

    return RemindersListResponse(
        reminders=[ReminderResponse.from_domain(r) for r in reminders],
        total=len(reminders),
    )


@router.post("", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    request: CreateReminderRequest,
    user_id: str = Depends(current_user_id),
    store: ReminderStore = Depends(get_reminder_store),
):
    """Create a custom reminder."""
    new_reminder = NewReminder(
        user_id=user_id,
        type="custom",
        title=request.title,
        description=request.description,
        source_url=request.source_url,
        due_at=request.due_at,
        priority=request.priority,
    )
    try:
        reminder = await store.create(new_reminder)
    except DatabaseError as e:
        logger.error("Error creating reminder", user_id=user_id, error=str(e))
        raise _server_error("Failed to create reminder") from e

    if reminder is None:
        raise _server_error("Failed to create reminder")

    logger.info("Custom reminder created", user_id=user_id, reminder_id=reminder.id)
    return ReminderResponse.from_domain(reminder)


@router.get("/{reminder_id}", response_model=ReminderResponse)
async def get_reminder(
    reminder_id: str,
    user_id: str = Depends(current_user_id),
    store: ReminderStore = Depends(get_reminder_store),
):
    try:
        reminder = await store.get(reminder_id, user_id)
    except DatabaseError as e:
        logger.error("Error loading reminder", user_id=user_id, reminder_id=reminder_id, error=str(e))
        raise _server_error("Failed to load reminder") from e

    if reminder is None:
        raise _not_found(reminder_id)
    return ReminderResponse.from_domain(reminder)


@router.patch("/{reminder_id}", response_model=ReminderResponse)
async def update_reminder(
    reminder_id: str,
    request: UpdateReminderRequest,
    user_id: str = Depends(current_user_id),
    store: ReminderStore = Depends(get_reminder_store),
):
    """Update status, priority or details of a reminder."""
    changes = request.changes()
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes supplied")

    try:
        reminder = await store.update(reminder_id, user_id, changes)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except DatabaseError as e:
        logger.error("Error updating reminder", user_id=user_id, reminder_id=reminder_id, error=str(e))
        raise _server_error("Failed to update reminder") from e

    if reminder is None:
        raise _not_found(reminder_id)
    return ReminderResponse.from_domain(reminder)


@router.delete("/{reminder_id}", response_model=DeleteReminderResponse)
async def delete_reminder(
    reminder_id: str,
    user_id: str = Depends(current_user_id),
    store: ReminderStore = Depends(get_reminder_store),
):
    try:
        deleted = await store.delete(reminder_id, user_id)
    except DatabaseError as e:
        logger.error("Error deleting reminder", user_id=user_id, reminder_id=reminder_id, error=str(e))
        raise _server_error("Failed to delete reminder") from e

    if not deleted:
        raise _not_found(reminder_id)

    logger.info("Reminder deleted", user_id=user_id, reminder_id=reminder_id)
    return DeleteReminderResponse(reminder_id=reminder_id)


@router.post("/{reminder_id}/auto-follow-up", response_model=ReminderResponse)
async def configure_auto_follow_up(
    reminder_id: str,
    request: AutoFollowUpRequest,
    user_id: str = Depends(current_user_id),
    escalation: EscalationService = Depends(get_escalation_service),
):
    """Enable (schedules the first nudge) or disable (clears the schedule) auto follow-up."""
    try:
        if request.enabled:
            reminder = await escalation.enable_auto_follow_up(
                user_id, reminder_id, request.follow_up_days, datetime.now(UTC)
            )
        else:
            reminder = await escalation.disable_auto_follow_up(user_id, reminder_id)
    except EscalationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except DatabaseError as e:
        logger.error(
            "Error configuring auto follow-up",
            user_id=user_id,
            reminder_id=reminder_id,
            error=str(e),
        )
        raise _server_error("Failed to configure auto follow-up") from e

    if reminder is None:
        raise _not_found(reminder_id)
    return ReminderResponse.from_domain(reminder)
