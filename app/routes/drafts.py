"""
Draft API Routes
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from app.auth.verify import current_user_id
from app.models.api.reminder_request import DraftRequest
from app.models.api.reminder_response import DraftBody, DraftResponse
from app.routes.deps import get_draft_service
from app.services.draft_service import DraftService, FollowUpContext

router = APIRouter(prefix="/email", tags=["email"])


@router.post("/draft", response_model=DraftResponse)
async def create_draft(
    request: DraftRequest,
    user_id: str = Depends(current_user_id),
    service: DraftService = Depends(get_draft_service),
):
    """Draft a follow-up email; falls back to a template when the model is unavailable."""
    draft = await service.generate_draft(
        FollowUpContext(
            subject=request.subject,
            snippet=request.snippet,
            days_since_last_email=request.days_since_last_email,
            recipient_name=request.recipient_name,
            previous_attempts=request.previous_attempts,
        )
    )
    return DraftResponse(draft=DraftBody(**draft.to_dict()), generated_at=datetime.now(UTC))
