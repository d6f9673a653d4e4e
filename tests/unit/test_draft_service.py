"""
Tests for follow-up draft generation.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from app.services.draft_service import (
    DraftService,
    FollowUpContext,
    build_prompt,
    determine_tone,
    parse_model_response,
    template_draft,
)


def _context(**overrides):
    values = {"subject": "Proposal", "snippet": "Any thoughts?", "days_since_last_email": 3}
    values.update(overrides)
    return FollowUpContext(**values)


def _client_returning(content):
    completion = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion)
    return client


@pytest.mark.parametrize(
    ("days", "tone"), [(0, "friendly"), (6, "friendly"), (7, "professional"), (14, "urgent")]
)
def test_determine_tone(days, tone):
    assert determine_tone(days) == tone


@pytest.mark.parametrize(("days", "urgency"), [(14, "polite"), (15, "persistent"), (22, "urgent")])
def test_prompt_urgency(days, urgency):
    assert f"Write a {urgency} follow-up" in build_prompt(_context(days_since_last_email=days))


def test_template_steps_by_attempt():
    first = template_draft(_context(previous_attempts=0))
    second = template_draft(_context(previous_attempts=1))
    final = template_draft(_context(previous_attempts=5))

    assert first.subject == "Re: Proposal"
    assert first.body.startswith("I wanted to follow up")
    assert second.body.startswith("I'm following up once more")
    assert final.body.startswith("This is my final follow-up")


def test_template_does_not_double_reply_prefix():
    assert template_draft(_context(subject="RE: re: Proposal")).subject == "Re: Proposal"


def test_parse_structured_response():
    draft = parse_model_response(
        "SUBJECT: re: Checking in\nBODY:\nJust circling back.\n\nThanks!", _context()
    )

    assert draft.subject == "Re: Checking in"
    assert draft.body == "Just circling back.\nThanks!"
    assert draft.generated_by == "model"


def test_parse_unstructured_response_uses_whole_text():
    draft = parse_model_response("Just checking in on this.", _context())

    assert draft.subject == "Re: Proposal"
    assert draft.body == "Just checking in on this."


@pytest.mark.asyncio
async def test_generate_draft_uses_model():
    client = _client_returning("SUBJECT: Quick nudge\nBODY:\nAny update?")
    service = DraftService(client=client, model="test-model")

    draft = await service.generate_draft(_context(days_since_last_email=10))

    assert draft.subject == "Quick nudge"
    assert draft.tone == "professional"
    assert client.chat.completions.create.await_args.kwargs["model"] == "test-model"


@pytest.mark.asyncio
async def test_generate_draft_falls_back_on_api_error():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=openai.OpenAIError("down"))
    service = DraftService(client=client)

    draft = await service.generate_draft(_context(previous_attempts=1))

    assert draft.generated_by == "template"
    assert draft.body.startswith("I'm following up once more")


@pytest.mark.asyncio
async def test_generate_draft_falls_back_on_empty_response():
    service = DraftService(client=_client_returning("   "))

    draft = await service.generate_draft(_context())

    assert draft.generated_by == "template"


@pytest.mark.asyncio
async def test_generate_draft_without_client_uses_template(monkeypatch):
    monkeypatch.setattr("app.services.draft_service.settings.OPENAI_API_KEY", None)
    service = DraftService()

    draft = await service.generate_draft(_context())

    assert draft.generated_by == "template"
