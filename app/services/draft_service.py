# app/services/draft_service.py
"""
Follow-up draft generation.
Asks an OpenAI-compatible chat model for a follow-up email and falls back
to a deterministic template whenever the model is unavailable, so callers
always receive a draft.
"""

import re
from dataclasses import dataclass
from typing import Literal

import openai
from openai import AsyncOpenAI

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

Tone = Literal["friendly", "professional", "urgent"]

SYSTEM_MESSAGE = (
    "You are an expert email assistant that writes professional, concise, and effective "
    "follow-up emails. Your follow-ups are polite but persistent, and you always provide "
    "value in your messages."
)


class DraftGenerationError(Exception):
    """Raised when the model call fails or returns nothing usable."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


@dataclass(slots=True)
class FollowUpContext:
    subject: str
    snippet: str
    days_since_last_email: int
    recipient_name: str | None = None
    previous_attempts: int = 0


@dataclass(slots=True)
class DraftEmail:
    subject: str
    body: str
    tone: Tone
    generated_by: Literal["model", "template"] = "template"

    def to_dict(self) -> dict:
        return {"subject": self.subject, "body": self.body, "tone": self.tone}


def determine_tone(days_since_last_email: int) -> Tone:
    if days_since_last_email < 7:
        return "friendly"
    if days_since_last_email < 14:
        return "professional"
    return "urgent"


def _urgency(days_since_last_email: int) -> str:
    if days_since_last_email > 21:
        return "urgent"
    if days_since_last_email > 14:
        return "persistent"
    return "polite"


def _reply_subject(subject: str) -> str:
    stripped = re.sub(r"^(re:\s*)+", "", subject.strip(), flags=re.IGNORECASE)
    return f"Re: {stripped}"


def build_prompt(context: FollowUpContext) -> str:
    urgency = _urgency(context.days_since_last_email)
    recipient = f"RECIPIENT: {context.recipient_name}\n" if context.recipient_name else ""

    return f"""Write a {urgency} follow-up email for the following context:

ORIGINAL EMAIL SUBJECT: "{context.subject}"
ORIGINAL EMAIL SNIPPET: "{context.snippet}"
{recipient}DAYS SINCE LAST EMAIL: {context.days_since_last_email} days
PREVIOUS FOLLOW-UP ATTEMPTS: {context.previous_attempts}

Requirements:
1. Keep it concise (2-3 short paragraphs max)
2. Reference the previous email naturally
3. Add value or provide a gentle nudge
4. Include a clear call-to-action
5. Maintain a {urgency} but professional tone

Format your response as:
SUBJECT: [new subject line]
BODY:
[email body text]

Do not include greetings or signatures, just the core content."""


def parse_model_response(text: str, context: FollowUpContext) -> DraftEmail:
    """Parse `SUBJECT:` / `BODY:` output; unstructured text becomes the body."""
    subject = ""
    body_lines: list[str] = []
    in_body = False

    for line in text.splitlines():
        if line.startswith("SUBJECT:"):
            subject = line.removeprefix("SUBJECT:").strip()
        elif line.startswith("BODY:"):
            in_body = True
        elif in_body and line.strip():
            body_lines.append(line)

    body = "\n".join(body_lines).strip()
    if not subject or not body:
        subject = _reply_subject(context.subject)
        body = text.strip()

    return DraftEmail(
        subject=re.sub(r"^re:\s*", "Re: ", subject, flags=re.IGNORECASE),
        body=body,
        tone=determine_tone(context.days_since_last_email),
        generated_by="model",
    )


def template_draft(context: FollowUpContext) -> DraftEmail:
    """Deterministic draft keyed on how many follow-ups were already sent."""
    subject = context.subject

    if context.previous_attempts == 0:
        body = (
            f'I wanted to follow up on my previous email regarding "{subject}".\n\n'
            "I understand you're likely busy, but I wanted to check if you had a chance to "
            "review my message. If you need any additional information or clarification, "
            "I'm happy to provide it.\n\n"
            "Looking forward to hearing from you."
        )
    elif context.previous_attempts == 1:
        body = (
            f'I\'m following up once more regarding "{subject}".\n\n'
            "I haven't heard back yet and wanted to make sure my previous messages didn't get "
            "lost. If now isn't a good time, please let me know when would work better for you.\n\n"
            "I appreciate your time and look forward to your response."
        )
    else:
        body = (
            f'This is my final follow-up regarding "{subject}".\n\n'
            "I've reached out a few times but haven't received a response. If you're no longer "
            "interested or if this isn't the right time, I completely understand.\n\n"
            "If I don't hear back, I'll assume you'd prefer not to continue this conversation. "
            "Thank you for your consideration."
        )

    return DraftEmail(
        subject=_reply_subject(subject),
        body=body,
        tone=determine_tone(context.days_since_last_email),
    )


class DraftService:
    """Generates follow-up drafts; never raises to its callers."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None):
        self.model = model or settings.OPENAI_MODEL
        self.client = client
        if self.client is None and settings.OPENAI_API_KEY:
            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.OPENAI_BASE_URL,
                timeout=settings.DRAFT_TIMEOUT_SECONDS,
            )

    async def generate_draft(self, context: FollowUpContext) -> DraftEmail:
        try:
            return await self._generate_with_model(context)
        except DraftGenerationError as e:
            logger.warning(
                "Draft generation fell back to template",
                reason=str(e),
                previous_attempts=context.previous_attempts,
            )
            return template_draft(context)

    async def _generate_with_model(self, context: FollowUpContext) -> DraftEmail:
        if self.client is None:
            raise DraftGenerationError("Draft model not configured", recoverable=False)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_MESSAGE},
                    {"role": "user", "content": build_prompt(context)},
                ],
                temperature=0.7,
                max_tokens=500,
            )
        except openai.OpenAIError as e:
            logger.error("Draft model call failed", error=str(e), error_type=type(e).__name__)
            raise DraftGenerationError(f"Model call failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise DraftGenerationError("Model returned an empty draft")

        draft = parse_model_response(content, context)
        logger.info("Draft generated", tone=draft.tone, model=self.model)
        return draft


draft_service = DraftService()
