# cardflow/web/schemas.py
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator
from pydantic_core import PydanticCustomError

from cardflow.orchestrator.temporal.common.errors import ValidationError
from cardflow.orchestrator.temporal.common.models import WorkflowResult, parse_event_date

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MSG_BODY = "Request body must be a JSON object"
MSG_PROMPT = "Prompt is required and must be a string"
MSG_RECIPIENT = "recipientEmail is required and must be a valid email address"
MSG_GUESTS = "rsvpEmails must be an array of valid email addresses"
MSG_EVENT_DATE = "eventDate must be an ISO-8601 date string"


def is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def _reject(message: str) -> PydanticCustomError:
    return PydanticCustomError("invalid_request", message)


# --------------------------------------------------------------------
# Request
# --------------------------------------------------------------------
class BirthdayCardRequest(BaseModel):
    """Body of POST /workflows/birthday-card (camelCase on the wire)."""

    prompt: str
    recipient_email: str = Field(alias="recipientEmail")
    rsvp_emails: List[str] = Field(default_factory=list, alias="rsvpEmails")
    event_date: Optional[str] = Field(default=None, alias="eventDate")

    model_config = {"populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def check_body(cls, v: Any) -> Any:
        """Checks run in a fixed order so the first problem is the one reported."""
        if not isinstance(v, dict):
            raise _reject(MSG_BODY)

        prompt = v.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            raise _reject(MSG_PROMPT)

        recipient = v.get("recipientEmail")
        if not is_email(recipient):
            raise _reject(MSG_RECIPIENT)

        guests = v.get("rsvpEmails")
        if guests is None:
            guests = []
        if not isinstance(guests, list) or not all(is_email(g) for g in guests):
            raise _reject(MSG_GUESTS)

        event_date = v.get("eventDate")
        if event_date is not None:
            try:
                parse_event_date(event_date)
            except (TypeError, ValueError):
                raise _reject(MSG_EVENT_DATE)

        return {
            "prompt": prompt,
            "recipientEmail": recipient.strip(),
            # duplicates collapse to one wait per guest, first occurrence wins
            "rsvpEmails": list(dict.fromkeys(g.strip() for g in guests)),
            "eventDate": event_date,
        }


def validate_start_request(body: Any) -> BirthdayCardRequest:
    """Parse a start request; raises cardflow ValidationError with a caller-facing message."""
    try:
        return BirthdayCardRequest.model_validate(body)
    except PydanticValidationError as e:
        errors = e.errors()
        message = errors[0]["msg"] if errors else MSG_BODY
        raise ValidationError(message) from e


# --------------------------------------------------------------------
# Responses
# --------------------------------------------------------------------
class RsvpReplyOut(BaseModel):
    email: str
    reply: str


class BirthdayCardResult(BaseModel):
    image: str
    text: str
    rsvpReplies: List[RsvpReplyOut] = Field(default_factory=list)

    @classmethod
    def from_workflow(cls, result: WorkflowResult) -> "BirthdayCardResult":
        return cls(
            image=result.image,
            text=result.text,
            rsvpReplies=[RsvpReplyOut(email=r.email, reply=r.reply) for r in result.rsvp_replies],
        )


class RunStarted(BaseModel):
    status: str = "started"
    runId: str


class ErrorBody(BaseModel):
    error: str
    fatal: bool


def error_body(message: str, fatal: bool) -> Dict[str, Any]:
    return ErrorBody(error=message, fatal=fatal).model_dump()
