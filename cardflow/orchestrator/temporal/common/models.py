# cardflow/orchestrator/temporal/common/models.py
"""
Wire types for the birthday card saga.

Plain dataclasses: they cross the Temporal boundary (workflow input/output,
activity arguments, signal and query payloads) through the default JSON
payload converter, and they are safe to import inside the workflow sandbox.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

# -------- Phases --------

class Phase:
    CREATED = "created"
    PROMPT_SPLITTING = "prompt_splitting"
    PARALLEL_GENERATION = "parallel_generation"
    AWAITING_RSVP = "awaiting_rsvp"
    SLEEPING = "sleeping"
    NOTIFYING = "notifying"
    COMPLETED = "completed"
    FAILED = "failed"


# -------- RSVP replies --------

REPLY_YES = "yes"
REPLY_NO = "no"
REPLY_NO_RESPONSE = "no-response"


def normalize_reply(raw: Any) -> str:
    """'yes' / 'no' (case and whitespace insensitive); anything else is no-response."""
    if not isinstance(raw, str):
        return REPLY_NO_RESPONSE
    value = raw.strip().lower()
    if value in (REPLY_YES, REPLY_NO):
        return value
    return REPLY_NO_RESPONSE


# -------- Deadlines --------

def parse_event_date(value: str) -> datetime:
    """
    Parse an ISO-8601 date or datetime. A trailing 'Z' is accepted and values
    without an offset (including date-only strings) are taken as UTC.
    Raises ValueError on anything else.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("event date must be a non-empty string")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def compute_deadline(
    started_at: datetime, event_date: Optional[str], default_delay_seconds: int = 0
) -> datetime:
    """Notification deadline, fixed once when the run starts."""
    if event_date:
        return parse_event_date(event_date)
    return started_at + timedelta(seconds=max(0, default_delay_seconds or 0))


# -------- Workflow input / output --------

@dataclass
class BirthdayCardInput:
    prompt: str
    recipient_email: str
    rsvp_emails: List[str] = field(default_factory=list)
    event_date: Optional[str] = None            # ISO-8601; naive values are UTC
    webhook_base_url: str = "http://localhost:8000"
    rsvp_max_wait_seconds: Optional[int] = None  # None = wait for every guest, 0 = none
    default_notify_delay_seconds: int = 0
    max_step_attempts: Optional[int] = None
    trace_id: Optional[str] = None


@dataclass
class RsvpReply:
    email: str
    reply: str                                   # "yes" | "no" | "no-response"


@dataclass
class WorkflowResult:
    image: str
    text: str
    rsvp_replies: List[RsvpReply] = field(default_factory=list)


# -------- Step payloads --------

@dataclass
class CardPrompts:
    text_prompt: str
    image_prompt: str


@dataclass
class RsvpRequest:
    email: str
    webhook_url: str


@dataclass
class RsvpRequestReceipt:
    email: str
    success: bool
    message_id: Optional[str] = None


@dataclass
class NotifyRequest:
    recipient_email: str
    card_image: str
    card_text: str
    rsvp_replies: List[RsvpReply] = field(default_factory=list)


@dataclass
class NotificationReceipt:
    success: bool
    recipient_email: str
    sent_at: str
    rsvp_count: int
    message_id: Optional[str] = None


# -------- Webhook waits --------

@dataclass
class RsvpSignal:
    """Inbound RSVP click, as delivered by the webhook route."""
    token: str
    reply: Optional[str] = None
    email: Optional[str] = None                  # echoed from the URL; audit only


@dataclass
class RsvpWait:
    token: str
    email: str                                   # bound when the wait is created
    url: str
    resolved: bool = False
    reply: Optional[str] = None
    reported_email: Optional[str] = None


# -------- Query snapshot --------

@dataclass
class RunStatus:
    run_id: str
    phase: str
    completed_steps: List[str] = field(default_factory=list)
    rsvp_waits: List[RsvpWait] = field(default_factory=list)
    rsvp_replies: List[RsvpReply] = field(default_factory=list)
    deadline: Optional[str] = None
    failure_reason: Optional[str] = None

    def public_view(self) -> Dict[str, Any]:
        """Status without wait tokens (those are capabilities)."""
        return {
            "phase": self.phase,
            "deadline": self.deadline,
            "rsvp": [
                {"email": w.email, "resolved": w.resolved, "reply": w.reply}
                for w in self.rsvp_waits
            ],
        }
