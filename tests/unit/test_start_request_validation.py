# tests/unit/test_start_request_validation.py
import pytest

from cardflow.orchestrator.temporal.common.errors import ValidationError
from cardflow.web.schemas import validate_start_request


def _body(**overrides):
    body = {"prompt": "a corgi surfing", "recipientEmail": "mom@example.com"}
    body.update(overrides)
    return body


def test_minimal_body():
    req = validate_start_request(_body())
    assert req.prompt == "a corgi surfing"
    assert req.recipient_email == "mom@example.com"
    assert req.rsvp_emails == []
    assert req.event_date is None


def test_guests_are_deduplicated_in_order():
    req = validate_start_request(_body(rsvpEmails=["b@example.com", "a@example.com", "b@example.com"]))
    assert req.rsvp_emails == ["b@example.com", "a@example.com"]


def test_null_guest_list_means_no_guests():
    assert validate_start_request(_body(rsvpEmails=None)).rsvp_emails == []


@pytest.mark.parametrize(
    "body, message",
    [
        (["not", "an", "object"], "Request body must be a JSON object"),
        (None, "Request body must be a JSON object"),
        ({"recipientEmail": "mom@example.com"}, "Prompt is required and must be a string"),
        (_body(prompt=42), "Prompt is required and must be a string"),
        (_body(prompt="   "), "Prompt is required and must be a string"),
        (_body(recipientEmail=None), "recipientEmail is required and must be a valid email address"),
        (_body(recipientEmail="not-an-email"), "recipientEmail is required and must be a valid email address"),
        (_body(rsvpEmails="a@example.com"), "rsvpEmails must be an array of valid email addresses"),
        (_body(rsvpEmails=["a@example.com", "nope"]), "rsvpEmails must be an array of valid email addresses"),
        (_body(eventDate="next tuesday"), "eventDate must be an ISO-8601 date string"),
        (_body(eventDate=20260501), "eventDate must be an ISO-8601 date string"),
    ],
)
def test_rejections_carry_caller_facing_message(body, message):
    with pytest.raises(ValidationError) as exc_info:
        validate_start_request(body)
    assert str(exc_info.value) == message
    assert exc_info.value.fatal is True


def test_first_problem_wins():
    with pytest.raises(ValidationError, match="Prompt is required"):
        validate_start_request({"prompt": None, "recipientEmail": "bad"})
