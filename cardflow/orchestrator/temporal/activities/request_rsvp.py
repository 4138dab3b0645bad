# cardflow/orchestrator/temporal/activities/request_rsvp.py
# ---------------------------------------------------------------------------
# Temporal Activity: RSVP invitation email
# ---------------------------------------------------------------------------
# The webhook URL is allocated by the workflow before this activity runs; a
# click on one of the links resolves that wait through the RSVP webhook route.
from __future__ import annotations

from temporalio import activity

from cardflow.orchestrator.temporal.common.heartbeat import heartbeat_while
from cardflow.orchestrator.temporal.common.models import RsvpRequest, RsvpRequestReceipt
from cardflow.providers import email as mail

RSVP_SUBJECT = "You're Invited to a Birthday Party!"


@activity.defn(name="request_rsvp")
async def request_rsvp(req: RsvpRequest) -> RsvpRequestReceipt:
    activity.logger.info("Sending RSVP request | to=%s", req.email)

    receipt = await heartbeat_while(
        mail.send_email(
            req.email,
            RSVP_SUBJECT,
            mail.rsvp_email_html(req.email, req.webhook_url),
        )
    )

    # Clickable links for local testing with mock email
    links = mail.rsvp_links(req.webhook_url, req.email)
    activity.logger.info("RSVP links | YES: %s | NO: %s", links["yes"], links["no"])

    return RsvpRequestReceipt(email=req.email, success=True, message_id=receipt.message_id)


__all__ = ["request_rsvp"]
