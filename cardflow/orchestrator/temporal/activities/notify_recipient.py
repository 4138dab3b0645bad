# cardflow/orchestrator/temporal/activities/notify_recipient.py
# ---------------------------------------------------------------------------
# Temporal Activity: deliver the finished card
# ---------------------------------------------------------------------------
# Runs after the card was generated, every RSVP wait resolved and the event
# deadline passed; possibly days after the run started.
from __future__ import annotations

import base64
import binascii
import html
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from temporalio import activity

from cardflow.orchestrator.temporal.common.heartbeat import heartbeat_while
from cardflow.orchestrator.temporal.common.models import (
    NotificationReceipt,
    NotifyRequest,
    RsvpReply,
)
from cardflow.providers import email as mail

CARD_SUBJECT = "Happy Birthday!"
CARD_CID = "postcard"


def split_data_uri(uri: str) -> Optional[Tuple[str, bytes]]:
    """(mime type, bytes) for a base64 data URI; None for anything else (e.g. a plain URL)."""
    if not uri.startswith("data:") or "," not in uri:
        return None
    header, payload = uri[5:].split(",", 1)
    if not header.endswith(";base64"):
        return None
    mime = header[: -len(";base64")] or "image/png"
    try:
        return mime, base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None


def rsvp_summary_html(replies: List[RsvpReply]) -> str:
    return "<br>".join(f"{html.escape(r.email)}: {html.escape(r.reply)}" for r in replies)


def card_body_html(card_text: str, replies: List[RsvpReply], image_link: Optional[str] = None) -> str:
    body = html.escape(card_text).replace("\n", "<br>")
    if image_link:
        body += f"<br><br><a href=\"{html.escape(image_link)}\">View your card</a>"
    summary = rsvp_summary_html(replies)
    if summary:
        body += f"<br><br><strong>RSVP Replies:</strong><br>{summary}"
    return body


@activity.defn(name="notify_recipient")
async def notify_recipient(req: NotifyRequest) -> NotificationReceipt:
    activity.logger.info(
        "Sending birthday card | to=%s | rsvp_replies=%d", req.recipient_email, len(req.rsvp_replies)
    )

    decoded = split_data_uri(req.card_image)
    attachments: List[mail.EmailAttachment] = []
    if decoded is not None:
        mime, content = decoded
        attachments.append(
            mail.EmailAttachment(
                filename="birthday-card.png", content=content, content_type=mime, content_id=CARD_CID
            )
        )
        body = card_body_html(req.card_text, req.rsvp_replies)
        page = mail.postcard_email_html(CARD_SUBJECT, body, image_cid=CARD_CID)
    else:
        body = card_body_html(req.card_text, req.rsvp_replies, image_link=req.card_image)
        page = mail.postcard_email_html(CARD_SUBJECT, body)

    receipt = await heartbeat_while(
        mail.send_email(req.recipient_email, CARD_SUBJECT, page, attachments=attachments)
    )
    activity.logger.info("✅ Birthday card email sent | message_id=%s", receipt.message_id)

    return NotificationReceipt(
        success=True,
        recipient_email=req.recipient_email,
        sent_at=datetime.now(timezone.utc).isoformat(),
        rsvp_count=len(req.rsvp_replies),
        message_id=receipt.message_id,
    )


__all__ = ["notify_recipient", "split_data_uri"]
