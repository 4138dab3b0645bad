# cardflow/providers/email.py
import base64
import html as html_lib
import logging
import os
import random
import re
import string
import time
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from cardflow.orchestrator.temporal.common.errors import (
    DeliveryError,
    DeliveryRejectedError,
    FatalError,
)

logger = logging.getLogger("cardflow.email")

MANDRILL_SEND_URL = "https://mandrillapp.com/api/1.0/messages/send.json"


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "image/png"
    content_id: Optional[str] = None            # set => inline image


@dataclass
class DeliveryReceipt:
    message_id: str
    provider: str
    to: str
    status: str = "sent"
    attachments: List[str] = field(default_factory=list)


def _mock_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"mock-{int(time.time() * 1000)}-{suffix}"


def _text_preview(html: str, limit: int = 200) -> str:
    text = re.sub(r"<[^>]*>", " ", html)
    return re.sub(r"\s+", " ", text).strip()[:limit]


def _mandrill_message(to: str, subject: str, html: str, attachments: List[EmailAttachment]) -> dict:
    message = {
        "from_email": os.getenv("MAIL_FROM", "cards@example.com"),
        "to": [{"email": to, "type": "to"}],
        "subject": subject,
        "html": html,
    }
    inline = [a for a in attachments if a.content_id]
    regular = [a for a in attachments if not a.content_id]
    if inline:
        message["images"] = [
            {"type": a.content_type, "name": a.content_id, "content": base64.b64encode(a.content).decode("ascii")}
            for a in inline
        ]
    if regular:
        message["attachments"] = [
            {"type": a.content_type, "name": a.filename, "content": base64.b64encode(a.content).decode("ascii")}
            for a in regular
        ]
    return message


async def send_email(
    to: str,
    subject: str,
    html: str,
    *,
    attachments: Optional[List[EmailAttachment]] = None,
) -> DeliveryReceipt:
    """
    Send an email via Mandrill, or log it in mock mode.

    Raises DeliveryError for throttling / 5xx / network trouble (retryable) and
    DeliveryRejectedError when the provider refuses the message.
    """
    attachments = attachments or []
    names = [a.filename for a in attachments]
    live_mode = os.getenv("CARDFLOW_LIVE_PROVIDERS", "0") == "1"

    if not live_mode:
        message_id = _mock_id()
        logger.info(
            "[MOCK EMAIL] Would send email | to=%s | subject=%s | id=%s | attachments=%s | preview=%s...",
            to, subject, message_id, ", ".join(names) or "-", _text_preview(html),
        )
        return DeliveryReceipt(message_id=message_id, provider="mock", to=to, attachments=names)

    api_key = os.getenv("MANDRILL_API_KEY")
    if not api_key:
        raise FatalError("MANDRILL_API_KEY is not set; cannot send live email")

    try:
        async with httpx.AsyncClient(timeout=15) as client:
            resp = await client.post(
                MANDRILL_SEND_URL,
                json={"key": api_key, "message": _mandrill_message(to, subject, html, attachments)},
            )
            resp.raise_for_status()
            data = resp.json()
    except httpx.HTTPStatusError as e:
        code = e.response.status_code
        logger.warning("Email send to %s failed with %s", to, code)
        if code == 429 or code >= 500:
            raise DeliveryError(f"mail provider returned {code}") from e
        raise DeliveryRejectedError(f"mail provider rejected message to {to} ({code})") from e
    except httpx.HTTPError as e:
        raise DeliveryError(f"mail provider unreachable: {e}") from e

    entry = data[0] if isinstance(data, list) and data else {}
    status = entry.get("status", "sent")
    if status in ("rejected", "invalid"):
        raise DeliveryRejectedError(
            f"mail provider rejected message to {to}: {entry.get('reject_reason') or status}"
        )

    logger.info("✅ Email sent | to=%s | subject=%s | status=%s", to, subject, status)
    return DeliveryReceipt(
        message_id=entry.get("_id") or _mock_id(),
        provider="mandrill",
        to=to,
        status=status,
        attachments=names,
    )


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def rsvp_links(webhook_url: str, email: str) -> dict:
    quoted = httpx.QueryParams({"email": email})
    return {
        "yes": f"{webhook_url}?reply=yes&{quoted}",
        "no": f"{webhook_url}?reply=no&{quoted}",
    }


def rsvp_email_html(email: str, webhook_url: str) -> str:
    links = rsvp_links(webhook_url, email)
    return (
        "<html><body style=\"font-family:sans-serif\">"
        "<h2>You're invited to a birthday party!</h2>"
        f"<p>Hi {html_lib.escape(email)}, will you be joining us?</p>"
        f"<p><a href=\"{html_lib.escape(links['yes'])}\">Yes, I'll be there</a>"
        " &nbsp;|&nbsp; "
        f"<a href=\"{html_lib.escape(links['no'])}\">Sorry, I can't make it</a></p>"
        "</body></html>"
    )


def postcard_email_html(title: str, body_html: str, image_cid: Optional[str] = None) -> str:
    image = f"<p><img src=\"cid:{image_cid}\" alt=\"Birthday card\" style=\"max-width:100%\"/></p>" if image_cid else ""
    return (
        "<html><body style=\"font-family:sans-serif\">"
        f"<h1>{html_lib.escape(title)}</h1>"
        f"{image}"
        f"<p>{body_html}</p>"
        "</body></html>"
    )
