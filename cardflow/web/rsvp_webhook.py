# cardflow/web/rsvp_webhook.py
# ---------------------------------------------------------------------------
# RSVP click-through: GET /webhooks/rsvp/{run_id}/{token}?reply=yes|no&email=..
# ---------------------------------------------------------------------------
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request

from cardflow.common.tracing import log_event
from cardflow.orchestrator.temporal import signal_bridge as bridge
from cardflow.web.metrics import IDEMPOTENT_HITS, RSVP_CALLBACKS

router = APIRouter(tags=["webhooks"])
logger = logging.getLogger("cardflow.web.rsvp")


@router.get("/webhooks/rsvp/{run_id}/{token}")
async def rsvp_callback(
    run_id: str,
    token: str,
    request: Request,
    reply: Optional[str] = None,
    email: Optional[str] = None,
):
    """Always 200: {status: received | duplicate | ignored, runId}."""
    cache = request.app.state.idempotency
    key = f"{run_id}:{token}"

    if not await cache.reserve(key):
        IDEMPOTENT_HITS.inc()
        RSVP_CALLBACKS.labels(outcome=bridge.DUPLICATE).inc()
        logger.info("Duplicate RSVP click | run_id=%s", run_id)
        return {"status": bridge.DUPLICATE, "runId": run_id}

    try:
        client = await bridge.get_temporal_client(request)
        outcome = await bridge.resolve_rsvp(client, run_id, token, reply, email)
    except Exception:
        await cache.release(key)
        raise

    if outcome == bridge.IGNORED:
        await cache.release(key)

    RSVP_CALLBACKS.labels(outcome=outcome).inc()
    log_event(logger, "rsvp_callback", run_id=run_id, reply=reply, outcome=outcome)
    return {"status": outcome, "runId": run_id}
