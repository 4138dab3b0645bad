# cardflow/web/routes_workflows.py
# ---------------------------------------------------------------------------
# Entry gateway: start a birthday card run, poll its status
# ---------------------------------------------------------------------------
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from temporalio.client import WorkflowFailureError

from cardflow.config import get_settings
from cardflow.orchestrator.temporal import signal_bridge as bridge
from cardflow.orchestrator.temporal.common.errors import ValidationError, describe_failure
from cardflow.orchestrator.temporal.common.models import BirthdayCardInput
from cardflow.web.metrics import RUNS_STARTED
from cardflow.web.schemas import (
    MSG_BODY,
    BirthdayCardResult,
    RunStarted,
    error_body,
    validate_start_request,
)

router = APIRouter(tags=["workflows"])
logger = logging.getLogger("cardflow.web.workflows")


def _error(status_code: int, message: str, fatal: bool) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(message, fatal))


def _reason(e: Exception) -> str:
    if isinstance(e, HTTPException):
        return str(e.detail)
    return str(e) or e.__class__.__name__


@router.post("/workflows/birthday-card")
async def start_birthday_card(request: Request):
    """
    Start a run. Without guests the call waits for the card (up to
    SYNC_RESULT_TIMEOUT_SECONDS); with guests it answers {status, runId} at once.
    """
    try:
        body = await request.json()
    except ValueError:
        return _error(400, MSG_BODY, True)

    try:
        req = validate_start_request(body)
    except ValidationError as e:
        logger.info("Rejected start request: %s", e)
        return _error(400, str(e), True)

    settings = get_settings()
    data = BirthdayCardInput(
        prompt=req.prompt,
        recipient_email=req.recipient_email,
        rsvp_emails=req.rsvp_emails,
        event_date=req.event_date,
        webhook_base_url=settings.PUBLIC_BASE_URL,
        rsvp_max_wait_seconds=settings.RSVP_MAX_WAIT_SECONDS,
        default_notify_delay_seconds=settings.DEFAULT_NOTIFY_DELAY_SECONDS,
        max_step_attempts=settings.MAX_STEP_ATTEMPTS,
        trace_id=getattr(request.state, "request_id", None),
    )

    try:
        client = await bridge.get_temporal_client(request)
        handle = await bridge.start_birthday_card(client, data)
    except Exception as e:  # noqa: BLE001
        logger.exception("Failed to start birthday card run")
        return _error(500, f"Failed to start run: {_reason(e)}", False)

    if data.rsvp_emails:
        RUNS_STARTED.labels(mode="async").inc()
        return RunStarted(runId=handle.id).model_dump()

    RUNS_STARTED.labels(mode="sync").inc()
    try:
        result = await bridge.wait_for_result(handle, settings.SYNC_RESULT_TIMEOUT_SECONDS)
    except WorkflowFailureError as e:
        message, fatal = describe_failure(e)
        logger.warning("Run %s failed: %s (fatal=%s)", handle.id, message, fatal)
        return _error(400 if fatal else 500, message, fatal)
    except Exception as e:  # noqa: BLE001
        logger.exception("Lost track of run %s while waiting for its result", handle.id)
        return _error(500, _reason(e), False)

    if result is None:
        return RunStarted(runId=handle.id).model_dump()
    return BirthdayCardResult.from_workflow(result).model_dump()


@router.get("/workflows/birthday-card/{run_id}")
async def get_birthday_card(run_id: str, request: Request):
    try:
        client = await bridge.get_temporal_client(request)
        view = await bridge.get_run(client, run_id)
    except bridge.RunNotFound:
        return _error(404, f"Run {run_id} not found", False)
    except Exception as e:  # noqa: BLE001
        logger.exception("Failed to read run %s", run_id)
        return _error(500, _reason(e), False)

    if view["status"] == "completed":
        view["result"] = BirthdayCardResult.from_workflow(view["result"]).model_dump()
    return view
