# cardflow/orchestrator/temporal/signal_bridge.py
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from temporalio.client import (
    Client,
    WorkflowExecutionStatus,
    WorkflowFailureError,
    WorkflowHandle,
)
from temporalio.service import RPCError, RPCStatusCode

from cardflow.common.tracing import log_event
from cardflow.orchestrator.temporal.common.errors import describe_failure
from cardflow.orchestrator.temporal.common.models import (
    BirthdayCardInput,
    RsvpSignal,
    RunStatus,
    WorkflowResult,
)
from cardflow.orchestrator.temporal.config import (
    TASK_QUEUE,
    TEMPORAL_NAMESPACE,
    TEMPORAL_TARGET,
)
from cardflow.orchestrator.temporal.workflows.birthday_card import BirthdayCardWorkflow

logger = logging.getLogger("cardflow.signal_bridge")

RUN_ID_PREFIX = "birthday-card-"

# webhook outcomes
RECEIVED = "received"
DUPLICATE = "duplicate"
IGNORED = "ignored"


class RunNotFound(Exception):
    """No workflow execution with that run id."""


# --------------------------------------------------------------------------
# ⚙️ Temporal Client Helpers
# --------------------------------------------------------------------------


async def get_temporal_client(request: Request) -> Client:
    """FastAPI dependency: one Temporal client per app, connected lazily."""
    cached = getattr(request.app.state, "temporal_client", None)
    if cached is not None:
        return cached
    try:
        client = await Client.connect(TEMPORAL_TARGET, namespace=TEMPORAL_NAMESPACE)
    except Exception as e:  # noqa: BLE001
        logger.exception("❌ Failed to connect to Temporal at %s: %s", TEMPORAL_TARGET, e)
        raise HTTPException(status_code=503, detail=f"Temporal unavailable: {e}")
    request.app.state.temporal_client = client
    return client


def new_run_id() -> str:
    return f"{RUN_ID_PREFIX}{uuid.uuid4()}"


# --------------------------------------------------------------------------
# 🔹 Entry gateway
# --------------------------------------------------------------------------


async def start_birthday_card(
    client: Client,
    data: BirthdayCardInput,
    *,
    run_id: Optional[str] = None,
    task_queue: str = TASK_QUEUE,
) -> WorkflowHandle:
    """Create a run. The run id doubles as the Temporal workflow id."""
    run_id = run_id or new_run_id()
    handle = await client.start_workflow(
        BirthdayCardWorkflow.run,
        data,
        id=run_id,
        task_queue=task_queue,
    )
    log_event(
        logger, "run_started",
        run_id=run_id, trace_id=data.trace_id, guests=len(data.rsvp_emails), event_date=data.event_date,
    )
    return handle


async def wait_for_result(handle: WorkflowHandle, timeout: float) -> Optional[WorkflowResult]:
    """
    Block for the run's result up to `timeout` seconds. Returns None when the
    run is still going; raises WorkflowFailureError when it failed.
    """
    try:
        return await asyncio.wait_for(handle.result(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.info("Run %s still in progress after %.0fs; answering async", handle.id, timeout)
        return None


# --------------------------------------------------------------------------
# 📨 RSVP webhook -> workflow signal
# --------------------------------------------------------------------------


def _is_gone(err: RPCError) -> bool:
    return err.status in (RPCStatusCode.NOT_FOUND, RPCStatusCode.FAILED_PRECONDITION)


async def resolve_rsvp(
    client: Client,
    run_id: str,
    token: str,
    reply: Optional[str],
    email: Optional[str] = None,
) -> str:
    """
    Deliver one RSVP click to its run. Returns "received", "duplicate" or
    "ignored" (unknown run, unknown token, or run already closed).
    The workflow is the arbiter: a click that races another one for the same
    token may report "received" and still be dropped there.
    """
    handle = client.get_workflow_handle_for(BirthdayCardWorkflow.run, run_id)
    try:
        desc = await handle.describe()
    except RPCError as e:
        if _is_gone(e):
            logger.info("RSVP for unknown run %s; ignoring", run_id)
            return IGNORED
        raise

    if desc.status != WorkflowExecutionStatus.RUNNING:
        logger.info("RSVP for closed run %s (%s); ignoring", run_id, desc.status)
        return IGNORED

    status: RunStatus = await handle.query(BirthdayCardWorkflow.status)
    wait = next((w for w in status.rsvp_waits if w.token == token), None)
    if wait is None:
        logger.info("RSVP with unknown token for run %s; ignoring", run_id)
        return IGNORED
    if wait.resolved:
        return DUPLICATE

    try:
        await handle.signal(BirthdayCardWorkflow.rsvp_reply, RsvpSignal(token=token, reply=reply, email=email))
    except RPCError as e:
        if _is_gone(e):
            return IGNORED
        raise
    log_event(logger, "rsvp_delivered", run_id=run_id, guest=wait.email, reply=reply)
    return RECEIVED


# --------------------------------------------------------------------------
# 🔎 Run query
# --------------------------------------------------------------------------


async def get_run(client: Client, run_id: str) -> Dict[str, Any]:
    """
    Status view of a run:
      {"status": "running", "runId", "phase", "deadline", "rsvp": [...]}
      {"status": "completed", "runId", "result": WorkflowResult}
      {"status": "failed", "runId", "error", "fatal"}
    Raises RunNotFound for unknown ids.
    """
    handle = client.get_workflow_handle_for(BirthdayCardWorkflow.run, run_id)
    try:
        desc = await handle.describe()
    except RPCError as e:
        if _is_gone(e):
            raise RunNotFound(run_id) from e
        raise

    if desc.status == WorkflowExecutionStatus.RUNNING:
        status: RunStatus = await handle.query(BirthdayCardWorkflow.status)
        return {"status": "running", "runId": run_id, **status.public_view()}

    try:
        result = await handle.result()
    except WorkflowFailureError as e:
        message, fatal = describe_failure(e)
        return {"status": "failed", "runId": run_id, "error": message, "fatal": fatal}
    return {"status": "completed", "runId": run_id, "result": result}
