# cardflow/orchestrator/temporal/common/retry_policies.py
from __future__ import annotations

from datetime import timedelta
from typing import Dict, Optional, Tuple

from temporalio.common import RetryPolicy
from temporalio.workflow import ActivityCancellationType

from cardflow.orchestrator.temporal.common.errors import NON_RETRYABLE_ERROR_TYPES

# -----------------------------------------------------------------------------
# Step-kind defaults (central source of truth)
# -----------------------------------------------------------------------------
# stc = start_to_close timeout (seconds), hb = heartbeat timeout (seconds)
_DEFAULTS = {
    "prompt":     dict(stc=60,  hb=30, initial=2.0, backoff=2.0, max_interval=30.0, max_attempts=4),
    "generation": dict(stc=180, hb=30, initial=2.0, backoff=2.0, max_interval=60.0, max_attempts=4),
    "email":      dict(stc=30,  hb=15, initial=2.0, backoff=2.0, max_interval=30.0, max_attempts=5),
}

# Which kind each saga step belongs to
STEP_KINDS = {
    "split_prompt": "prompt",
    "generate_image": "generation",
    "generate_message": "generation",
    "request_rsvp": "email",
    "notify_recipient": "email",
}


def activity_options_for(
    step: str, max_attempts: Optional[int] = None
) -> Tuple[Dict, RetryPolicy]:
    """
    Returns (**kwargs for workflow.execute_activity**, RetryPolicy) for a saga step.

    Example:
        opts, rp = activity_options_for("generate_image")
        await workflow.execute_activity(..., retry_policy=rp, **opts)
    """
    kind = STEP_KINDS.get((step or "").lower(), "generation")
    cfg = _DEFAULTS[kind]

    rp = RetryPolicy(
        initial_interval=timedelta(seconds=cfg["initial"]),
        backoff_coefficient=cfg["backoff"],
        maximum_interval=timedelta(seconds=cfg["max_interval"]),
        maximum_attempts=max_attempts or cfg["max_attempts"],
        non_retryable_error_types=list(NON_RETRYABLE_ERROR_TYPES),
    )
    # a cancelled step is only settled once the activity has acknowledged it
    opts: Dict = {
        "start_to_close_timeout": timedelta(seconds=cfg["stc"]),
        "heartbeat_timeout": timedelta(seconds=cfg["hb"]),
        "cancellation_type": ActivityCancellationType.WAIT_CANCELLATION_COMPLETED,
    }
    return opts, rp
