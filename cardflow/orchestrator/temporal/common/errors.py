# cardflow/orchestrator/temporal/common/errors.py
from __future__ import annotations

from typing import Optional, Tuple

from temporalio.exceptions import ActivityError, ApplicationError

# ---- Canonical error classes ------------------------------------------------
#
# Activities raise these; Temporal serializes them as ApplicationError with
# `type` set to the class name, which is what retry policies and the entry
# gateway branch on.

class CardflowError(Exception):
    code: str = "unknown"
    retryable: bool = False
    fatal: bool = False

    def __init__(self, message: str = ""):
        super().__init__(message)

class ValidationError(CardflowError):
    """Malformed input at the entry gateway. Never retried."""
    code, retryable, fatal = "validation", False, True

class FatalError(CardflowError):
    """Do not retry; the caller-visible cause is actionable."""
    code, retryable, fatal = "fatal", False, True

class ContentRejectedError(FatalError):
    """The generation provider refused the prompt (content policy, bad request)."""
    code = "content_rejected"

class DeliveryRejectedError(FatalError):
    """The mail provider refused the message (bad recipient, 4xx)."""
    code = "delivery_rejected"

class StepExecutionError(CardflowError):
    """A step exhausted its retry budget; aborts the owning phase."""
    code, retryable, fatal = "step_execution", False, False

class GenerationError(CardflowError):
    """Transient text/image provider failure."""
    code, retryable = "generation", True

class DeliveryError(CardflowError):
    """Transient mail provider failure (throttled, 5xx, network)."""
    code, retryable = "delivery", True


# Every class above, as it crosses the Temporal boundary (by type name)
_TAXONOMY = (
    ValidationError,
    FatalError,
    ContentRejectedError,
    DeliveryRejectedError,
    StepExecutionError,
    GenerationError,
    DeliveryError,
)

NON_RETRYABLE_ERROR_TYPES = [cls.__name__ for cls in _TAXONOMY if not cls.retryable]

FATAL_ERROR_TYPES = frozenset(cls.__name__ for cls in _TAXONOMY if cls.fatal)


# ---- Helpers used by activities / workflow / gateway -------------------------


def is_fatal_type(error_type: Optional[str]) -> bool:
    return bool(error_type) and error_type in FATAL_ERROR_TYPES


def find_application_error(exc: BaseException, *, innermost: bool = False) -> Optional[ApplicationError]:
    """
    Walk a Temporal failure chain and return the outermost ApplicationError
    (the one the workflow raised), or the innermost one (what the activity raised).
    """
    found: Optional[ApplicationError] = None
    current: Optional[BaseException] = exc
    while current is not None:
        if isinstance(current, ApplicationError):
            found = current
            if not innermost:
                break
        current = current.__cause__
    return found


def step_failure(step_key: str, err: ActivityError) -> ApplicationError:
    """
    Translate an activity failure (retries already exhausted by Temporal) into
    the workflow-level error: FatalError when the cause was fatal, otherwise
    StepExecutionError.
    """
    cause = find_application_error(err, innermost=True)
    detail = cause.message if cause is not None else str(err.cause or err)
    if cause is not None and is_fatal_type(cause.type):
        return ApplicationError(detail, type="FatalError", non_retryable=True)
    return ApplicationError(
        f"{step_key} failed after retries: {detail}",
        type="StepExecutionError",
        non_retryable=True,
    )


def describe_failure(exc: BaseException) -> Tuple[str, bool]:
    """
    (message, fatal) for a failed run or a local error, for the HTTP surface.
    """
    if isinstance(exc, CardflowError):
        return str(exc) or exc.code, exc.fatal

    cause = find_application_error(exc)
    if cause is not None:
        return cause.message or (cause.type or "workflow failed"), is_fatal_type(cause.type)

    inner = exc.__cause__ or exc
    return str(inner) or inner.__class__.__name__, False
