# cardflow/orchestrator/temporal/workflows/birthday_card.py

"""
BirthdayCardWorkflow
----------------------------------------------------------
The birthday card saga:

    split prompt -> {generate image || generate message}
        -> (guests?) request RSVP x N -> wait for every reply
        -> sleep until the event deadline -> notify the recipient

Forward-only: a failed step fails the run, nothing already sent is undone.
Completed steps are recorded in workflow history, so a worker restart replays
them instead of calling the providers again.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Dict, List, Optional, Sequence

from temporalio import workflow
from temporalio.exceptions import ActivityError, ApplicationError

with workflow.unsafe.imports_passed_through():
    from cardflow.orchestrator.temporal.activities.generate_image import generate_image
    from cardflow.orchestrator.temporal.activities.generate_message import generate_message
    from cardflow.orchestrator.temporal.activities.notify_recipient import notify_recipient
    from cardflow.orchestrator.temporal.activities.request_rsvp import request_rsvp
    from cardflow.orchestrator.temporal.activities.split_prompt import split_prompt
    from cardflow.orchestrator.temporal.common.errors import step_failure
    from cardflow.orchestrator.temporal.common.models import (
        REPLY_NO_RESPONSE,
        BirthdayCardInput,
        NotifyRequest,
        Phase,
        RsvpReply,
        RsvpRequest,
        RsvpSignal,
        RsvpWait,
        RunStatus,
        WorkflowResult,
        compute_deadline,
        normalize_reply,
    )
    from cardflow.orchestrator.temporal.common.retry_policies import activity_options_for

RSVP_WEBHOOK_PATH = "/webhooks/rsvp"


def rsvp_webhook_url(base_url: str, run_id: str, token: str) -> str:
    return f"{base_url.rstrip('/')}{RSVP_WEBHOOK_PATH}/{run_id}/{token}"


@workflow.defn(name="BirthdayCardWorkflow")
class BirthdayCardWorkflow:
    def __init__(self) -> None:
        self._input: Optional[BirthdayCardInput] = None
        self._phase: str = Phase.CREATED
        self._steps: Dict[str, Any] = {}          # step key -> recorded result
        self._ordinals: Dict[str, int] = {}
        self._waits: Dict[str, RsvpWait] = {}      # token -> wait, in invitation order
        self._replies: List[RsvpReply] = []        # in resolution order
        self._deadline: Optional[datetime] = None
        self._failure_reason: Optional[str] = None
        self._trace_id: Optional[str] = None
        self._log = workflow.logger

    # -------------------
    # External events
    # -------------------
    @workflow.signal(name="rsvp_reply")
    def rsvp_reply(self, signal: RsvpSignal) -> None:
        """Resolve one RSVP wait. Unknown or already-resolved tokens are ignored."""
        wait = self._waits.get(signal.token)
        if wait is None:
            self._log.info("Signal 'rsvp_reply' for unknown token; ignoring")
            return
        if wait.resolved:
            self._log.info("Signal 'rsvp_reply' received again for %s; ignoring (already resolved)", wait.email)
            return

        wait.resolved = True
        wait.reply = normalize_reply(signal.reply)
        wait.reported_email = signal.email
        # the guest identity comes from the wait, not from the callback
        self._replies.append(RsvpReply(email=wait.email, reply=wait.reply))
        self._event(
            "rsvp_resolved",
            guest=wait.email,
            reply=wait.reply,
            reported_email=signal.email,
            pending=sum(1 for w in self._waits.values() if not w.resolved),
        )

    @workflow.query(name="status")
    def status(self) -> RunStatus:
        return RunStatus(
            run_id=workflow.info().workflow_id,
            phase=self._phase,
            completed_steps=list(self._steps),
            rsvp_waits=[RsvpWait(**vars(w)) for w in self._waits.values()],
            rsvp_replies=list(self._replies),
            deadline=self._deadline.isoformat() if self._deadline else None,
            failure_reason=self._failure_reason,
        )

    # -------------------
    # Saga
    # -------------------
    @workflow.run
    async def run(self, data: BirthdayCardInput) -> WorkflowResult:
        self._input = data
        self._trace_id = data.trace_id

        try:
            self._deadline = compute_deadline(
                workflow.now(), data.event_date, data.default_notify_delay_seconds
            )
        except ValueError as e:
            self._fail(f"eventDate is not a valid ISO-8601 date: {data.event_date!r}")
            raise ApplicationError(self._failure_reason, type="FatalError", non_retryable=True) from e

        guests = list(dict.fromkeys(g.strip() for g in data.rsvp_emails if g and g.strip()))

        try:
            self._transition(Phase.PROMPT_SPLITTING)
            prompts = await self._step("split_prompt", split_prompt, data.prompt)

            self._transition(Phase.PARALLEL_GENERATION)
            image, text = await self._fan_out(
                [
                    self._step("generate_image", generate_image, prompts.image_prompt),
                    self._step("generate_message", generate_message, prompts.text_prompt),
                ]
            )

            if guests:
                self._transition(Phase.AWAITING_RSVP, guests=len(guests))
                await self._collect_rsvps(guests)

            self._transition(Phase.SLEEPING, deadline=self._deadline.isoformat())
            await self._sleep_until_deadline()

            self._transition(Phase.NOTIFYING)
            replies = list(self._replies)
            await self._step(
                "notify_recipient",
                notify_recipient,
                NotifyRequest(
                    recipient_email=data.recipient_email,
                    card_image=image,
                    card_text=text,
                    rsvp_replies=replies,
                ),
            )
        except ApplicationError as err:
            self._fail(err.message)
            raise

        self._transition(Phase.COMPLETED)
        return WorkflowResult(image=image, text=text, rsvp_replies=replies)

    # -------------------
    # Steps
    # -------------------
    def _step(self, name: str, fn: Any, arg: Any) -> Awaitable[Any]:
        """
        Memoized step invocation. The key is taken now, in call order, so
        concurrent steps of the same name get stable ordinals on every replay.
        """
        ordinal = self._ordinals.get(name, 0)
        self._ordinals[name] = ordinal + 1
        return self._invoke(f"{name}#{ordinal}", name, fn, arg)

    async def _invoke(self, key: str, name: str, fn: Any, arg: Any) -> Any:
        if key in self._steps:
            return self._steps[key]

        opts, rp = activity_options_for(name, self._input.max_step_attempts if self._input else None)
        try:
            result = await workflow.execute_activity(fn, arg, retry_policy=rp, **opts)
        except ActivityError as err:
            raise step_failure(key, err) from err

        self._steps[key] = result
        self._event("step_completed", step=key)
        return result

    async def _fan_out(self, calls: Sequence[Awaitable[Any]]) -> List[Any]:
        """
        Run branches concurrently and join on all of them. The first permanent
        failure cancels the branches still in flight, waits until their
        activities have acknowledged the cancellation, then fails the join.
        """
        tasks = [asyncio.ensure_future(c) for c in calls]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            pending = [t for t in tasks if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                self._event("branches_cancelled", count=len(pending))
            raise

    # -------------------
    # Waits
    # -------------------
    async def _collect_rsvps(self, guests: List[str]) -> None:
        assert self._input is not None
        run_id = workflow.info().workflow_id

        # every wait exists before the first invitation goes out
        for email in guests:
            token = workflow.uuid4().hex
            self._waits[token] = RsvpWait(
                token=token,
                email=email,
                url=rsvp_webhook_url(self._input.webhook_base_url, run_id, token),
            )

        await self._fan_out(
            [
                self._step("request_rsvp", request_rsvp, RsvpRequest(email=w.email, webhook_url=w.url))
                for w in list(self._waits.values())
            ]
        )

        max_wait = self._input.rsvp_max_wait_seconds
        timeout = timedelta(seconds=max_wait) if max_wait is not None else None
        self._log.info("Waiting for %d RSVP replies (limit=%s)", len(guests), "none" if timeout is None else timeout)
        if timeout is not None and timeout <= timedelta(0):
            self._expire_waits()
            return
        try:
            await workflow.wait_condition(
                lambda: all(w.resolved for w in self._waits.values()), timeout=timeout
            )
        except asyncio.TimeoutError:
            self._expire_waits()

    def _expire_waits(self) -> None:
        """Guests who never answered are recorded as no-response."""
        missing = [w for w in self._waits.values() if not w.resolved]
        for w in missing:
            w.resolved = True
            w.reply = REPLY_NO_RESPONSE
            self._replies.append(RsvpReply(email=w.email, reply=REPLY_NO_RESPONSE))
        self._event("rsvp_wait_expired", unanswered=len(missing))

    async def _sleep_until_deadline(self) -> None:
        assert self._deadline is not None
        remaining = self._deadline - workflow.now()
        if remaining > timedelta(0):
            await workflow.sleep(remaining)

    # -------------------
    # Bookkeeping
    # -------------------
    def _transition(self, phase: str, **fields: Any) -> None:
        previous, self._phase = self._phase, phase
        self._event("phase_transition", phase_from=previous, phase_to=phase, **fields)

    def _fail(self, reason: str) -> None:
        self._failure_reason = reason
        self._transition(Phase.FAILED, reason=reason)

    def _event(self, event: str, **fields: Any) -> None:
        extra = {
            "event": event,
            "run_id": workflow.info().workflow_id,
            "trace_id": self._trace_id or "-",
            **{k: v for k, v in fields.items() if v is not None},
        }
        rendered = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)
        self._log.info("%s %s", event, rendered, extra=extra)
