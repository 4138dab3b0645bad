# cardflow/orchestrator/temporal/activities/generate_message.py
from __future__ import annotations

from temporalio import activity

from cardflow.orchestrator.temporal.common.heartbeat import heartbeat_while
from cardflow.providers import generation


@activity.defn(name="generate_message")
async def generate_message(text_prompt: str) -> str:
    info = activity.info()
    activity.logger.info("Generating card message | attempt=%d", info.attempt)
    return await heartbeat_while(generation.generate_text(text_prompt))


__all__ = ["generate_message"]
