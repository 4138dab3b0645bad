# cardflow/orchestrator/temporal/activities/split_prompt.py
from __future__ import annotations

from temporalio import activity

from cardflow.orchestrator.temporal.common.errors import FatalError
from cardflow.orchestrator.temporal.common.heartbeat import heartbeat_while
from cardflow.orchestrator.temporal.common.models import CardPrompts
from cardflow.providers import generation


@activity.defn(name="split_prompt")
async def split_prompt(prompt: str) -> CardPrompts:
    """Derive separate text and image prompts from the user's description."""
    if not (prompt or "").strip():
        raise FatalError("split_prompt: empty prompt")

    prompts = await heartbeat_while(generation.split_prompt(prompt))
    activity.logger.info(
        "Prompts generated | text_prompt=%r | image_prompt=%r",
        prompts["text_prompt"], prompts["image_prompt"],
    )
    return CardPrompts(text_prompt=prompts["text_prompt"], image_prompt=prompts["image_prompt"])


__all__ = ["split_prompt"]
