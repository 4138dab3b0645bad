# cardflow/orchestrator/temporal/activities/generate_image.py
from __future__ import annotations

from temporalio import activity

from cardflow.orchestrator.temporal.common.heartbeat import heartbeat_while
from cardflow.providers import generation


@activity.defn(name="generate_image")
async def generate_image(image_prompt: str) -> str:
    """Card image as a data URI. Provider failures surface as GenerationError (retried)."""
    info = activity.info()
    activity.logger.info("Generating card image | attempt=%d", info.attempt)
    return await heartbeat_while(generation.generate_image(image_prompt))


__all__ = ["generate_image"]
