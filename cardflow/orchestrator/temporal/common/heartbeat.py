# cardflow/orchestrator/temporal/common/heartbeat.py
from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from temporalio import activity

T = TypeVar("T")

# Must stay well under the heartbeat_timeout in retry_policies
HEARTBEAT_EVERY_SECONDS = 5.0


async def heartbeat_while(call: Awaitable[T], every: float = HEARTBEAT_EVERY_SECONDS) -> T:
    """
    Await a provider call, heartbeating while it is pending.

    Cancellation only reaches an activity through a heartbeat response, so a
    step cancelled by the workflow stops here and the pending call is
    cancelled with it.
    """
    task = asyncio.ensure_future(call)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=every)
            if done:
                return task.result()
            activity.heartbeat()
    finally:
        if not task.done():
            task.cancel()


__all__ = ["heartbeat_while", "HEARTBEAT_EVERY_SECONDS"]
