# cardflow/orchestrator/temporal/worker.py
from __future__ import annotations
import asyncio
import logging
import signal
import sys
from typing import List

from dotenv import load_dotenv, find_dotenv
from temporalio.client import Client
from temporalio.worker import Worker

from cardflow.common.tracing import setup_logging
from cardflow.orchestrator.temporal.config import (
    TASK_QUEUE,
    TEMPORAL_NAMESPACE,
    TEMPORAL_TARGET,
)
from cardflow.providers.generation import live_mode

# Workflows
from cardflow.orchestrator.temporal.workflows.birthday_card import BirthdayCardWorkflow

# Activities
from cardflow.orchestrator.temporal.activities.split_prompt import split_prompt
from cardflow.orchestrator.temporal.activities.generate_image import generate_image
from cardflow.orchestrator.temporal.activities.generate_message import generate_message
from cardflow.orchestrator.temporal.activities.request_rsvp import request_rsvp
from cardflow.orchestrator.temporal.activities.notify_recipient import notify_recipient

# --------------------------------------------------------------------------
# Environment and Logging Setup
# --------------------------------------------------------------------------
load_dotenv(find_dotenv(usecwd=True), override=False)

log = logging.getLogger("cardflow.worker")

WORKFLOWS: List = [BirthdayCardWorkflow]
ACTIVITIES: List = [
    split_prompt,
    generate_image,
    generate_message,
    request_rsvp,
    notify_recipient,
]


# --------------------------------------------------------------------------
# Helper Functions
# --------------------------------------------------------------------------
async def _preflight(client: Client) -> None:
    """Log Temporal server version."""
    try:
        from temporalio.api.workflowservice.v1 import GetSystemInfoRequest
        info = await client.workflow_service.get_system_info(GetSystemInfoRequest())
        log.info("Temporal server version: %s", getattr(info, "server_version", "unknown") or "unknown")
    except Exception as e:
        log.warning("Preflight check skipped or failed: %s", e)


async def _connect_temporal(
    target: str, namespace: str, retries: int = 3, delay: int = 3
) -> Client:
    """Connect to Temporal with retry logic."""
    for attempt in range(1, retries + 1):
        try:
            log.info(
                "Connecting to Temporal server (%s@%s), attempt %d/%d",
                namespace, target, attempt, retries,
            )
            client = await Client.connect(target, namespace=namespace)
            log.info("Connected to Temporal server: %s", target)
            return client
        except Exception as e:
            log.warning("Connection attempt %d failed: %s", attempt, e)
            if attempt < retries:
                await asyncio.sleep(delay)
    raise RuntimeError(f"Failed to connect to Temporal server after {retries} attempts")


def build_worker(client: Client, task_queue: str = TASK_QUEUE) -> Worker:
    """The birthday card worker: one queue, the saga plus its five steps."""
    return Worker(
        client=client,
        task_queue=task_queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
    )


async def _serve_queue(client: Client, queue_name: str) -> None:
    """Start and run the worker for a given queue."""
    log.info("🚀 Starting worker | queue=%s | workflows=%d | activities=%d",
             queue_name, len(WORKFLOWS), len(ACTIVITIES))
    worker = build_worker(client, queue_name)
    try:
        await worker.run()
    except asyncio.CancelledError:
        log.info("Worker on %s cancelled, shutting down gracefully", queue_name)
    except Exception as e:
        log.exception("Worker crashed on queue %s: %s", queue_name, e)
        raise


# --------------------------------------------------------------------------
# Main Runner
# --------------------------------------------------------------------------
async def run() -> None:
    """Entrypoint for the Temporal worker."""
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    setup_logging()
    log.info(
        "🎂 Cardflow worker starting | target=%s | namespace=%s | queue=%s",
        TEMPORAL_TARGET, TEMPORAL_NAMESPACE, TASK_QUEUE,
    )
    if live_mode():
        log.info("📡 Using live providers (OpenAI, Mandrill)")
    else:
        log.warning("🧪 Running with mock providers; set CARDFLOW_LIVE_PROVIDERS=1 for live calls")

    client = await _connect_temporal(TEMPORAL_TARGET, TEMPORAL_NAMESPACE)
    await _preflight(client)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    worker_task = asyncio.create_task(_serve_queue(client, TASK_QUEUE), name="birthday-cards")
    worker_task.add_done_callback(lambda task: (
        log.error("Worker %s exited with: %s", task.get_name(), task.exception())
        if not task.cancelled() and task.exception() else None
    ))

    try:
        await asyncio.wait(
            [worker_task, asyncio.create_task(stop_event.wait())],
            return_when=asyncio.FIRST_COMPLETED,
        )
        if stop_event.is_set():
            log.info("🛑 Stop signal received, shutting down worker...")
    finally:
        worker_task.cancel()
        await asyncio.gather(worker_task, return_exceptions=True)
        log.info("✅ Worker stopped cleanly.")


# --------------------------------------------------------------------------
# CLI Entrypoint
# --------------------------------------------------------------------------
def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        log.info("KeyboardInterrupt, exiting.")


if __name__ == "__main__":
    main()
