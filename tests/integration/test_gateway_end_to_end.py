# tests/integration/test_gateway_end_to_end.py
import asyncio

import httpx
import pytest
from temporalio.worker import Worker

from cardflow.orchestrator.temporal import signal_bridge
from cardflow.orchestrator.temporal.common.models import BirthdayCardInput, Phase
from cardflow.orchestrator.temporal.config import TASK_QUEUE
from cardflow.orchestrator.temporal.workflows.birthday_card import BirthdayCardWorkflow
from cardflow.web.server import app
from tests.fake_providers import FAKE_IMAGE, FakeProviders

pytestmark = pytest.mark.asyncio


@pytest.fixture
def wired_app(temporal_env):
    """Point the web app at the test server's client."""
    app.state.temporal_client = temporal_env.client
    app.state.idempotency.clear()
    yield app
    app.state.temporal_client = None
    app.state.idempotency.clear()


def _http(application) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=application), base_url="http://test")


async def _poll(http: httpx.AsyncClient, run_id: str, predicate, timeout: float = 15.0) -> dict:
    async def _loop():
        while True:
            body = (await http.get(f"/workflows/birthday-card/{run_id}")).json()
            if predicate(body):
                return body
            await asyncio.sleep(0.05)

    return await asyncio.wait_for(_loop(), timeout=timeout)


async def test_no_guests_answers_with_card(temporal_env, wired_app):
    fake = FakeProviders()
    async with Worker(
        temporal_env.client, task_queue=TASK_QUEUE,
        workflows=[BirthdayCardWorkflow], activities=fake.activities(),
    ):
        async with _http(wired_app) as http:
            r = await http.post(
                "/workflows/birthday-card",
                json={"prompt": "a corgi surfing", "recipientEmail": "mom@example.com"},
            )

    assert r.status_code == 200
    body = r.json()
    assert body["image"] == FAKE_IMAGE
    assert body["text"] == "Happy birthday! (text: a corgi surfing)"
    assert body["rsvpReplies"] == []
    assert fake.calls["notify_recipient"] == 1


async def test_guest_clicks_flow_through_webhook(temporal_env, wired_app):
    fake = FakeProviders()
    async with Worker(
        temporal_env.client, task_queue=TASK_QUEUE,
        workflows=[BirthdayCardWorkflow], activities=fake.activities(),
    ):
        async with _http(wired_app) as http:
            r = await http.post(
                "/workflows/birthday-card",
                json={
                    "prompt": "a corgi surfing",
                    "recipientEmail": "mom@example.com",
                    "rsvpEmails": ["a@example.com", "b@example.com"],
                },
            )
            assert r.status_code == 200
            started = r.json()
            assert started["status"] == "started"
            run_id = started["runId"]
            assert run_id.startswith("birthday-card-")

            running = await _poll(
                http, run_id,
                lambda b: b.get("phase") == Phase.AWAITING_RSVP and len(fake.rsvp_requests) == 2,
            )
            assert running["status"] == "running"
            assert [g["email"] for g in running["rsvp"]] == ["a@example.com", "b@example.com"]
            assert "token" not in repr(running)

            # guests click the links they were emailed
            links = {req.email: req.webhook_url for req in fake.rsvp_requests}
            b_url = httpx.URL(links["b@example.com"])
            a_url = httpx.URL(links["a@example.com"])
            assert b_url.path.startswith(f"/webhooks/rsvp/{run_id}/")

            r_b = await http.get(b_url.path, params={"reply": "no", "email": "b@example.com"})
            assert r_b.json() == {"status": "received", "runId": run_id}
            r_b2 = await http.get(b_url.path, params={"reply": "yes", "email": "b@example.com"})
            assert r_b2.json()["status"] == "duplicate"

            await _poll(http, run_id, lambda b: any(g["resolved"] for g in b.get("rsvp", [])))
            r_a = await http.get(a_url.path, params={"reply": "yes", "email": "a@example.com"})
            assert r_a.json()["status"] == "received"

            await temporal_env.client.get_workflow_handle(run_id).result()
            done = await _poll(http, run_id, lambda b: b["status"] != "running")

            r_late = await http.get(a_url.path, params={"reply": "no"})
            assert r_late.json()["status"] in ("duplicate", "ignored")

    assert done["status"] == "completed"
    assert done["result"]["rsvpReplies"] == [
        {"email": "b@example.com", "reply": "no"},
        {"email": "a@example.com", "reply": "yes"},
    ]
    assert fake.calls["notify_recipient"] == 1


async def test_unknown_run_and_token(temporal_env, wired_app):
    async with _http(wired_app) as http:
        r = await http.get("/workflows/birthday-card/birthday-card-missing")
        assert r.status_code == 404
        assert r.json()["fatal"] is False

        r = await http.get("/webhooks/rsvp/birthday-card-missing/tok?reply=yes")
        assert r.status_code == 200
        assert r.json()["status"] == "ignored"


async def test_bridge_reports_failed_runs(temporal_env):
    fake = FakeProviders()
    async with Worker(
        temporal_env.client, task_queue=TASK_QUEUE,
        workflows=[BirthdayCardWorkflow], activities=fake.activities(),
    ):
        handle = await signal_bridge.start_birthday_card(
            temporal_env.client,
            BirthdayCardInput(prompt="x", recipient_email="mom@example.com", event_date="not a date"),
        )
        view = await asyncio.wait_for(
            _until_closed(temporal_env.client, handle.id), timeout=15
        )

    assert view["status"] == "failed"
    assert view["fatal"] is True
    assert "eventDate" in view["error"]


async def _until_closed(client, run_id):
    while True:
        view = await signal_bridge.get_run(client, run_id)
        if view["status"] != "running":
            return view
        await asyncio.sleep(0.05)
