# tests/conftest.py
import sys
import asyncio

if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

import os
from pathlib import Path

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from faker import Faker

# --- Ensure project root is importable
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# --- Load env once for all tests (never overrides what the shell set)
load_dotenv(dotenv_path=ROOT / ".env", override=False)


# --- Providers always run in mock mode under test
@pytest.fixture(autouse=True)
def mock_providers(monkeypatch):
    monkeypatch.setenv("CARDFLOW_LIVE_PROVIDERS", "0")
    yield


@pytest.fixture(autouse=True)
def fresh_settings():
    from cardflow.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def fake_guests():
    f = Faker()
    return [f.unique.email() for _ in range(3)]


# --- Temporal time-skipping test server, one per test
@pytest_asyncio.fixture(scope="function")
async def temporal_env():
    from temporalio.testing import WorkflowEnvironment

    os.environ.setdefault("TEMPORAL_PY_SDK_LOG_LEVEL", "INFO")
    env = await WorkflowEnvironment.start_time_skipping()
    try:
        yield env
    finally:
        await env.shutdown()
