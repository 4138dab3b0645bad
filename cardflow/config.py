# cardflow/config.py
from functools import lru_cache
from typing import Optional

from pydantic import NonNegativeInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Saga policy and gateway settings (env vars or .env)."""

    # Base URL guests' RSVP links point at (must reach this web app)
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # None = wait for every guest, however long that takes; 0 = do not wait
    RSVP_MAX_WAIT_SECONDS: Optional[NonNegativeInt] = None

    # Used when a request carries no eventDate
    DEFAULT_NOTIFY_DELAY_SECONDS: int = 0

    # How long POST /workflows/birthday-card blocks on a run without guests
    SYNC_RESULT_TIMEOUT_SECONDS: float = 120.0

    # Overrides the per-step attempt counts in retry_policies when set
    MAX_STEP_ATTEMPTS: Optional[int] = None

    IDEMPOTENCY_TTL_SECONDS: int = 300

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
