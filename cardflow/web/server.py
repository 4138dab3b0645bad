# cardflow/web/server.py
# ---------------------------------------------------------------------------
# ✅ Cardflow Web Server Entrypoint
# ---------------------------------------------------------------------------

# 🔹 1. Load environment early (Temporal target, provider keys, saga policy)
import os
from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv(usecwd=True), override=False)

# 🔹 2. Continue with normal imports AFTER env vars are loaded
import logging
import uvicorn
from datetime import datetime, timezone
from fastapi import FastAPI

from cardflow.common.tracing import setup_logging
from cardflow.config import get_settings
from cardflow.web import metrics
from cardflow.web.idempotency_cache import IdempotencyCache
from cardflow.web.middleware import setup_middleware
from cardflow.web.routes_workflows import router as workflows_router
from cardflow.web.rsvp_webhook import router as rsvp_router

log = logging.getLogger("cardflow.web")


# ---------------------------------------------------------------------------
# ✅ Application Factory
# ---------------------------------------------------------------------------
def create_app() -> FastAPI:
    """Initialize the FastAPI app with routers, middleware and shared state."""
    setup_logging()
    settings = get_settings()
    app = FastAPI(title="Cardflow Birthday Card API")

    setup_middleware(app)

    app.include_router(workflows_router)
    app.include_router(rsvp_router)
    app.include_router(metrics.router)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    # RSVP click de-duplication, shared across requests
    app.state.idempotency = IdempotencyCache(ttl_seconds=settings.IDEMPOTENCY_TTL_SECONDS)
    # Temporal client is connected on first use (signal_bridge.get_temporal_client)
    app.state.temporal_client = None

    log.info("Web app ready | public_base_url=%s", settings.PUBLIC_BASE_URL)
    return app


# ---------------------------------------------------------------------------
# ✅ App Export for Uvicorn and Tests
# ---------------------------------------------------------------------------
app = create_app()

if __name__ == "__main__":
    port = int(os.getenv("PORT", 8000))
    print(f"🚀 Starting Cardflow Web API on http://localhost:{port}")
    uvicorn.run("cardflow.web.server:app", host="0.0.0.0", port=port, reload=True)
