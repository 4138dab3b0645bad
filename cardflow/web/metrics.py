# cardflow/web/metrics.py
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response

# -------------------------------------------------------
#  Prometheus metrics definitions
# -------------------------------------------------------

HTTP_TOTAL = Counter(
    "cardflow_http_requests_total",
    "Total incoming HTTP requests",
    ["method", "path"]
)
HTTP_2XX = Counter("cardflow_http_2xx_total", "HTTP 2xx responses")
HTTP_4XX = Counter("cardflow_http_4xx_total", "HTTP 4xx responses")
HTTP_5XX = Counter("cardflow_http_5xx_total", "HTTP 5xx responses")
HTTP_LATENCY = Histogram(
    "cardflow_http_latency_seconds",
    "HTTP request latency (seconds)",
    buckets=(0.005, 0.01, 0.05, 0.1, 0.3, 0.5, 1.0, 3.0, 5.0, 30.0, 120.0)
)

RUNS_STARTED = Counter(
    "cardflow_runs_started_total",
    "Birthday card runs started",
    ["mode"]                                   # sync | async
)
RSVP_CALLBACKS = Counter(
    "cardflow_rsvp_callbacks_total",
    "RSVP webhook callbacks by outcome",
    ["outcome"]                                # received | duplicate | ignored
)
IDEMPOTENT_HITS = Counter(
    "cardflow_rsvp_idempotent_hits_total",
    "RSVP clicks answered from the idempotency cache"
)

# -------------------------------------------------------
#  FastAPI router for metrics endpoints
# -------------------------------------------------------

router = APIRouter()

@router.get("/metrics")
async def metrics_endpoint():
    """Prometheus scrape endpoint."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@router.get("/readyz")
async def readiness_check():
    """Readiness: the process is up and serving. Temporal is checked lazily per request."""
    return {"status": "ready"}
