# cardflow/web/middleware.py
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from cardflow.common.tracing import TRACE_HEADER, bind_trace_id
from cardflow.web import metrics as metrics_mod


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Bind a trace id per request (caller's X-Request-ID or a new one) and echo it back."""

    async def dispatch(self, request: Request, call_next):
        request_id = bind_trace_id(request.headers.get(TRACE_HEADER))
        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers[TRACE_HEADER] = request_id
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        start = time.time()

        # Count every request
        metrics_mod.HTTP_TOTAL.labels(method=request.method, path=request.url.path).inc()

        response = await call_next(request)

        # Measure latency
        metrics_mod.HTTP_LATENCY.observe(time.time() - start)

        # Status counters
        status = response.status_code
        if 200 <= status < 300:
            metrics_mod.HTTP_2XX.inc()
        elif 400 <= status < 500:
            metrics_mod.HTTP_4XX.inc()
        elif status >= 500:
            metrics_mod.HTTP_5XX.inc()

        return response


def setup_middleware(app: FastAPI):
    """Attach request-id and metrics middlewares to the app."""
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
