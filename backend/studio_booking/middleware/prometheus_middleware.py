# backend/studio_booking/middleware/prometheus_middleware.py
"""
Prometheus metrics middleware for HTTP request tracking.

Records duration and count per method, endpoint and status code.
"""

import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..monitoring.prometheus_metrics import prometheus_metrics

ULID_SEGMENT = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")
METRICS_PATH_SUFFIX = "/metrics"


def normalize_path(raw_path: str) -> str:
    """Collapse ids so the endpoint label stays low-cardinality."""
    # Example: /api/v1/bookings/01HF4G12ABCDEF3456789XYZAB/start -> /api/v1/bookings/:id/start
    return "/".join(
        ":id" if segment.isdigit() or ULID_SEGMENT.match(segment) else segment
        for segment in raw_path.split("/")
    )


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Scrapes of the metrics endpoint itself are not counted
        if request.url.path.endswith(METRICS_PATH_SUFFIX):
            return await call_next(request)

        method = request.method
        path = normalize_path(request.url.path)
        start_time = time.time()

        response = await call_next(request)
        prometheus_metrics.record_http_request(
            method=method,
            endpoint=path,
            duration=time.time() - start_time,
            status_code=response.status_code,
        )
        return response
