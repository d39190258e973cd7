"""Prometheus scrape endpoint (text exposition format, not JSON).

Serves the HTTP metrics from the middleware and the settlement counters
from core/metrics.py.  Keep it off the public ingress in production.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
