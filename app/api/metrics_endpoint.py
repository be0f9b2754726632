"""Prometheus scrape endpoint.

Plain-text exposition format, e.g.::

  quiz_submissions_total{mode="auto"} 12.0
  enrollment_transitions_total{status="active"} 31.0

Left unauthenticated; in production restrict it at the ingress to the
Prometheus server.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
