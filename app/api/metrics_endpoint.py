"""Prometheus scrape endpoint.

Returns the text exposition format, not JSON:

  # HELP analytics_aggregations_total Analytics aggregations by view and outcome
  # TYPE analytics_aggregations_total counter
  analytics_aggregations_total{view="learning_global",outcome="ok"} 58.0

Restrict /metrics at the ingress in production; it reveals request rates
and which dashboards are in use.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
