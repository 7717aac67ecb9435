"""Health and readiness endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200; the body reports dependency
    status so a dashboard can show "degraded" without the orchestrator
    restarting the container.

  /ready (readiness):
    "Can this instance serve analytics right now?"  When a database is
    configured it is critical: every aggregation reads from it, so an
    unreachable database means 503 and the load balancer stops routing
    here until it recovers.  The in-memory store is always ready.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response

from app.db.engine import engine, ping_database

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_status() -> str:
    if engine is None:
        return "not_configured"
    try:
        await ping_database()
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    """Liveness check plus dependency status.

    Returns 200 even when degraded; the status field carries the actual
    health.
    """
    database = await _database_status()
    return {
        "status": "degraded" if database == "degraded" else "ok",
        "checks": {"database": database},
    }


@router.get("/ready")
async def ready() -> Response:
    """Readiness check: 503 while a configured database is unreachable."""
    if await _database_status() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
